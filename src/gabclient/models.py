from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

T = TypeVar("T", bound=BaseModel)


# --- Bootstrap state (initial-state JSON of the authenticated page) ---


class BootstrapMeta(BaseModel):
    me: Optional[str] = None
    access_token: Optional[str] = None
    version: Optional[str] = None
    blocked_by: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class ComposeDefaults(BaseModel):
    default_privacy: Optional[str] = None
    default_sensitive: Optional[bool] = None
    default_status_expiration: Optional[Any] = None

    model_config = ConfigDict(extra="allow")


class BootstrapState(BaseModel):
    """
    Loosely typed view over the site's client bootstrap JSON.
    Only the keys this library reads are declared; everything else is kept.
    """

    meta: BootstrapMeta = Field(default_factory=BootstrapMeta)
    compose: ComposeDefaults = Field(default_factory=ComposeDefaults)
    accounts: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")

    def my_account(self) -> Optional[Dict[str, Any]]:
        if not self.meta.me:
            return None
        return self.accounts.get(self.meta.me)


def parse_optional(model: Type[T], payload: Any) -> Optional[T]:
    if not isinstance(payload, dict):
        return None
    try:
        return model.model_validate(payload)
    except ValidationError:
        return None


# --- Input models (endpoint options) ---

NotificationType = Literal[
    "follow", "reblog", "favourite", "poll", "mention", "group_moderation_event"
]
NOTIFICATION_TYPES: tuple[str, ...] = (
    "follow",
    "reblog",
    "favourite",
    "poll",
    "mention",
    "group_moderation_event",
)


class NotificationFilters(BaseModel):
    """
    types: notification types to include (empty = all)
    only_following: only notifications from accounts you follow
    only_verified: only notifications from verified accounts
    """

    types: List[NotificationType] = Field(default_factory=list)
    only_following: bool = False
    only_verified: bool = False

    model_config = ConfigDict(extra="forbid")

    def exclude_types(self) -> List[str]:
        # the API filters by exclusion
        if not self.types:
            return []
        return [t for t in NOTIFICATION_TYPES if t not in self.types]


__all__ = [
    "BootstrapMeta",
    "ComposeDefaults",
    "BootstrapState",
    "parse_optional",
    "NotificationFilters",
    "NotificationType",
    "NOTIFICATION_TYPES",
]
