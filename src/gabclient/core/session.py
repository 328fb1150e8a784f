"""Authenticated session state and its on-disk snapshot."""

from __future__ import annotations

import hashlib
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gabclient.models import BootstrapState, ComposeDefaults

from .config import Credentials
from .cookies import CookieStore
from .tokens import PageTokens

SNAPSHOT_VERSION = 1

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.1; rv:109.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (X11; Linux x86_64; rv:109.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:109.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:115.0) Gecko/20100101 Firefox/115.0",
    "Mozilla/5.0 (X11; Fedora; Linux x86_64; rv:115.0) Gecko/20100101 Firefox/115.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.2210.91",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 OPR/106.0.0.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_1) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
)

PathLike = Union[str, Path]


def credential_fingerprint(credentials: Credentials) -> str:
    """Identifies which account a snapshot belongs to. Not a security control."""
    raw = "\x00".join((credentials.email, credentials.password, credentials.base_url))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class SessionState(BaseModel):
    base_url: str
    user_agent: str
    authenticity_token: Optional[str] = None
    csrf_token: Optional[str] = None
    access_token: Optional[str] = None
    bootstrap_state: Optional[Dict[str, Any]] = None
    last_url: Optional[str] = None
    logged_in: bool = False

    model_config = ConfigDict(extra="ignore")


class SessionSnapshot(BaseModel):
    version: int = SNAPSHOT_VERSION
    fingerprint: str
    session: SessionState
    cookies: str = Field(default="{}")

    model_config = ConfigDict(extra="ignore")


class Session:
    """
    Authenticated identity threaded through every call.
    Not safe for concurrent use: cookie and token updates from parallel
    requests race. Serialize access (one task or an asyncio.Lock) when
    sharing a Session.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        persist_path: Optional[PathLike] = None,
        user_agent: Optional[str] = None,
    ):
        self.credentials = credentials
        self.base_url = credentials.base_url.rstrip("/")
        self.user_agent = user_agent or random.choice(USER_AGENTS)
        self.cookies = CookieStore()
        self.authenticity_token: Optional[str] = None
        self.csrf_token: Optional[str] = None
        self.access_token: Optional[str] = None
        self.bootstrap_state: Optional[Dict[str, Any]] = None
        self.last_url: Optional[str] = self.base_url
        self.logged_in = False
        self.persist_path = Path(persist_path) if persist_path else None
        self.log = logging.getLogger("gabclient.session")

    def __repr__(self) -> str:
        return (
            f"Session(base_url={self.base_url!r}, logged_in={self.logged_in}, "
            f"cookies={len(self.cookies)})"
        )

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def apply_tokens(self, tokens: PageTokens) -> None:
        if tokens.authenticity_token:
            self.authenticity_token = tokens.authenticity_token
        if tokens.csrf_token:
            self.csrf_token = tokens.csrf_token
        if tokens.bootstrap_state is not None:
            self.bootstrap_state = tokens.bootstrap_state
            self.access_token = tokens.access_token

    # --- bootstrap accessors ---

    def bootstrap(self) -> BootstrapState:
        return BootstrapState.model_validate(self.bootstrap_state or {})

    def my_account_info(self) -> Optional[Dict[str, Any]]:
        return self.bootstrap().my_account()

    def version(self) -> Optional[str]:
        return self.bootstrap().meta.version

    def blocked_by(self) -> List[str]:
        return list(self.bootstrap().meta.blocked_by)

    def compose_defaults(self) -> ComposeDefaults:
        return self.bootstrap().compose

    # --- persistence ---

    def fingerprint(self) -> str:
        return credential_fingerprint(self.credentials)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            fingerprint=self.fingerprint(),
            session=SessionState(
                base_url=self.base_url,
                user_agent=self.user_agent,
                authenticity_token=self.authenticity_token,
                csrf_token=self.csrf_token,
                access_token=self.access_token,
                bootstrap_state=self.bootstrap_state,
                last_url=self.last_url,
                logged_in=self.logged_in,
            ),
            cookies=self.cookies.serialize(),
        )

    def serialize(self) -> str:
        return self.snapshot().model_dump_json()

    @classmethod
    def deserialize(
        cls,
        blob: str,
        credentials: Credentials,
        *,
        persist_path: Optional[PathLike] = None,
    ) -> Optional["Session"]:
        """
        Rebuild a Session from serialize() output.
        Returns None when the blob is malformed or belongs to other credentials.
        """
        log = logging.getLogger("gabclient.session")
        try:
            snap = SessionSnapshot.model_validate_json(blob)
            cookies = CookieStore.restore(snap.cookies)
        except (ValidationError, ValueError) as exc:
            log.warning("session.snapshot_invalid", extra={"error_type": type(exc).__name__})
            return None

        if snap.fingerprint != credential_fingerprint(credentials):
            log.warning("session.fingerprint_mismatch")
            return None

        state = snap.session
        session = cls(credentials, persist_path=persist_path, user_agent=state.user_agent)
        session.cookies = cookies
        session.authenticity_token = state.authenticity_token
        session.csrf_token = state.csrf_token
        session.access_token = state.access_token
        session.bootstrap_state = state.bootstrap_state
        session.last_url = state.last_url or session.base_url
        session.logged_in = state.logged_in
        return session

    def save(self, path: Optional[PathLike] = None) -> Path:
        target = Path(path) if path else self.persist_path
        if target is None:
            raise ValueError("No path given and session has no persist_path.")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.serialize(), encoding="utf-8")
        try:
            target.chmod(0o600)
        except OSError as exc:
            self.log.debug(f"Could not restrict permissions on {target}: {exc}")
        return target

    @classmethod
    def load(
        cls,
        path: PathLike,
        credentials: Credentials,
        *,
        persist_path: Optional[PathLike] = None,
    ) -> Optional["Session"]:
        source = Path(path)
        if not source.is_file():
            return None
        return cls.deserialize(
            source.read_text(encoding="utf-8"),
            credentials,
            persist_path=persist_path,
        )


__all__ = [
    "Session",
    "SessionSnapshot",
    "SessionState",
    "USER_AGENTS",
    "credential_fingerprint",
]
