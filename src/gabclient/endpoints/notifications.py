from __future__ import annotations

from typing import List, Optional, Tuple, Union

from gabclient.core.session import Session
from gabclient.core.transport import ResponseEnvelope, Transport
from gabclient.models import NotificationFilters


def _notification_params(
    max_id: Optional[Union[int, str]],
    since_id: Optional[Union[int, str]],
    filters: NotificationFilters,
) -> List[Tuple[str, str]]:
    params: List[Tuple[str, str]] = []
    if max_id:
        params.append(("max_id", str(max_id)))
    if since_id:
        params.append(("since_id", str(since_id)))
    if filters.only_following:
        params.append(("only_following", "true"))
    if filters.only_verified:
        params.append(("only_verified", "true"))
    for excluded in filters.exclude_types():
        params.append(("exclude_types[]", excluded))
    return params


async def get_notifications(
    transport: Transport,
    session: Session,
    max_id: Optional[Union[int, str]] = None,
    since_id: Optional[Union[int, str]] = None,
    filters: Optional[NotificationFilters] = None,
) -> ResponseEnvelope:
    """
    List notifications, newest first.
    max_id pages backwards; since_id asks for newer ones only.
    """
    params = _notification_params(max_id, since_id, filters or NotificationFilters())
    return await transport.send(
        session, session.url("/api/v1/notifications"), params=params
    )


async def mark_notifications_read(
    transport: Transport, session: Session
) -> ResponseEnvelope:
    return await transport.send(
        session, session.url("/api/v1/notifications/mark_read"), "POST", body={}
    )


__all__ = ["get_notifications", "mark_notifications_read"]
