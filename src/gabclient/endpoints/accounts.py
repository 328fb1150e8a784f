from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from gabclient.core.session import Session
from gabclient.core.transport import ResponseEnvelope, Transport


async def get_my_account(transport: Transport, session: Session) -> ResponseEnvelope:
    """Own account details, including `source` (for profile edits)."""
    return await transport.send(
        session, session.url("/api/v1/accounts/verify_credentials")
    )


async def get_account(
    transport: Transport, session: Session, account_id: Union[int, str]
) -> ResponseEnvelope:
    return await transport.send(session, session.url(f"/api/v1/accounts/{account_id}"))


def get_my_account_info(session: Session) -> Optional[Dict[str, Any]]:
    # from the bootstrap state, no request
    return session.my_account_info()


def get_blocked_by_ids(session: Session) -> List[str]:
    return session.blocked_by()


__all__ = [
    "get_my_account",
    "get_account",
    "get_my_account_info",
    "get_blocked_by_ids",
]
