"""Endpoints that need no login; the caller passes the site's base URL."""

from __future__ import annotations

from typing import Union

from gabclient.core.transport import ResponseEnvelope, Transport


def _base(base_url: str) -> str:
    return base_url.rstrip("/")


async def get_account_from_id(
    transport: Transport, base_url: str, account_id: Union[int, str]
) -> ResponseEnvelope:
    url = f"{_base(base_url)}/api/v1/accounts/{account_id}"
    return await transport.send(None, url)


async def get_account_from_username(
    transport: Transport, base_url: str, username: str
) -> ResponseEnvelope:
    url = f"{_base(base_url)}/api/v1/account_by_username/{username.lstrip('@')}"
    return await transport.send(None, url)


async def get_trends_feed(transport: Transport, base_url: str) -> ResponseEnvelope:
    return await transport.send(None, f"{_base(base_url)}/api/v3/trends_feed")


async def get_popular_statuses(
    transport: Transport, base_url: str, popular_type: str = "gab"
) -> ResponseEnvelope:
    return await transport.send(
        None, f"{_base(base_url)}/api/v1/popular_links", params={"type": popular_type}
    )


__all__ = [
    "get_account_from_id",
    "get_account_from_username",
    "get_trends_feed",
    "get_popular_statuses",
]
