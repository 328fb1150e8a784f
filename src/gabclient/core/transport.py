from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Collection,
    Dict,
    Mapping,
    Optional,
    Union,
)
from urllib.parse import quote

import httpx

from .errors import StreamError, TransportError, TransportParseError
from .observability import log_event, timed_event

if TYPE_CHECKING:
    from .session import Session

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:115.0) Gecko/20100101 Firefox/120.0"
)

# Sent on every request so the site sees an ordinary browser navigation.
BROWSER_HEADERS: Dict[str, str] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
    "Sec-Fetch-User": "?1",
    "Sec-Gpc": "1",
    "Upgrade-Insecure-Requests": "1",
}

STREAM_HEADERS: Dict[str, str] = {
    "Accept": "text/event-stream",
    "Sec-Fetch-Dest": "empty",
    "Sec-Fetch-Mode": "cors",
}

CONTENT_TYPE_JSON = "application/json;charset=UTF-8"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
CONTENT_TYPE_TEXT = "text/plain;charset=UTF-8"


class BodyKind(str, Enum):
    JSON = "json"
    BINARY = "binary"
    HTML = "html"
    TEXT = "text"

    @classmethod
    def _missing_(cls, value):
        # "html-form" names the form kind too; any other kind is sent as text
        if value == "html-form":
            return cls.HTML
        return cls.TEXT


@dataclass(frozen=True)
class ResponseEnvelope:
    """Normalized result of every call: the contract endpoint wrappers rely on."""

    content: Any
    ok: bool
    status: int
    headers: httpx.Headers
    url: str


def _uri_component(value: Any) -> str:
    # same unreserved set as JavaScript's encodeURIComponent
    if value is None:
        value = ""
    elif isinstance(value, bool):
        value = "true" if value else "false"
    return quote(str(value), safe="!~*'()")


def encode_form(body: Mapping[str, Any]) -> str:
    """Url-encode a flat mapping: {"a": "1 2"} -> "a=1%202"."""
    return "&".join(f"{_uri_component(k)}={_uri_component(v)}" for k, v in body.items())


class Transport:
    """
    Single chokepoint for network calls.
    - Never follows redirects; callers inspect the status and continue themselves
    - Carries Session cookies/tokens explicitly and merges Set-Cookie back
    - Returns a ResponseEnvelope; unexpected statuses are data, not exceptions
    - No retries: network failures surface as TransportError
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        stream_read_timeout_seconds: float = 90.0,
        logger: Optional[logging.Logger] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.stream_read_timeout_seconds = stream_read_timeout_seconds
        self.log = logger or logging.getLogger("gabclient.transport")

        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            follow_redirects=False,
            timeout=timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def build_headers(
        self, session: Optional["Session"], *, use_auth_header: bool = True
    ) -> Dict[str, str]:
        headers = dict(BROWSER_HEADERS)
        headers["User-Agent"] = session.user_agent if session else DEFAULT_USER_AGENT

        if session is not None:
            if session.cookies.has():
                headers["Cookie"] = session.cookies.to_header()
            if session.last_url:
                headers["Referer"] = session.last_url
            if use_auth_header and session.access_token:
                headers["Authorization"] = f"Bearer {session.access_token}"
            if session.csrf_token:
                headers["X-Csrf-Token"] = session.csrf_token
        return headers

    @staticmethod
    def _encode_body(
        kind: BodyKind, body: Any, headers: Dict[str, str]
    ) -> Dict[str, Any]:
        if kind is BodyKind.JSON:
            headers["Content-Type"] = CONTENT_TYPE_JSON
            return {} if body is None else {"content": json.dumps(body)}

        if kind is BodyKind.BINARY:
            # caller-built multipart; httpx sets the boundary Content-Type
            if body is None:
                return {}
            if isinstance(body, Mapping):
                return {"files": body}
            return {"content": body}

        if kind is BodyKind.HTML:
            headers["Content-Type"] = CONTENT_TYPE_FORM
            return {} if body is None else {"content": encode_form(body)}

        headers["Content-Type"] = CONTENT_TYPE_TEXT
        return {} if body is None else {"content": json.dumps(body)}

    @staticmethod
    def _read_content(resp: httpx.Response, kind: BodyKind) -> Any:
        if kind not in (BodyKind.JSON, BodyKind.BINARY):
            return resp.text

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            snippet = (resp.text or "")[:500]
            raise TransportParseError(
                f"Expected JSON from {resp.request.method} {resp.request.url}, "
                f"got non-JSON body snippet: {snippet!r}",
                method=resp.request.method,
                url=str(resp.request.url),
            ) from exc

    def _persist(self, session: "Session") -> None:
        try:
            session.save()
        except OSError as exc:
            self.log.warning(
                f"Could not write session to {session.persist_path}: {exc}"
            )

    async def send(
        self,
        session: Optional["Session"],
        url: Union[str, httpx.URL],
        method: str = "GET",
        body_kind: Union[BodyKind, str] = BodyKind.JSON,
        body: Any = None,
        expected_statuses: Collection[int] = (200,),
        use_auth_header: bool = True,
        *,
        params: Any = None,
    ) -> ResponseEnvelope:
        method = method.upper()
        kind = BodyKind(body_kind)
        url = str(url)

        headers = self.build_headers(session, use_auth_header=use_auth_header)
        body_kwargs = self._encode_body(kind, body, headers)

        try:
            with timed_event(
                "http_call", self.log, level=logging.DEBUG, method=method, url=url
            ) as call:
                resp = await self.http.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    follow_redirects=False,
                    **body_kwargs,
                )
                call["status"] = resp.status_code
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Network/timeout error calling {method} {url}: {exc}",
                method=method,
                url=url,
            ) from exc
        finally:
            # cookie state lives on the Session only
            self.http.cookies.clear()

        status = resp.status_code
        ok = status in expected_statuses

        if session is not None:
            session.cookies.set(resp.headers.get_list("set-cookie"))
            session.last_url = str(resp.url)

        content = None
        if method != "HEAD" and ok and status != 204:
            content = self._read_content(resp, kind)

        if session is not None and ok and session.logged_in and session.persist_path:
            self._persist(session)

        return ResponseEnvelope(
            content=content,
            ok=ok,
            status=status,
            headers=resp.headers,
            url=str(resp.url),
        )

    @asynccontextmanager
    async def stream(
        self, session: "Session", url: Union[str, httpx.URL]
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a long-lived GET with text/event-stream semantics.
        Read errors while the caller consumes the body surface as TransportError.
        """
        url = str(url)
        headers = self.build_headers(session)
        headers.update(STREAM_HEADERS)
        timeout = httpx.Timeout(self.timeout_seconds, read=self.stream_read_timeout_seconds)

        try:
            async with self.http.stream(
                "GET",
                url,
                headers=headers,
                timeout=timeout,
                follow_redirects=False,
            ) as resp:
                session.cookies.set(resp.headers.get_list("set-cookie"))
                log_event(
                    "stream_open",
                    self.log,
                    method="GET",
                    url=url,
                    status=resp.status_code,
                )
                if resp.status_code != 200:
                    raise StreamError(
                        f"Stream request to {url} returned {resp.status_code}",
                        status=resp.status_code,
                    )
                yield resp
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Stream error on GET {url}: {exc}", method="GET", url=url
            ) from exc
        finally:
            self.http.cookies.clear()


__all__ = [
    "BodyKind",
    "ResponseEnvelope",
    "Transport",
    "encode_form",
    "BROWSER_HEADERS",
    "DEFAULT_USER_AGENT",
]
