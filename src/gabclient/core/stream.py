from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing, suppress
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from .errors import StreamError, TransportError
from .observability import log_event
from .session import Session
from .transport import Transport

STREAM_PATH = "/api/v4/streaming"
DATA_PREFIX = "data:"
EVENT_PREFIX = "event:"
DEFAULT_EVENT = "ping"

STREAM_EVENT = "stream-event"
STREAM_ANOMALY = "stream-anomaly"
STREAM_ERROR = "stream-error"
STREAM_ENDED = "stream-ended"

_CANCELLED = object()

log = logging.getLogger("gabclient.stream")


@dataclass(frozen=True)
class StreamEvent:
    kind: str
    data: Optional[Dict[str, Any]] = None
    raw: Optional[str] = None
    error: Optional[BaseException] = field(default=None, compare=False)


@dataclass(frozen=True)
class ReconnectConfig:
    max_attempts: int = 5  # consecutive failures before giving up
    backoff_base_seconds: float = 1.0  # 1, 2, 4, 8...
    max_backoff_seconds: float = 60.0

    def delay_for(self, attempt: int) -> float:
        return min(
            self.backoff_base_seconds * (2 ** max(attempt - 1, 0)),
            self.max_backoff_seconds,
        )


class FrameParser:
    """
    Incremental framer for the event stream.

    A frame is one line starting with "data:" and ending with a newline.
    Text is buffered until a newline arrives, so a frame split across chunks
    is only parsed once complete. A complete frame that is not a JSON object
    is reported as a stream-anomaly instead of being dropped. An "event:"
    line names the following frame when the JSON itself carries no "event".
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._pending_event: Optional[str] = None

    def feed(self, chunk: str) -> List[StreamEvent]:
        self._buffer += chunk
        events: List[StreamEvent] = []
        while True:
            idx = self._buffer.find("\n")
            if idx < 0:
                break
            line = self._buffer[:idx]
            self._buffer = self._buffer[idx + 1 :]
            event = self._parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[StreamEvent]:
        line, self._buffer = self._buffer, ""
        event = self._parse_line(line)
        return [event] if event is not None else []

    def _parse_line(self, line: str) -> Optional[StreamEvent]:
        line = line.rstrip("\r")
        if not line:
            self._pending_event = None
            return None
        if line.startswith(EVENT_PREFIX):
            self._pending_event = line[len(EVENT_PREFIX) :].strip() or None
            return None
        if not line.startswith(DATA_PREFIX):
            # comments (":keepalive"), id:, retry:
            return None

        payload = line[len(DATA_PREFIX) :].strip()
        if not payload:
            return None

        event_name = self._pending_event or DEFAULT_EVENT
        self._pending_event = None
        try:
            data = json.loads(payload)
        except ValueError:
            return StreamEvent(kind=STREAM_ANOMALY, raw=payload)
        if not isinstance(data, dict):
            return StreamEvent(kind=STREAM_ANOMALY, raw=payload)
        return StreamEvent(kind=STREAM_EVENT, data={"event": event_name, **data})


def _is_set(cancel: Optional[asyncio.Event]) -> bool:
    return cancel is not None and cancel.is_set()


async def _sleep_or_cancel(delay: float, cancel: Optional[asyncio.Event]) -> bool:
    """Sleep for delay seconds; True if cancel fired first."""
    if cancel is None:
        await asyncio.sleep(delay)
        return False
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True


async def _anext(chunks: AsyncIterator[str]) -> Optional[str]:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


async def _next_chunk(
    chunks: AsyncIterator[str], cancel: Optional[asyncio.Event]
) -> Union[str, None, object]:
    """
    Next text chunk, None at end of body, or _CANCELLED when cancel fires
    while the read is still blocked.
    """
    if cancel is None:
        return await _anext(chunks)

    read = asyncio.ensure_future(_anext(chunks))
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({read, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        read.cancel()
        raise
    finally:
        waiter.cancel()
    if read.done():
        return read.result()

    read.cancel()
    with suppress(asyncio.CancelledError):
        await read
    return _CANCELLED


async def _read_frames(
    resp: httpx.Response, parser: FrameParser, cancel: Optional[asyncio.Event]
) -> AsyncIterator[StreamEvent]:
    chunks = resp.aiter_text()
    try:
        while not _is_set(cancel):
            chunk = await _next_chunk(chunks, cancel)
            if chunk is _CANCELLED:
                return
            if chunk is None:
                for event in parser.flush():
                    yield event
                return
            for event in parser.feed(chunk):
                yield event
    finally:
        await chunks.aclose()


def _persist(session: Session) -> None:
    if not (session.logged_in and session.persist_path):
        return
    try:
        session.save()
    except OSError as exc:
        log.warning(f"Could not write session to {session.persist_path}: {exc}")


async def open_stream(
    transport: Transport,
    session: Session,
    *,
    auto_reconnect: bool = True,
    reconnect: Optional[ReconnectConfig] = None,
    cancel: Optional[asyncio.Event] = None,
) -> AsyncIterator[StreamEvent]:
    """
    Subscribe to the server-push stream.

    Yields StreamEvent items:
    - stream-event: a parsed frame, {"event": "ping"} merged under its fields
    - stream-anomaly: a complete frame that was not a JSON object (raw text kept)
    - stream-error: connect/read failure (error attached); followed by a
      reconnect with exponential backoff when auto_reconnect is set
    - stream-ended: always last; server closed, cancelled or retries exhausted

    Setting `cancel` stops the stream, interrupting a blocked read or backoff.
    Run this in its own task; it only returns when the stream ends.
    """
    cfg = reconnect or ReconnectConfig()
    url = session.url(STREAM_PATH)
    attempt = 0

    while not _is_set(cancel):
        parser = FrameParser()
        try:
            async with transport.stream(session, url) as resp:
                _persist(session)
                async with aclosing(_read_frames(resp, parser, cancel)) as frames:
                    async for event in frames:
                        if event.kind == STREAM_EVENT:
                            attempt = 0
                        yield event
            break
        except (TransportError, StreamError) as exc:
            log_event(
                "stream_error",
                log,
                level=logging.WARNING,
                url=url,
                error_type=type(exc).__name__,
                attempt=attempt,
            )
            yield StreamEvent(kind=STREAM_ERROR, error=exc)
            if not auto_reconnect:
                break
            attempt += 1
            if attempt > cfg.max_attempts:
                log.warning(f"Giving up on stream after {cfg.max_attempts} reconnect attempts")
                break
            delay = cfg.delay_for(attempt)
            log_event("stream_reconnect", log, url=url, attempt=attempt, delay_s=delay)
            if await _sleep_or_cancel(delay, cancel):
                break

    yield StreamEvent(kind=STREAM_ENDED)


__all__ = [
    "FrameParser",
    "ReconnectConfig",
    "StreamEvent",
    "open_stream",
    "STREAM_PATH",
    "STREAM_EVENT",
    "STREAM_ANOMALY",
    "STREAM_ERROR",
    "STREAM_ENDED",
]
