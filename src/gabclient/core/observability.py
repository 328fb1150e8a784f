from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator

# attributes every LogRecord already has; an extra with one of these names
# would make logging raise
RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}

# never emitted, whatever the caller passes
SECRET_LOG_KEYS = frozenset(
    {"password", "access_token", "csrf_token", "authenticity_token", "cookie", "cookies"}
)


def _clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        k: v
        for k, v in fields.items()
        if k not in RECORD_ATTRS and k.lower() not in SECRET_LOG_KEYS
    }


def log_event(
    event: str,
    logger: logging.Logger | None = None,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """
    Emit one structured record: the message is the event name, fields ride
    along as record attributes for LogfmtFormatter. Reserved and secret keys
    are dropped.
    """
    log = logger or logging.getLogger("gabclient.observability")
    log.log(level, event, extra={"event": event, **_clean_fields(fields)})


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


@contextmanager
def timed_event(
    event: str,
    logger: logging.Logger | None = None,
    *,
    level: int = logging.INFO,
    error_level: int = logging.WARNING,
    **fields: Any,
) -> Iterator[Dict[str, Any]]:
    """
    Log `event` once the block finishes, with duration_ms.

    The yielded dict can be filled inside the block (e.g. status). If the
    block raises, the record gets status="exception" and error_type at
    error_level and the exception propagates unchanged.
    """
    start = time.perf_counter()
    extra: Dict[str, Any] = dict(fields)
    try:
        yield extra
    except Exception as exc:
        failed = {
            **extra,
            "status": "exception",
            "error_type": type(exc).__name__,
            "duration_ms": _elapsed_ms(start),
        }
        log_event(event, logger, level=error_level, **failed)
        raise
    log_event(event, logger, level=level, **{**extra, "duration_ms": _elapsed_ms(start)})


__all__ = ["log_event", "timed_event", "RECORD_ATTRS", "SECRET_LOG_KEYS"]
