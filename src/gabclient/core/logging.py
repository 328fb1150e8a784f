import logging
import sys
from typing import Any, Iterable, Iterator, Optional, TextIO, Tuple

from .observability import RECORD_ATTRS

# rendered first and in this order; other extras follow sorted by name
LOG_EXTRA_FIELDS = (
    "step",
    "method",
    "url",
    "status",
    "duration_ms",
    "attempt",
    "delay_s",
    "error_type",
)

# httpx logs every request at INFO, which duplicates http_call
NOISY_LOGGERS = ("httpx", "httpcore")


def _quote(val: Any) -> str:
    if isinstance(val, bool):
        return "true" if val else "false"
    if isinstance(val, (int, float)):
        return str(val)
    s = str(val)
    if not s or any(c in s for c in ' ="'):
        s = '"' + s.replace('"', '\\"') + '"'
    return s


class LogfmtFormatter(logging.Formatter):
    """
    One logfmt line per record: level, logger, event, then the extras that
    log_event attached. Missing extras are skipped.
    """

    def __init__(self, fields: Iterable[str] = LOG_EXTRA_FIELDS):
        super().__init__()
        self.fields = tuple(fields)

    def _extras(self, record: logging.LogRecord) -> Iterator[Tuple[str, Any]]:
        extras = {
            k: v
            for k, v in vars(record).items()
            if k not in RECORD_ATTRS and k != "event" and v is not None
        }
        for key in self.fields:
            if key in extras:
                yield key, extras.pop(key)
        for key in sorted(extras):
            yield key, extras[key]

    def format(self, record: logging.LogRecord) -> str:
        pairs = [("level", record.levelname.lower()), ("logger", record.name)]
        msg = record.getMessage()
        if msg:
            pairs.append(("event", msg))
        pairs.extend(self._extras(record))
        if record.exc_info and record.exc_info[0] is not None:
            pairs.append(("exc_type", record.exc_info[0].__name__))
        return " ".join(f"{k}={_quote(v)}" for k, v in pairs)


def setup_logging(
    level: Optional[str] = None,
    *,
    stream: Optional[TextIO] = None,
    quiet_http: bool = True,
) -> None:
    """
    Replace the root handlers with one logfmt handler.
    `level` defaults to GABCLIENT_LOG_LEVEL (INFO when unset).
    """
    if level is None:
        from .config import ClientConfig

        level = ClientConfig.from_env().log_level

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(LogfmtFormatter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if quiet_http:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["setup_logging", "LogfmtFormatter", "LOG_EXTRA_FIELDS"]
