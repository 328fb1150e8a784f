from __future__ import annotations

from typing import Optional


class GabClientError(Exception):
    """Base error for client failures."""


class ConfigurationError(GabClientError):
    """Raised before any network activity when configuration is unusable."""


class MissingCredentialsError(ConfigurationError, ValueError):
    """Raised when email, password or base URL is missing after resolution."""


class TransportError(GabClientError):
    """Network-level failure (DNS, refused connection, timeout)."""

    def __init__(self, message: str, *, method: str = "", url: str = ""):
        super().__init__(message)
        self.method = method
        self.url = url


class TransportParseError(TransportError):
    """Response declared as JSON could not be decoded."""


class ProtocolError(GabClientError):
    """The site returned pages this client cannot make sense of."""


class TokenExtractionError(ProtocolError):
    pass


class LoginError(ProtocolError):
    def __init__(self, step: str, message: str, *, status: Optional[int] = None):
        super().__init__(f"{step}: {message}")
        self.step = step
        self.status = status


class StreamError(GabClientError):
    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


__all__ = [
    "GabClientError",
    "ConfigurationError",
    "MissingCredentialsError",
    "TransportError",
    "TransportParseError",
    "ProtocolError",
    "TokenExtractionError",
    "LoginError",
    "StreamError",
]
