"""gabclient package exports."""

from .core import (
    BodyKind,
    ClientConfig,
    CookieStore,
    Credentials,
    FrameParser,
    GabClientError,
    LoginError,
    MissingCredentialsError,
    ReconnectConfig,
    ResponseEnvelope,
    Session,
    StreamEvent,
    TokenExtractionError,
    Transport,
    TransportError,
    TransportParseError,
    create_transport_from_env,
    login,
    open_stream,
    refresh_session,
    resume_session,
)
from .core.logging import setup_logging
from .models import BootstrapState, NotificationFilters

__all__ = [
    # Transport
    "Transport",
    "BodyKind",
    "ResponseEnvelope",
    "create_transport_from_env",
    # Session / login
    "Session",
    "CookieStore",
    "Credentials",
    "ClientConfig",
    "login",
    "refresh_session",
    "resume_session",
    # Streaming
    "open_stream",
    "FrameParser",
    "StreamEvent",
    "ReconnectConfig",
    # Models
    "BootstrapState",
    "NotificationFilters",
    # Exceptions
    "GabClientError",
    "MissingCredentialsError",
    "TransportError",
    "TransportParseError",
    "TokenExtractionError",
    "LoginError",
    # Logging
    "setup_logging",
]
