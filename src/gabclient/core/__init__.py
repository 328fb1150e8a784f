"""Core session/transport surface for gabclient (endpoint-agnostic)."""

from .config import (
    ClientConfig,
    Credentials,
    create_transport_from_env,
    load_env_config,
    resolve_credentials,
)
from .cookies import CookieStore
from .errors import (
    ConfigurationError,
    GabClientError,
    LoginError,
    MissingCredentialsError,
    ProtocolError,
    StreamError,
    TokenExtractionError,
    TransportError,
    TransportParseError,
)
from .login import login, refresh_session, resume_session
from .session import Session, credential_fingerprint
from .stream import FrameParser, ReconnectConfig, StreamEvent, open_stream
from .tokens import PageTokens, RegexTokenExtractor, TokenExtractor, extract_tokens
from .transport import BodyKind, ResponseEnvelope, Transport, encode_form

__all__ = [
    # Transport
    "Transport",
    "BodyKind",
    "ResponseEnvelope",
    "encode_form",
    # Session
    "Session",
    "CookieStore",
    "credential_fingerprint",
    # Login
    "login",
    "refresh_session",
    "resume_session",
    # Tokens
    "PageTokens",
    "TokenExtractor",
    "RegexTokenExtractor",
    "extract_tokens",
    # Streaming
    "open_stream",
    "FrameParser",
    "StreamEvent",
    "ReconnectConfig",
    # Config helpers
    "Credentials",
    "ClientConfig",
    "load_env_config",
    "resolve_credentials",
    "create_transport_from_env",
    # Exceptions
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
