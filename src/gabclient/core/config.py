from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple, Union

from dotenv import load_dotenv

from .errors import MissingCredentialsError

DEFAULT_EMAIL_ENV = "MASTODON_USEREMAIL"
DEFAULT_PASSWORD_ENV = "MASTODON_PASSWORD"
DEFAULT_BASE_URL_ENV = "MASTODON_BASEURL"

TIMEOUT_ENV = "GABCLIENT_TIMEOUT_SECONDS"
STREAM_TIMEOUT_ENV = "GABCLIENT_STREAM_TIMEOUT_SECONDS"
LOG_LEVEL_ENV = "GABCLIENT_LOG_LEVEL"


@dataclass(frozen=True)
class Credentials:
    """Login credentials. Email and password stay out of repr()."""

    email: str = field(repr=False)
    password: str = field(repr=False)
    base_url: str

    def __post_init__(self) -> None:
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "base_url", (self.base_url or "").strip().rstrip("/"))


CredentialsInput = Union[Credentials, Mapping[str, str]]


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_env_config(
    *,
    email_env: str = DEFAULT_EMAIL_ENV,
    password_env: str = DEFAULT_PASSWORD_ENV,
    base_url_env: str = DEFAULT_BASE_URL_ENV,
    use_dotenv: bool = True,
) -> Tuple[str, str, str]:
    """Load email, password and base URL from environment (optional .env)."""
    if use_dotenv:
        load_dotenv()
    email = os.getenv(email_env, "").strip()
    password = os.getenv(password_env, "")
    base_url = os.getenv(base_url_env, "").strip()
    return email, password, base_url


def _from_mapping(data: Mapping[str, str]) -> Tuple[str, str, str]:
    email = data.get("userEmail") or data.get("email") or ""
    password = data.get("password") or ""
    base_url = data.get("baseUrl") or data.get("base_url") or ""
    return email, password, base_url


def resolve_credentials(
    credentials: Optional[CredentialsInput] = None,
    *,
    email_env: str = DEFAULT_EMAIL_ENV,
    password_env: str = DEFAULT_PASSWORD_ENV,
    base_url_env: str = DEFAULT_BASE_URL_ENV,
    use_dotenv: bool = True,
) -> Credentials:
    """
    Resolve credentials from, in order of precedence:
    - an explicit Credentials object or mapping (userEmail/password/baseUrl),
    - the three environment variables named by the *_env arguments.
    Raises MissingCredentialsError if any value is empty afterwards.
    """
    if isinstance(credentials, Credentials):
        email, password, base_url = (
            credentials.email,
            credentials.password,
            credentials.base_url,
        )
        source = "explicit credentials"
    elif credentials is not None:
        email, password, base_url = _from_mapping(credentials)
        source = "explicit credentials"
    else:
        email, password, base_url = load_env_config(
            email_env=email_env,
            password_env=password_env,
            base_url_env=base_url_env,
            use_dotenv=use_dotenv,
        )
        source = f"environment ({email_env}, {password_env}, {base_url_env})"

    missing = [
        name
        for name, value in (
            ("email", email),
            ("password", password),
            ("base URL", (base_url or "").rstrip("/")),
        )
        if not value
    ]
    if missing:
        raise MissingCredentialsError(
            f"Missing {', '.join(missing)} in {source}. Provide credentials "
            f"explicitly or set {email_env}, {password_env} and {base_url_env}."
        )
    return Credentials(email=email, password=password, base_url=base_url)


@dataclass(frozen=True)
class ClientConfig:
    timeout_seconds: float = 30.0
    stream_read_timeout_seconds: float = 90.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, use_dotenv: bool = True) -> "ClientConfig":
        if use_dotenv:
            load_dotenv()
        return cls(
            timeout_seconds=_get_float_env(TIMEOUT_ENV, cls.timeout_seconds),
            stream_read_timeout_seconds=_get_float_env(
                STREAM_TIMEOUT_ENV, cls.stream_read_timeout_seconds
            ),
            log_level=os.getenv(LOG_LEVEL_ENV, "").strip() or cls.log_level,
        )


def create_transport_from_env(**kwargs):
    """Create a Transport configured from GABCLIENT_* environment variables."""
    from .transport import Transport

    cfg = ClientConfig.from_env()
    kwargs.setdefault("timeout_seconds", cfg.timeout_seconds)
    kwargs.setdefault("stream_read_timeout_seconds", cfg.stream_read_timeout_seconds)
    return Transport(**kwargs)


__all__ = [
    "Credentials",
    "CredentialsInput",
    "ClientConfig",
    "DEFAULT_EMAIL_ENV",
    "DEFAULT_PASSWORD_ENV",
    "DEFAULT_BASE_URL_ENV",
    "load_env_config",
    "resolve_credentials",
    "create_transport_from_env",
]
