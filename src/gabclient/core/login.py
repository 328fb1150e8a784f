"""
HTML sign-in flow.

login():
  1. GET /auth/sign_in            -> authenticity + pre-auth csrf token, cookies
  2. POST /auth/sign_in (form)    -> must answer 302; session cookie is set
  3. (no redirect follow)         -> cookies in the store carry the auth
  4. refresh_session(): GET /     -> bootstrap JSON with the bearer token
Any failing step raises LoginError; no partially logged-in Session is returned.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import (
    DEFAULT_BASE_URL_ENV,
    DEFAULT_EMAIL_ENV,
    DEFAULT_PASSWORD_ENV,
    CredentialsInput,
    resolve_credentials,
)
from .errors import LoginError, TokenExtractionError, TransportError
from .observability import log_event
from .session import PathLike, Session
from .tokens import TokenExtractor, extract_tokens
from .transport import BodyKind, Transport

SIGN_IN_PATH = "/auth/sign_in"
LANDING_PATH = "/"
LOGIN_REDIRECT_STATUS = 302

log = logging.getLogger("gabclient.login")


def _extract(extractor: Optional[TokenExtractor], page: str, step: str):
    try:
        return extractor.extract(page) if extractor else extract_tokens(page)
    except TokenExtractionError as exc:
        raise LoginError(step, f"Could not read tokens from the page: {exc}") from exc


async def login(
    transport: Transport,
    credentials: Optional[CredentialsInput] = None,
    *,
    email_env: str = DEFAULT_EMAIL_ENV,
    password_env: str = DEFAULT_PASSWORD_ENV,
    base_url_env: str = DEFAULT_BASE_URL_ENV,
    persist_path: Optional[PathLike] = None,
    extractor: Optional[TokenExtractor] = None,
) -> Session:
    """
    Log in and return an authenticated Session.

    Credentials come from `credentials` (Credentials or a mapping with
    userEmail/password/baseUrl) or from the environment variables named by
    email_env/password_env/base_url_env. Missing values raise
    MissingCredentialsError before any request is made.
    """
    creds = resolve_credentials(
        credentials,
        email_env=email_env,
        password_env=password_env,
        base_url_env=base_url_env,
    )
    session = Session(creds, persist_path=persist_path)
    sign_in_url = session.url(SIGN_IN_PATH)

    # Step 1: sign-in page
    try:
        page = await transport.send(
            session, sign_in_url, "GET", BodyKind.HTML, use_auth_header=False
        )
    except TransportError as exc:
        raise LoginError("sign_in_page", f"Could not request sign-in page: {exc}") from exc
    if not page.ok:
        raise LoginError(
            "sign_in_page",
            f"Sign-in page returned status {page.status}",
            status=page.status,
        )
    session.apply_tokens(_extract(extractor, page.content, "sign_in_page"))
    session.last_url = sign_in_url
    if not session.authenticity_token:
        raise LoginError(
            "sign_in_page", "No authenticity_token found on the sign-in page"
        )
    log_event("login_step", log, step="sign_in_page", status=page.status)

    # Step 2: credential POST, a redirect means accepted
    try:
        result = await transport.send(
            session,
            sign_in_url,
            "POST",
            BodyKind.HTML,
            {
                "authenticity_token": session.authenticity_token,
                "user[email]": creds.email,
                "user[password]": creds.password,
            },
            expected_statuses=(LOGIN_REDIRECT_STATUS,),
            use_auth_header=False,
        )
    except TransportError as exc:
        raise LoginError("credentials", f"Could not POST form data: {exc}") from exc
    if not result.ok:
        raise LoginError(
            "credentials",
            f"Expected a redirect, got status {result.status}. "
            "Check that the login credentials are set and correct.",
            status=result.status,
        )
    log_event("login_step", log, step="credentials", status=result.status)

    # Step 3 is implicit: the landing page is requested directly with the new cookies.
    # Step 4
    await refresh_session(transport, session, extractor=extractor)

    session.logged_in = True
    if session.persist_path:
        session.save()
    log_event("login_complete", log, url=session.base_url)
    return session


async def refresh_session(
    transport: Transport,
    session: Session,
    *,
    extractor: Optional[TokenExtractor] = None,
) -> Session:
    """
    Reload the authenticated landing page to pull a fresh bearer token,
    CSRF token and bootstrap state. Reuses the session cookies; no
    credential POST.
    """
    try:
        page = await transport.send(
            session, session.url(LANDING_PATH), "GET", BodyKind.HTML
        )
    except TransportError as exc:
        raise LoginError(
            "landing_page",
            f"Could not obtain initialized and authenticated page: {exc}",
        ) from exc
    if not page.ok:
        raise LoginError(
            "landing_page",
            f"Could not obtain initialized and authenticated page (status {page.status})",
            status=page.status,
        )

    tokens = _extract(extractor, page.content, "landing_page")
    if tokens.bootstrap_state is None or not tokens.access_token:
        raise LoginError(
            "landing_page",
            "Authenticated page did not contain an initial state with an access token",
            status=page.status,
        )
    session.apply_tokens(tokens)
    log_event("login_step", log, step="landing_page", status=page.status)
    return session


async def resume_session(
    transport: Transport,
    persist_path: PathLike,
    credentials: Optional[CredentialsInput] = None,
    *,
    email_env: str = DEFAULT_EMAIL_ENV,
    password_env: str = DEFAULT_PASSWORD_ENV,
    base_url_env: str = DEFAULT_BASE_URL_ENV,
    extractor: Optional[TokenExtractor] = None,
) -> Session:
    """
    Reuse a saved session for the same credentials when it still works,
    otherwise perform a full login(). The result is persisted to persist_path.
    """
    creds = resolve_credentials(
        credentials,
        email_env=email_env,
        password_env=password_env,
        base_url_env=base_url_env,
    )
    path = Path(persist_path)
    session = Session.load(path, creds, persist_path=path)

    if session is not None and session.logged_in:
        try:
            await refresh_session(transport, session, extractor=extractor)
        except LoginError as exc:
            log.info(f"Saved session could not be refreshed ({exc.step}); logging in again")
        else:
            session.save()
            log_event("session_resumed", log, url=session.base_url)
            return session

    return await login(
        transport,
        creds,
        persist_path=path,
        extractor=extractor,
    )


__all__ = ["login", "refresh_session", "resume_session", "SIGN_IN_PATH"]
