from pathlib import Path

import httpx
import pytest
import respx
from gabclient.core.config import Credentials
from gabclient.core.errors import (
    LoginError,
    MissingCredentialsError,
    TokenExtractionError,
    TransportError,
)
from gabclient.core.login import login, refresh_session, resume_session
from gabclient.core.session import Session
from gabclient.core.tokens import PageTokens
from gabclient.core.transport import Transport

FIXTURES = Path(__file__).parent / "fixtures"
BASE = "https://gab.test"
SIGN_IN = f"{BASE}/auth/sign_in"
LANDING = f"{BASE}/"

CREDS = Credentials(email="alice@example.com", password="s3cret", base_url=BASE + "/")

SIGN_IN_HTML = (FIXTURES / "sign_in.html").read_text()
LANDING_HTML = (FIXTURES / "landing.html").read_text()


def _mock_sign_in(router=respx):
    return router.get(SIGN_IN).mock(
        return_value=httpx.Response(
            200,
            headers={"Set-Cookie": "_session_id=pre; path=/; HttpOnly"},
            text=SIGN_IN_HTML,
        )
    )


def _mock_credentials_post(status: int = 302, router=respx):
    return router.post(SIGN_IN).mock(
        return_value=httpx.Response(
            status,
            headers=[
                ("Location", LANDING),
                ("Set-Cookie", "_session_id=post; path=/; HttpOnly"),
                ("Set-Cookie", "remember_user_token=r1; path=/"),
            ],
        )
    )


def _mock_landing(html: str = LANDING_HTML, status: int = 200, router=respx):
    return router.get(LANDING).mock(return_value=httpx.Response(status, text=html))


@pytest.mark.asyncio
@respx.mock
async def test_login_happy_path():
    sign_in = _mock_sign_in()
    post = _mock_credentials_post()
    landing = _mock_landing()

    async with Transport() as transport:
        session = await login(transport, CREDS)

    assert sign_in.called and post.called and landing.called
    assert session.logged_in is True
    assert session.access_token == "bearer-abc"
    assert session.csrf_token == "csrf-authenticated"
    assert session.authenticity_token == "auth-token-123"
    assert session.cookies.as_dict() == {"_session_id": "post", "remember_user_token": "r1"}
    assert session.my_account_info()["acct"] == "alice"

    form = post.calls.last.request
    assert form.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert form.headers["Cookie"] == "_session_id=pre"
    assert form.headers["X-Csrf-Token"] == "csrf-pre-auth"
    assert form.headers["Referer"] == SIGN_IN
    assert "authorization" not in form.headers
    assert form.content == (
        b"authenticity_token=auth-token-123"
        b"&user%5Bemail%5D=alice%40example.com"
        b"&user%5Bpassword%5D=s3cret"
    )

    home = landing.calls.last.request
    assert home.headers["Cookie"] == "_session_id=post;remember_user_token=r1"


@pytest.mark.asyncio
@respx.mock
async def test_login_accepts_mapping_credentials():
    _mock_sign_in()
    _mock_credentials_post()
    _mock_landing()

    async with Transport() as transport:
        session = await login(
            transport,
            {"userEmail": "alice@example.com", "password": "s3cret", "baseUrl": BASE},
        )

    assert session.base_url == BASE
    assert session.logged_in is True


@pytest.mark.asyncio
async def test_login_missing_credentials_fails_before_network(monkeypatch):
    monkeypatch.setattr("gabclient.core.config.load_dotenv", lambda *a, **k: None)
    monkeypatch.delenv("MASTODON_USEREMAIL", raising=False)
    monkeypatch.delenv("MASTODON_PASSWORD", raising=False)
    monkeypatch.setenv("MASTODON_BASEURL", BASE)

    with respx.mock(assert_all_called=False) as router:
        route = router.route()
        async with Transport() as transport:
            with pytest.raises(MissingCredentialsError) as exc:
                await login(transport)

    assert not route.called
    assert "email" in str(exc.value)
    assert "password" in str(exc.value)


@pytest.mark.asyncio
async def test_login_reads_custom_env_names(monkeypatch):
    monkeypatch.setattr("gabclient.core.config.load_dotenv", lambda *a, **k: None)
    monkeypatch.setenv("GAB_EMAIL", "alice@example.com")
    monkeypatch.setenv("GAB_PASSWORD", "s3cret")
    monkeypatch.setenv("GAB_URL", BASE)

    with respx.mock:
        _mock_sign_in()
        _mock_credentials_post()
        _mock_landing()
        async with Transport() as transport:
            session = await login(
                transport,
                email_env="GAB_EMAIL",
                password_env="GAB_PASSWORD",
                base_url_env="GAB_URL",
            )

    assert session.logged_in is True


@pytest.mark.asyncio
async def test_rejected_credentials_stop_the_flow():
    with respx.mock(assert_all_called=False) as router:
        _mock_sign_in(router)
        _mock_credentials_post(status=200, router=router)
        landing = _mock_landing(router=router)

        async with Transport() as transport:
            with pytest.raises(LoginError) as exc:
                await login(transport, CREDS)

    assert exc.value.step == "credentials"
    assert exc.value.status == 200
    assert "redirect" in str(exc.value)
    assert not landing.called


@pytest.mark.asyncio
async def test_sign_in_page_without_authenticity_token():
    with respx.mock(assert_all_called=False) as router:
        router.get(SIGN_IN).mock(return_value=httpx.Response(200, text="<html></html>"))
        post = _mock_credentials_post(router=router)

        async with Transport() as transport:
            with pytest.raises(LoginError) as exc:
                await login(transport, CREDS)

    assert exc.value.step == "sign_in_page"
    assert not post.called


@pytest.mark.asyncio
@respx.mock
async def test_sign_in_page_network_failure():
    respx.get(SIGN_IN).mock(side_effect=httpx.ConnectError("refused"))

    async with Transport() as transport:
        with pytest.raises(LoginError) as exc:
            await login(transport, CREDS)

    assert exc.value.step == "sign_in_page"
    assert isinstance(exc.value.__cause__, TransportError)


@pytest.mark.asyncio
@respx.mock
async def test_landing_page_error_status():
    _mock_sign_in()
    _mock_credentials_post()
    _mock_landing(html="oops", status=500)

    async with Transport() as transport:
        with pytest.raises(LoginError) as exc:
            await login(transport, CREDS)

    assert exc.value.step == "landing_page"
    assert exc.value.status == 500


@pytest.mark.asyncio
@respx.mock
async def test_landing_page_without_access_token():
    _mock_sign_in()
    _mock_credentials_post()
    _mock_landing(html='<meta name="csrf-token" content="c" />')

    async with Transport() as transport:
        with pytest.raises(LoginError) as exc:
            await login(transport, CREDS)

    assert exc.value.step == "landing_page"


MALFORMED_STATE = '<script id="initial-state" type="application/json">{oops</script>'


@pytest.mark.asyncio
@respx.mock
async def test_landing_page_with_malformed_bootstrap():
    _mock_sign_in()
    _mock_credentials_post()
    _mock_landing(html=MALFORMED_STATE)

    async with Transport() as transport:
        with pytest.raises(LoginError) as exc:
            await login(transport, CREDS)

    assert exc.value.step == "landing_page"
    assert isinstance(exc.value.__cause__, TokenExtractionError)


@pytest.mark.asyncio
async def test_sign_in_page_with_malformed_bootstrap():
    with respx.mock(assert_all_called=False) as router:
        router.get(SIGN_IN).mock(return_value=httpx.Response(200, text=MALFORMED_STATE))
        post = _mock_credentials_post(router=router)

        async with Transport() as transport:
            with pytest.raises(LoginError) as exc:
                await login(transport, CREDS)

    assert exc.value.step == "sign_in_page"
    assert isinstance(exc.value.__cause__, TokenExtractionError)
    assert not post.called


@pytest.mark.asyncio
@respx.mock
async def test_login_persists_session(tmp_path):
    _mock_sign_in()
    _mock_credentials_post()
    _mock_landing()
    path = tmp_path / "session.json"

    async with Transport() as transport:
        await login(transport, CREDS, persist_path=path)

    restored = Session.load(path, CREDS)
    assert restored is not None
    assert restored.logged_in is True
    assert restored.access_token == "bearer-abc"


@pytest.mark.asyncio
@respx.mock
async def test_custom_extractor_is_used():
    class FixedExtractor:
        def extract(self, page):
            if "initial-state" in page:
                return PageTokens(
                    csrf_token="c2",
                    access_token="custom-token",
                    bootstrap_state={"meta": {"access_token": "custom-token"}},
                )
            return PageTokens(authenticity_token="custom-auth", csrf_token="c1")

    _mock_sign_in()
    post = _mock_credentials_post()
    _mock_landing()

    async with Transport() as transport:
        session = await login(transport, CREDS, extractor=FixedExtractor())

    assert session.access_token == "custom-token"
    assert b"authenticity_token=custom-auth" in post.calls.last.request.content


@pytest.mark.asyncio
@respx.mock
async def test_refresh_session_updates_tokens():
    session = Session(CREDS)
    session.cookies.set(["_session_id=post"])
    session.access_token = "stale"
    landing = _mock_landing()

    async with Transport() as transport:
        await refresh_session(transport, session)

    assert session.access_token == "bearer-abc"
    assert landing.calls.last.request.headers["Authorization"] == "Bearer stale"


@pytest.mark.asyncio
async def test_resume_session_reuses_saved_state(tmp_path):
    path = tmp_path / "session.json"
    saved = Session(CREDS, persist_path=path)
    saved.cookies.set(["_session_id=post"])
    saved.logged_in = True
    saved.save()

    with respx.mock(assert_all_called=False) as router:
        sign_in = _mock_sign_in(router)
        landing = _mock_landing(router=router)

        async with Transport() as transport:
            session = await resume_session(transport, path, CREDS)

    assert landing.called
    assert not sign_in.called
    assert session.access_token == "bearer-abc"
    assert Session.load(path, CREDS).access_token == "bearer-abc"


@pytest.mark.asyncio
@respx.mock
async def test_resume_session_logs_in_again_when_refresh_fails(tmp_path):
    path = tmp_path / "session.json"
    saved = Session(CREDS, persist_path=path)
    saved.cookies.set(["_session_id=expired"])
    saved.logged_in = True
    saved.save()

    sign_in = _mock_sign_in()
    _mock_credentials_post()
    respx.get(LANDING).mock(
        side_effect=[
            httpx.Response(500, text="gone"),
            httpx.Response(200, text=LANDING_HTML),
        ]
    )

    async with Transport() as transport:
        session = await resume_session(transport, path, CREDS)

    assert sign_in.called
    assert session.logged_in is True
    assert session.cookies.get("_session_id") == "post"


@pytest.mark.asyncio
@respx.mock
async def test_resume_session_without_file_logs_in(tmp_path):
    path = tmp_path / "session.json"
    _mock_sign_in()
    _mock_credentials_post()
    _mock_landing()

    async with Transport() as transport:
        session = await resume_session(transport, path, CREDS)

    assert session.logged_in is True
    assert path.is_file()


@pytest.mark.asyncio
@respx.mock
async def test_resume_session_ignores_snapshot_of_other_account(tmp_path):
    path = tmp_path / "session.json"
    other = Credentials(email="bob@example.com", password="pw", base_url=BASE)
    stale = Session(other, persist_path=path)
    stale.logged_in = True
    stale.save()

    sign_in = _mock_sign_in()
    _mock_credentials_post()
    _mock_landing()

    async with Transport() as transport:
        session = await resume_session(transport, path, CREDS)

    assert sign_in.called
    assert session.fingerprint() == Session(CREDS).fingerprint()
