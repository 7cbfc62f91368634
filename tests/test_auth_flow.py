"""Tests for signup, login, logout and the members page."""
import pytest
from markupsafe import escape

from web.api.utils import MEMBER_IMAGES
from web.auth import verify_password


@pytest.mark.asyncio
async def test_home_anonymous(client):
    r = await client.get("/")
    assert r.status_code == 200
    assert "Welcome" in r.text


@pytest.mark.asyncio
async def test_signup_creates_session_and_redirects(client, app):
    """alice signs up: redirect to members, session authenticated as alice."""
    r = await client.post(
        "/signup",
        data={"username": "alice", "email": "a@x.com", "password": "pw12345"},
    )
    assert r.status_code == 302
    assert r.headers["location"] == "/members"
    set_cookie = r.headers["set-cookie"].lower()
    assert "httponly" in set_cookie
    assert "max-age=3600" in set_cookie

    token = client.cookies.get("clubhouse_session")
    session = await app.state.sessions.resolve(token)
    assert session.authenticated
    assert session.username == "alice"
    assert session.role == "user"

    r = await client.get("/")
    assert "Hello, alice!" in r.text


@pytest.mark.asyncio
async def test_signup_stores_hash_not_plaintext(alice, app):
    user = await app.state.users.find_by_email("a@x.com")
    assert user is not None
    assert user.role == "user"
    assert user.password_hash != "pw12345"
    assert "pw12345" not in user.password_hash
    assert verify_password("pw12345", user.password_hash)
    assert not verify_password("wrong", user.password_hash)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data,message",
    [
        ({"username": "al ice", "email": "a@x.com", "password": "pw"}, "alpha-numeric"),
        ({"username": "a" * 21, "email": "a@x.com", "password": "pw"}, "less than or equal to 20"),
        ({"username": "alice", "email": "not-an-email", "password": "pw"}, '"email" must be a valid email'),
        ({"username": "alice", "email": "a@x.com", "password": "p" * 21}, '"password" length'),
        ({"email": "a@x.com", "password": "pw"}, '"username" is required'),
    ],
)
async def test_signup_rejects_bad_input_before_store(client, app, monkeypatch, data, message):
    """Schema failures never reach hashing or the credential store."""
    touched = []

    async def _create(*args, **kwargs):
        touched.append("create")

    def _hash(*args, **kwargs):
        touched.append("hash")
        return "x"

    monkeypatch.setattr(app.state.users, "create", _create)
    monkeypatch.setattr("web.api.routes.hash_password", _hash)

    r = await client.post("/signup", data=data)
    assert r.status_code == 200
    assert str(escape(message)) in r.text
    assert touched == []
    assert client.cookies.get("clubhouse_session") is None


@pytest.mark.asyncio
async def test_login_rejects_malformed_email_before_store(client, app, monkeypatch):
    touched = []

    async def _find(*args, **kwargs):
        touched.append("find")

    monkeypatch.setattr(app.state.users, "find_by_email", _find)
    r = await client.post("/login", data={"email": "nope", "password": "pw12345"})
    assert r.status_code == 200
    assert str(escape('"email" must be a valid email')) in r.text
    assert touched == []


@pytest.mark.asyncio
async def test_signup_duplicate_email(alice, make_client):
    other = make_client()
    r = await other.post(
        "/signup",
        data={"username": "alice2", "email": "a@x.com", "password": "pw12345"},
    )
    assert r.status_code == 200
    assert "An account with that email already exists" in r.text


@pytest.mark.asyncio
async def test_duplicate_usernames_allowed(alice, make_client, app):
    other = make_client()
    r = await other.post(
        "/signup",
        data={"username": "alice", "email": "b@x.com", "password": "pw12345"},
    )
    assert r.status_code == 302
    assert len(await app.state.users.find_by_username("alice")) == 2


@pytest.mark.asyncio
async def test_login_success(alice, make_client, app):
    browser = make_client()
    r = await browser.post("/login", data={"email": "a@x.com", "password": "pw12345"})
    assert r.status_code == 302
    assert r.headers["location"] == "/members"
    session = await app.state.sessions.resolve(browser.cookies.get("clubhouse_session"))
    assert session.username == "alice"
    assert session.role == "user"


@pytest.mark.asyncio
async def test_wrong_password_and_unknown_email_look_the_same(alice, make_client):
    wrong_password = make_client()
    unknown_email = make_client()
    r1 = await wrong_password.post("/login", data={"email": "a@x.com", "password": "nope123"})
    r2 = await unknown_email.post("/login", data={"email": "ghost@x.com", "password": "nope123"})
    assert r1.status_code == r2.status_code == 200
    assert "Invalid email or password" in r1.text
    assert r1.text == r2.text
    assert wrong_password.cookies.get("clubhouse_session") is None
    assert unknown_email.cookies.get("clubhouse_session") is None


@pytest.mark.asyncio
async def test_members_requires_login(client):
    r = await client.get("/members")
    assert r.status_code == 302
    assert r.headers["location"] == "/"


@pytest.mark.asyncio
async def test_members_greets_with_random_image(alice):
    r = await alice.get("/members")
    assert r.status_code == 200
    assert "Hello, alice." in r.text
    assert any(f'data-image="{img}"' in r.text for img in MEMBER_IMAGES)


@pytest.mark.asyncio
async def test_logout_destroys_session(alice, make_client):
    token = alice.cookies.get("clubhouse_session")
    assert token

    r = await alice.get("/logout")
    assert r.status_code == 302
    assert r.headers["location"] == "/"

    r = await alice.get("/members")
    assert r.status_code == 302

    # Replaying the old cookie value is anonymous too
    replay = make_client()
    r = await replay.get("/members", headers={"Cookie": f"clubhouse_session={token}"})
    assert r.status_code == 302
    assert r.headers["location"] == "/"


@pytest.mark.asyncio
async def test_tampered_cookie_is_anonymous(make_client):
    browser = make_client()
    r = await browser.get("/members", headers={"Cookie": "clubhouse_session=not-a-token"})
    assert r.status_code == 302


@pytest.mark.asyncio
async def test_signup_persistence_failure_renders_500(client, app, monkeypatch):
    from store import PersistenceError

    async def _create(*args, **kwargs):
        raise PersistenceError("Failed to create user")

    monkeypatch.setattr(app.state.users, "create", _create)
    r = await client.post(
        "/signup",
        data={"username": "alice", "email": "a@x.com", "password": "pw12345"},
    )
    assert r.status_code == 500
    assert "Something went wrong" in r.text


@pytest.mark.asyncio
async def test_unknown_path_is_404(client):
    r = await client.get("/no/such/page")
    assert r.status_code == 404
    assert "Page not found" in r.text


@pytest.mark.asyncio
async def test_login_persistence_failure_renders_500(client, app, monkeypatch):
    from store import PersistenceError

    async def _find(*args, **kwargs):
        raise PersistenceError("Failed to look up user")

    monkeypatch.setattr(app.state.users, "find_by_email", _find)
    r = await client.post("/login", data={"email": "a@x.com", "password": "pw12345"})
    assert r.status_code == 500
    assert "Something went wrong" in r.text
    assert client.cookies.get("clubhouse_session") is None


@pytest.mark.asyncio
async def test_logged_in_nav_on_form_rerender(alice):
    r = await alice.post("/signup", data={"username": "bad name", "email": "c@x.com", "password": "pw"})
    assert r.status_code == 200
    assert 'href="/logout"' in r.text

    r = await alice.post("/login", data={"email": "a@x.com", "password": "wrong12"})
    assert "Invalid email or password" in r.text
    assert 'href="/logout"' in r.text


@pytest.mark.asyncio
async def test_logged_in_nav_on_error_pages(alice, app, monkeypatch):
    r = await alice.get("/no/such/page")
    assert r.status_code == 404
    assert 'href="/logout"' in r.text

    from store import PersistenceError

    async def _find(*args, **kwargs):
        raise PersistenceError("Failed to look up users")

    monkeypatch.setattr(app.state.users, "find_by_username", _find)
    r = await alice.get("/nosql-injection?user=alice")
    assert r.status_code == 500
    assert 'href="/logout"' in r.text


@pytest.mark.asyncio
async def test_anonymous_nav_on_404(client):
    r = await client.get("/missing")
    assert 'href="/login"' in r.text
    assert 'href="/logout"' not in r.text
