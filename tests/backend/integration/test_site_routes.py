import uuid

import pytest

from portal.core.security import RESTORE_SENTINEL, sign_cookie_value
from portal.models.account import Account


pytestmark = pytest.mark.asyncio


def new_email() -> str:
    return f"user_{uuid.uuid4().hex[:6]}@example.com"


async def sign_up(client, email: str, password: str, confirm: str | None = None):
    body = {"email": email, "password": password}
    if confirm is not None:
        body["passwordConfirm"] = confirm
    return await client.post("/signup/password", json=body)


async def test_pages_render(client):
    for path, page in (("/", "index"), ("/signin", "login"), ("/signup", "register")):
        resp = await client.get(path)
        assert resp.status_code == 200
        assert resp.json()["page"] == page

    resp = await client.get("/healthz")
    assert resp.json() == {"ok": True}


async def test_signup_then_signin(client):
    email = new_email()
    resp = await sign_up(client, email, "Aa1!aaaa", "Aa1!aaaa")
    body = resp.json()
    assert resp.status_code == 200
    assert body["success"] is True
    assert body["data"]["redirectTo"] == "/signin"

    account = await Account.get(email=email)
    assert account.verified is False
    assert account.nickname == email.split("@")[0]

    # Duplicate email
    dup = (await sign_up(client, email, "Aa1!aaaa")).json()
    assert dup["success"] is False
    assert dup["error"]["code"] == "EMAIL_EXISTS"
    assert await Account.filter(email=email).count() == 1

    resp = await client.post("/signin/password", json={"email": email, "password": "Aa1!aaaa"})
    body = resp.json()
    assert resp.status_code == 200
    assert body["success"] is True
    assert body["data"]["redirectTo"] == "/user/dashboard"
    assert "sess" in resp.cookies
    assert "user" not in resp.cookies

    account = await Account.get(email=email)
    assert account.login_count == 1
    assert account.session_count == 1


async def test_signup_rejects_bad_input(client):
    body = (await sign_up(client, "", "Aa1!aaaa")).json()
    assert body["error"]["code"] == "EMAIL_REQUIRED"

    body = (await sign_up(client, "not-an-email", "Aa1!aaaa")).json()
    assert body["error"]["code"] == "EMAIL_INVALID"

    body = (await sign_up(client, new_email(), "")).json()
    assert body["error"]["code"] == "PASSWORD_REQUIRED"

    body = (await sign_up(client, new_email(), "short")).json()
    assert body["success"] is False
    assert body["error"]["code"] == "PASSWORD_WEAK"
    # One line per violated rule
    assert len(body["error"]["message"].split("\n")) > 1

    body = (await sign_up(client, new_email(), "Aa1!aaaa", "Aa1!aaab")).json()
    assert body["error"]["code"] == "PASSWORD_WEAK"

    assert await Account.all().count() == 0


async def test_signin_failures_are_indistinguishable(client, create_account):
    account, _ = await create_account()

    wrong = await client.post("/signin/password", json={"email": account.email, "password": "Wrong#123"})
    unknown = await client.post("/signin/password", json={"email": new_email(), "password": "Wrong#123"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json()
    assert wrong.json()["detail"]["code"] == "AUTH_INVALID_CREDENTIALS"
    assert "sess" not in wrong.cookies

    missing = await client.post("/signin/password", json={"email": account.email, "password": ""})
    assert missing.status_code == 400
    assert missing.json()["detail"]["code"] == "PASSWORD_REQUIRED"


async def test_restore_sentinel_is_not_a_password(client, account_store):
    email = new_email()
    await account_store.sign_up(email, None, "ext", verified=True)

    resp = await client.post("/signin/password", json={"email": email, "password": RESTORE_SENTINEL})
    assert resp.status_code == 401

    account = await Account.get(email=email)
    assert account.login_count == 0
    assert account.session_count == 0


async def test_remember_me_restores_session(client, create_account, sign_in):
    account, _ = await create_account(verified=True)
    resp = await sign_in(account.email, remember=True)
    for name in ("sess", "user", "loginType", "password"):
        assert name in resp.cookies

    # Session gone, restore cookies still there
    client.cookies.delete("sess")
    resp = await client.get("/user/statistics")
    assert resp.status_code == 200
    assert "sess" in resp.cookies

    account = await Account.get(id=account.id)
    assert account.login_count == 1
    assert account.session_count == 2

    # The new session cookie carries the identity from now on
    resp = await client.get("/user/statistics")
    assert resp.status_code == 200
    account = await Account.get(id=account.id)
    assert account.session_count == 2


async def test_forged_restore_cookies_are_ignored(client, create_account):
    account, _ = await create_account(verified=True)

    client.cookies.set("user", account.email)
    client.cookies.set("loginType", "local")
    client.cookies.set("password", RESTORE_SENTINEL)
    assert (await client.get("/user/statistics")).status_code == 401

    # Signed values swapped between cookie names do not validate either
    client.cookies.set("user", sign_cookie_value("loginType", account.email))
    client.cookies.set("loginType", sign_cookie_value("loginType", "local"))
    client.cookies.set("password", sign_cookie_value("password", RESTORE_SENTINEL))
    assert (await client.get("/user/statistics")).status_code == 401

    account = await Account.get(id=account.id)
    assert account.session_count == 0


async def test_signout_clears_cookies(client, create_account, sign_in):
    account, _ = await create_account(verified=True)
    await sign_in(account.email, remember=True)
    assert (await client.get("/user/statistics")).status_code == 200

    resp = await client.post("/signout")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    for name in ("sess", "user", "loginType", "password"):
        assert name not in client.cookies

    assert (await client.get("/user/statistics")).status_code == 401


async def test_signin_returns_to_requested_page(client, create_account, sign_in):
    account, _ = await create_account()

    resp = await client.get("/user/profile")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/signin"

    resp = await sign_in(account.email)
    assert resp.json()["data"]["redirectTo"] == "/user/profile"
    assert "returnTo" not in client.cookies


async def test_foreign_return_to_falls_back_to_dashboard(client, create_account, sign_in):
    account, _ = await create_account()
    client.cookies.set("returnTo", "//evil.example.com/")
    resp = await sign_in(account.email)
    assert resp.json()["data"]["redirectTo"] == "/user/dashboard"


async def test_signout_with_restore_cookies_does_not_count_a_session(client, create_account, sign_in):
    account, _ = await create_account(verified=True)
    await sign_in(account.email, remember=True)
    client.cookies.delete("sess")

    resp = await client.post("/signout")
    assert resp.status_code == 200

    account = await Account.get(id=account.id)
    assert account.login_count == 1
    assert account.session_count == 1
    for name in ("user", "loginType", "password"):
        assert name not in client.cookies


async def test_signin_with_restore_cookies_counts_once(client, create_account, sign_in):
    account, _ = await create_account(verified=True)
    await sign_in(account.email, remember=True)
    client.cookies.delete("sess")

    await sign_in(account.email)

    account = await Account.get(id=account.id)
    assert account.login_count == 2
    assert account.session_count == 2


async def post_raw_json(client, path: str, raw: str):
    # Lone surrogates only survive as \u escapes inside the JSON text
    return await client.post(path, content=raw.encode("ascii"), headers={"content-type": "application/json"})


async def test_surrogate_passwords_do_not_crash(client, create_account):
    email = new_email()
    resp = await post_raw_json(
        client, "/signup/password", '{"email": "%s", "password": "Aa1!aaaa\\ud800"}' % email
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    resp = await post_raw_json(
        client, "/signin/password", '{"email": "%s", "password": "Aa1!aaaa\\ud800"}' % email
    )
    assert resp.status_code == 200

    resp = await post_raw_json(client, "/signin/password", '{"email": "%s", "password": "\\ud800"}' % email)
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "AUTH_INVALID_CREDENTIALS"


async def test_surrogate_email_is_rejected_like_unknown_email(client):
    resp = await post_raw_json(client, "/signin/password", '{"email": "a\\ud800@b.com", "password": "Aa1!aaaa"}')
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "AUTH_INVALID_CREDENTIALS"
