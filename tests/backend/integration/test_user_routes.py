import pytest

from portal.core.security import check_hash
from portal.models.account import Account


pytestmark = pytest.mark.asyncio


async def test_page_guard_redirects_to_signin(client):
    for path in ("/user/dashboard", "/user/profile"):
        resp = await client.get(path)
        assert resp.status_code == 303
        assert resp.headers["location"] == "/signin"


async def test_api_guard_answers_empty_401(client):
    for method, path in (
        ("GET", "/user/list"),
        ("GET", "/user/statistics"),
        ("POST", "/user/verify"),
    ):
        resp = await client.request(method, path)
        assert resp.status_code == 401
        assert resp.content == b""

    resp = await client.post("/user/profile", json={"nickname": "x"})
    assert resp.status_code == 401


async def test_verified_guard_answers_empty_403(client, create_account, sign_in):
    account, _ = await create_account(verified=False)
    await sign_in(account.email)

    for path in ("/user/list", "/user/statistics"):
        resp = await client.get(path)
        assert resp.status_code == 403
        assert resp.content == b""


async def test_dashboard_and_profile(client, create_account, sign_in):
    account, _ = await create_account()
    await sign_in(account.email)

    resp = await client.get("/user/dashboard")
    body = resp.json()
    assert resp.status_code == 200
    assert body["page"] == "dashboard"
    assert body["params"] == {"id": account.id, "isVerified": False}

    resp = await client.post("/user/profile", json={"nickname": "  New Nick "})
    assert resp.json()["data"]["updated"] == 1

    resp = await client.get("/user/profile")
    assert resp.json()["params"] == {"nickname": "New Nick", "email": account.email}

    # Empty nickname changes nothing
    resp = await client.post("/user/profile", json={"nickname": "   "})
    assert resp.json()["data"]["updated"] == 0
    assert (await Account.get(id=account.id)).nickname == "New Nick"


async def test_user_list(client, create_account, sign_in):
    first, _ = await create_account(verified=True)
    second, _ = await create_account()
    await sign_in(first.email)

    resp = await client.get("/user/list")
    rows = resp.json()
    assert resp.status_code == 200
    assert [row["id"] for row in rows] == [first.id, second.id]
    assert rows[0]["loginCount"] == 1
    assert rows[0]["sessionCount"] == 1
    assert rows[0]["verified"] is True
    assert rows[1]["lastSession"] is None
    for row in rows:
        assert "password_hash" not in row
        assert "passwordHash" not in row
        assert "verify_token" not in row


async def test_user_statistics(client, create_account, sign_in):
    account, _ = await create_account(verified=True)
    await create_account()
    await sign_in(account.email)

    resp = await client.get("/user/statistics")
    body = resp.json()
    assert resp.status_code == 200
    assert body["totalCount"] == 2
    assert body["todayActive"] == 1
    assert body["weeklyAverage"] == pytest.approx(1 / 7)


async def test_reset_password(client, create_account, sign_in):
    account, password = await create_account()
    other, _ = await create_account()
    await sign_in(account.email)

    # Someone else's id
    resp = await client.post(
        "/user/reset-password",
        json={"userId": other.id, "oldPassword": password, "password": "New#12345"},
    )
    assert resp.json() == {"isValid": False, "message": "Failed to update password"}

    resp = await client.post(
        "/user/reset-password",
        json={"userId": account.id, "oldPassword": password, "password": password},
    )
    body = resp.json()
    assert body["isValid"] is False
    assert body["message"] == "New password must be different from the old password"

    resp = await client.post(
        "/user/reset-password",
        json={"userId": account.id, "oldPassword": "Wrong#123", "password": "New#12345"},
    )
    assert resp.json()["message"] == "Old password mismatch"

    resp = await client.post(
        "/user/reset-password",
        json={"userId": account.id, "oldPassword": password, "password": "weak"},
    )
    assert resp.json()["isValid"] is False

    resp = await client.post(
        "/user/reset-password",
        json={"userId": str(account.id), "oldPassword": password, "password": "New#12345"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"isValid": True, "information": "Password updated"}
    assert check_hash("New#12345", (await Account.get(id=account.id)).password_hash)

    # Other account untouched
    assert check_hash(password, (await Account.get(id=other.id)).password_hash)


async def test_reset_password_requires_session_and_user_id(client, create_account, sign_in):
    account, password = await create_account()
    payload = {"userId": account.id, "oldPassword": password, "password": "New#12345"}

    resp = await client.post("/user/reset-password", json=payload)
    assert resp.status_code == 401
    assert resp.json() == {"isValid": False, "message": "Not signed in"}

    await sign_in(account.email)
    resp = await client.post("/user/reset-password", json={**payload, "userId": None})
    assert resp.status_code == 401
    resp = await client.post("/user/reset-password", json={**payload, "userId": "abc"})
    assert resp.status_code == 401


async def test_email_verification_flow(client, create_account, sign_in, outbox):
    account, _ = await create_account()
    await sign_in(account.email)

    resp = await client.post("/user/verify")
    assert resp.json()["success"] is True
    assert len(outbox.sent) == 1
    email, first_token = outbox.sent[0]
    assert email == account.email

    # A newer token makes the first one stale
    await client.post("/user/verify")
    _, second_token = outbox.sent[1]
    assert second_token != first_token

    encoded = account.email.replace("@", "%40")
    resp = await client.get(f"/user/verify/{encoded}/{first_token}")
    assert resp.json() == {"page": "verify", "params": {"email": account.email, "isVerified": False}}

    resp = await client.get(f"/user/verify/{encoded}/{second_token}")
    assert resp.json()["params"]["isVerified"] is True
    assert (await Account.get(id=account.id)).verified is True

    # Verified accounts reach the verified-only routes
    assert (await client.get("/user/list")).status_code == 200
