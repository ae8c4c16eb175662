# tests/test_auth_e2e.py
import pytest
from httpx import AsyncClient

from helpers import API, bearer, get_session_by_refresh, login_pair, register

pytestmark = pytest.mark.anyio


async def _profile(client: AsyncClient, token: str):
    return await client.get(f"{API}/auth/profile", headers=bearer(token))


async def _refresh(client: AsyncClient, refresh_token: str):
    return await client.post(f"{API}/auth/refresh-token", json={"refreshToken": refresh_token})


async def _logout(client: AsyncClient, access: str, refresh_token: str):
    return await client.post(f"{API}/auth/logout", json={"refreshToken": refresh_token}, headers=bearer(access))


async def test_register_returns_user_and_tokens(client: AsyncClient):
    email, data = await register(client, name="Alice Chen")
    assert data["user"]["email"] == email
    assert data["user"]["name"] == "Alice Chen"
    assert "passwordHash" not in data["user"]
    assert data["tokens"]["tokenType"] == "bearer"

    r = await _profile(client, data["tokens"]["accessToken"])
    assert r.status_code == 200, r.text
    profile = r.json()["data"]["user"]
    assert profile["email"] == email
    assert profile["emailVerifiedAt"] is None


async def test_register_duplicate_email_conflict(client: AsyncClient):
    email, _ = await register(client)
    r = await client.post(
        f"{API}/auth/register",
        json={"name": "Other", "email": email.upper(), "password": "MyStrongPass1"},
    )
    assert r.status_code == 409
    assert r.json()["success"] is False


async def test_register_weak_password_rejected(client: AsyncClient):
    r = await client.post(
        f"{API}/auth/register",
        json={"name": "Weak", "email": "weak@example.com", "password": "alllowercase1"},
    )
    assert r.status_code == 422
    body = r.json()
    assert body["message"] == "Validation failed"
    assert any(e["field"] == "password" for e in body["errors"])


async def test_full_flow(client: AsyncClient):
    """整合測試：register → login → profile → refresh（輪替）→ logout"""
    email, _ = await register(client)
    access, refresh = await login_pair(client, email)

    r = await _profile(client, access)
    assert r.status_code == 200, r.text

    # 輪替：拿到新的一對，舊 refresh 立即失效
    r = await _refresh(client, refresh)
    assert r.status_code == 200, r.text
    new_pair = r.json()["data"]
    assert new_pair["refreshToken"] != refresh

    r = await _refresh(client, refresh)
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid refresh token"

    # 新 refresh 可以再輪替一次
    r = await _refresh(client, new_pair["refreshToken"])
    assert r.status_code == 200, r.text
    latest = r.json()["data"]

    # 登出只撤銷這個 session；access token 仍有效到過期
    r = await _logout(client, latest["accessToken"], latest["refreshToken"])
    assert r.status_code == 200, r.text
    r = await _refresh(client, latest["refreshToken"])
    assert r.status_code == 401
    r = await _profile(client, latest["accessToken"])
    assert r.status_code == 200


async def test_logout_leaves_other_sessions_alive(client: AsyncClient):
    email, _ = await register(client)
    access_a, refresh_a = await login_pair(client, email)
    _, refresh_b = await login_pair(client, email)

    r = await _logout(client, access_a, refresh_a)
    assert r.status_code == 200

    r = await _refresh(client, refresh_b)
    assert r.status_code == 200, r.text


async def test_logout_rejects_token_of_another_user(client: AsyncClient):
    email_a, _ = await register(client)
    email_b, _ = await register(client)
    access_a, _ = await login_pair(client, email_a)
    _, refresh_b = await login_pair(client, email_b)

    r = await _logout(client, access_a, refresh_b)
    assert r.status_code == 401

    session_b = await get_session_by_refresh(refresh_b)
    assert session_b is not None and session_b.revoked_at is None


async def test_revoke_all_invalidates_every_refresh_token(client: AsyncClient):
    email, _ = await register(client)
    access, refresh1 = await login_pair(client, email)
    _, refresh2 = await login_pair(client, email)

    r = await client.post(f"{API}/auth/revoke-all", headers=bearer(access))
    assert r.status_code == 200, r.text

    for token in (refresh1, refresh2):
        r = await _refresh(client, token)
        assert r.status_code == 401

    # 之後重新登入一切正常
    _, fresh = await login_pair(client, email)
    r = await _refresh(client, fresh)
    assert r.status_code == 200
