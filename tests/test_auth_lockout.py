# tests/test_auth_lockout.py
from datetime import timedelta

import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.core.security import dummy_password_hash, utcnow
from app.services import auth as auth_service
from helpers import PASSWORD, get_user, login, register, set_user_fields, unique_email

pytestmark = pytest.mark.anyio


async def test_unknown_email_and_wrong_password_look_the_same(client: AsyncClient):
    email, _ = await register(client)

    r_unknown = await login(client, unique_email("ghost"), PASSWORD)
    r_wrong = await login(client, email, "WrongPass123")

    assert r_unknown.status_code == r_wrong.status_code == 401
    assert r_unknown.json()["message"] == r_wrong.json()["message"] == "Invalid email or password"


async def test_unknown_email_still_runs_password_verify(client: AsyncClient, monkeypatch):
    calls = []
    real_verify = auth_service.verify_password

    def spy(password, hashed):
        calls.append((password, hashed))
        return real_verify(password, hashed)

    monkeypatch.setattr(auth_service, "verify_password", spy)

    r = await login(client, unique_email("ghost"), PASSWORD)
    assert r.status_code == 401
    # 找不到帳號也要對假雜湊做一次完整比對
    assert calls == [(PASSWORD, dummy_password_hash())]


async def test_lock_after_max_failed_attempts(client: AsyncClient):
    email, _ = await register(client)

    for _ in range(settings.AUTH_MAX_LOGIN_ATTEMPTS):
        r = await login(client, email, "WrongPass123")
        assert r.status_code == 401
        assert r.json()["message"] == "Invalid email or password"

    user = await get_user(email)
    assert user.failed_login_attempts == settings.AUTH_MAX_LOGIN_ATTEMPTS
    assert user.locked_until is not None and user.locked_until > utcnow()

    # 密碼正確才會看到鎖定訊息
    r = await login(client, email, PASSWORD)
    assert r.status_code == 401
    assert r.json()["message"].startswith("Account is locked")


async def test_failed_attempts_below_threshold_do_not_lock(client: AsyncClient):
    email, _ = await register(client)
    for _ in range(settings.AUTH_MAX_LOGIN_ATTEMPTS - 1):
        await login(client, email, "WrongPass123")

    user = await get_user(email)
    assert user.locked_until is None

    # 成功登入後計數歸零
    r = await login(client, email, PASSWORD)
    assert r.status_code == 200
    user = await get_user(email)
    assert user.failed_login_attempts == 0
    assert user.last_login_at is not None


async def test_expired_lock_is_lifted_on_next_login(client: AsyncClient):
    email, _ = await register(client)
    await set_user_fields(
        email,
        failed_login_attempts=settings.AUTH_MAX_LOGIN_ATTEMPTS,
        locked_until=utcnow() - timedelta(minutes=1),
    )

    r = await login(client, email, PASSWORD)
    assert r.status_code == 200, r.text

    user = await get_user(email)
    assert user.failed_login_attempts == 0
    assert user.locked_until is None


async def test_disabled_account_only_revealed_with_correct_password(client: AsyncClient):
    email, _ = await register(client)
    await set_user_fields(email, is_active=False)

    r = await login(client, email, "WrongPass123")
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid email or password"

    r = await login(client, email, PASSWORD)
    assert r.status_code == 401
    assert r.json()["message"] == "Account is disabled"


async def test_login_email_is_case_insensitive(client: AsyncClient):
    email, _ = await register(client)
    r = await login(client, email.upper(), PASSWORD)
    assert r.status_code == 200, r.text


async def test_register_lock_then_unlock_scenario(client: AsyncClient):
    """
    註冊 → 連續 3 次錯誤密碼 → 正確密碼仍被鎖 → 鎖定時間過後 → 正確密碼登入成功且計數歸零
    """
    email, _ = await register(client, name="Kevin Lock")

    for _ in range(3):
        r = await login(client, email, "WrongPass123")
        assert r.status_code == 401

    r = await login(client, email, PASSWORD)
    assert r.status_code == 401
    assert "locked" in r.json()["message"]

    # 模擬 30 分鐘過去
    user = await get_user(email)
    await set_user_fields(email, locked_until=user.locked_until - timedelta(minutes=31))

    r = await login(client, email, PASSWORD)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["user"]["email"] == email

    user = await get_user(email)
    assert user.failed_login_attempts == 0
    assert user.locked_until is None
