# app/services/rate_limit.py
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from redis.asyncio import Redis

from app.core.config import get_settings
from app.core.errors import TooManyRequestsError

# 單例 Redis（lazy-init）
_redis: Optional[Redis] = None


@dataclass(frozen=True)
class Scope:
    name: str
    window_sec: int
    max_per_ip: int
    max_per_email_ip: Optional[int] = None
    message: str = "Too many requests. Please try again later."


def _scopes() -> Dict[str, Scope]:
    s = get_settings()
    return {
        "login": Scope(
            "login",
            s.RATE_LIMIT_LOGIN_WINDOW_SEC,
            s.RATE_LIMIT_LOGIN_MAX_PER_IP,
            s.RATE_LIMIT_LOGIN_MAX_PER_EMAIL_IP,
            "Too many login attempts. Please try again later.",
        ),
        "register": Scope(
            "register",
            s.RATE_LIMIT_REGISTER_WINDOW_SEC,
            s.RATE_LIMIT_REGISTER_MAX_PER_IP,
            message="Too many registration attempts. Please try again later.",
        ),
        "password-reset": Scope(
            "password-reset",
            s.RATE_LIMIT_PASSWORD_RESET_WINDOW_SEC,
            s.RATE_LIMIT_PASSWORD_RESET_MAX_PER_IP,
            s.RATE_LIMIT_PASSWORD_RESET_MAX_PER_EMAIL_IP,
            "Too many password reset requests. Please try again later.",
        ),
        "verification": Scope(
            "verification",
            s.RATE_LIMIT_VERIFICATION_WINDOW_SEC,
            s.RATE_LIMIT_VERIFICATION_MAX_PER_IP,
            message="Too many verification requests. Please try again later.",
        ),
    }


def get_scope(name: str) -> Scope:
    return _scopes()[name]


def _get_redis() -> Redis:
    """Lazy 初始化 Redis 連線。"""
    global _redis
    if _redis is None:
        _redis = Redis.from_url(
            get_settings().REDIS_URL,
            encoding="utf-8",
            decode_responses=True,  # 用字串便於除錯
        )
    return _redis


def set_redis(client: Optional[Redis]) -> None:
    """替換連線（測試注入 fakeredis 用）。"""
    global _redis
    _redis = client


def _key_ip(scope: str, ip: str) -> str:
    return f"rl:{scope}:ip:{ip or 'unknown'}"


def _key_email_ip(scope: str, email: str, ip: str) -> str:
    return f"rl:{scope}:ei:{(email or '').lower()}|{ip or 'unknown'}"


async def _prune(redis: Redis, key: str, now_s: float, window_sec: int) -> None:
    """移除滑動視窗外的紀錄（score < now - window）。"""
    await redis.zremrangebyscore(key, "-inf", now_s - window_sec)


async def _retry_after(redis: Redis, key: str, now_s: float, window_sec: int) -> int:
    """距離窗口內最舊紀錄出窗的剩餘秒數（>=1）。"""
    data = await redis.zrange(key, 0, 0, withscores=True)
    oldest = float(data[0][1]) if data else now_s
    return max(1, int(window_sec - (now_s - oldest)))


async def _hit(redis: Redis, key: str, now_s: float, window_sec: int) -> None:
    """記錄一次嘗試（ZSET，score=now）。"""
    # member 加亂數，同一毫秒內的兩次嘗試也會各記一筆
    await redis.zadd(key, {f"{now_s:.3f}-{uuid.uuid4().hex[:8]}": now_s})
    await redis.expire(key, window_sec)


async def check_limit_and_hit(scope: Scope, ip: str, email: Optional[str] = None) -> Tuple[bool, int]:
    """
    檢查是否超出限流；若允許，會「順便記一次嘗試」。
    回傳：(allowed, retry_after_seconds)
      先看 IP 維度，再看 email+IP 維度（scope 有設定時）。
    """
    if not get_settings().RATE_LIMIT_ENABLED:
        return True, 0

    r = _get_redis()
    now_s = time.time()

    # ---- IP 維度 ----
    kip = _key_ip(scope.name, ip)
    await _prune(r, kip, now_s, scope.window_sec)
    if int(await r.zcard(kip)) >= scope.max_per_ip:
        return False, await _retry_after(r, kip, now_s, scope.window_sec)

    # ---- email+IP 維度 ----
    kei = None
    if email and scope.max_per_email_ip is not None:
        kei = _key_email_ip(scope.name, email, ip)
        await _prune(r, kei, now_s, scope.window_sec)
        if int(await r.zcard(kei)) >= scope.max_per_email_ip:
            return False, await _retry_after(r, kei, now_s, scope.window_sec)

    # 允許：記錄一次嘗試
    await _hit(r, kip, now_s, scope.window_sec)
    if kei:
        await _hit(r, kei, now_s, scope.window_sec)
    return True, 0


async def enforce(scope_name: str, ip: Optional[str], email: Optional[str] = None) -> None:
    """超出限流 → 429（帶 Retry-After）。"""
    scope = get_scope(scope_name)
    allowed, retry_after = await check_limit_and_hit(scope, ip or "unknown", email)
    if not allowed:
        raise TooManyRequestsError(scope.message, headers={"Retry-After": str(retry_after)})


async def reset_success(scope_name: str, ip: Optional[str], email: Optional[str]) -> None:
    """
    成功後清空 email+IP 的桶，降低誤鎖風險。
    IP 維度不清空，保留反掃號的保護力。
    """
    if not email or not get_settings().RATE_LIMIT_ENABLED:
        return
    await _get_redis().delete(_key_email_ip(scope_name, email, ip or "unknown"))
