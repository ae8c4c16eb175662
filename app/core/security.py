# app/core/security.py
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from jose import JWTError, jwt

from app.core.config import settings

# === Password Hashing（Argon2id） ===
_hasher = PasswordHasher(
    time_cost=settings.ARGON2_TIME_COST,
    memory_cost=settings.ARGON2_MEMORY_COST,
    parallelism=settings.ARGON2_PARALLELISM,
)

# 載入時先算好，每次未知帳號登入的成本都只有一次 verify
_DUMMY_PASSWORD_HASH = _hasher.hash(secrets.token_hex(16))


def hash_password(plain: str) -> str:
    return _hasher.hash(plain)


def verify_password(plain: str, password_hash: str) -> bool:
    try:
        return _hasher.verify(password_hash, plain)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def dummy_password_hash() -> str:
    """
    找不到使用者時用來比對的假雜湊。
    登入流程一律執行一次 verify，避免以回應時間探測 email 是否存在。
    """
    return _DUMMY_PASSWORD_HASH


# === Opaque tokens（驗證信 / 重設密碼） ===
def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # 高熵亂數字串，使用快速雜湊即可（不同於密碼）
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# === JWT Helpers ===
def utcnow() -> datetime:
    """DB 一律存 naive UTC。"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _encode(claims: Dict[str, Any], key: str) -> str:
    return jwt.encode(claims, key, algorithm=settings.JWT_ALGORITHM)


def _decode(token: str, key: str) -> Dict[str, Any]:
    return jwt.decode(token, key, algorithms=[settings.JWT_ALGORITHM])


# === Issue Tokens ===
def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    """簽發 Access Token（sub, type=access, jti, iat, exp）"""
    now = _now_utc()
    claims = {
        "sub": str(user_id),
        "type": "access",
        "jti": str(uuid4()),
        "iat": int(now.timestamp()),
        "exp": now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return _encode(claims, settings.SECRET_KEY)


def create_refresh_token(user_id: int, expires_minutes: Optional[int] = None) -> Tuple[str, datetime]:
    """
    簽發 Refresh Token，回傳 (token, expires_at)；expires_at 為 naive UTC，直接寫入 session。
    jti 為隨機值，同一秒內簽發的兩張 token 雜湊也不會相同。
    """
    now = _now_utc()
    exp = now + timedelta(minutes=expires_minutes or settings.REFRESH_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(user_id),
        "type": "refresh",
        "jti": str(uuid4()),
        "iat": int(now.timestamp()),
        "exp": exp,
    }
    # JWT exp 精度為秒，session 的 expires_at 對齊
    expires_at = exp.replace(tzinfo=None, microsecond=0)
    return _encode(claims, settings.refresh_secret), expires_at


# === Verify / Decode ===
def decode_access_token(token: str) -> Dict[str, Any]:
    """驗證並解出 Access Token；type 不為 access 會拋 JWTError。"""
    payload = _decode(token, settings.SECRET_KEY)
    if payload.get("type") != "access":
        raise JWTError("Invalid token type for this endpoint (need access token).")
    return payload


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """驗證並解出 Refresh Token；type 不為 refresh 會拋 JWTError。"""
    payload = _decode(token, settings.refresh_secret)
    if payload.get("type") != "refresh":
        raise JWTError("Invalid token type for refresh.")
    return payload
