# app/services/auth.py
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, Type

from jose import JWTError
from loguru import logger
from sqlalchemy.exc import IntegrityError

from app.core.config import Settings
from app.core.errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    dummy_password_hash,
    generate_token,
    hash_password,
    hash_token,
    utcnow,
    verify_password,
)
from app.models.auth_tokens import EmailVerificationToken, PasswordResetToken
from app.models.users import User
from app.queue.base import JobQueue
from app.repositories.auth import ActionToken, AuthRepository
from app.schemas.auth import (
    AuthResponse,
    AuthUser,
    ProfileResponse,
    ProfileUser,
    TokenPair,
)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid refresh token"


@dataclass
class ClientMeta:
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class AuthService:
    """
    認證核心：
      - 註冊（自動登入 + 寄驗證信）
      - 登入狀態機（失敗計數 / 鎖定 / 停用）
      - Refresh token 單次輪替
      - Email 驗證、忘記密碼 / 重設密碼
      - 登出 / 全部登出
    """

    def __init__(self, repo: AuthRepository, queue: JobQueue, settings: Settings):
        self.repo = repo
        self.queue = queue
        self.settings = settings

    # === Register ===
    async def register(self, name: str, email: str, password: str, meta: Optional[ClientMeta] = None) -> AuthResponse:
        if await self.repo.find_by_email(email):
            raise ConflictError("Email already registered")

        try:
            user = await self.repo.create_user(name=name, email=email, password_hash=hash_password(password))
            raw_verification = await self._issue_action_token(
                EmailVerificationToken,
                user.id,
                timedelta(hours=self.settings.AUTH_EMAIL_VERIFICATION_EXPIRATION_HOURS),
            )
            tokens = await self._create_session(user, meta)
            await self.repo.commit()
        except IntegrityError:
            # 併發註冊同一 email：unique constraint 擋下
            await self.repo.rollback()
            raise ConflictError("Email already registered")

        # 使用者已 commit：佇列掛掉也要回 201，之後可用 resend 補寄
        await self._enqueue_safely(self.queue.enqueue_email_verification, user.id, user.email, raw_verification)
        logger.info("User registered: {}", user.id)
        return AuthResponse(user=AuthUser.model_validate(user), tokens=tokens)

    # === Login ===
    async def login(self, email: str, password: str, meta: Optional[ClientMeta] = None) -> AuthResponse:
        user = await self.repo.find_by_email(email)
        if user is None:
            # 一律做一次 verify，避免以回應時間判斷 email 是否存在
            verify_password(password, dummy_password_hash())
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not verify_password(password, user.password_hash):
            await self._record_failed_login(user)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        # 以下訊息只在密碼正確後才會出現
        if not user.is_active:
            raise UnauthorizedError("Account is disabled")

        if user.locked_until is not None and user.locked_until > utcnow():
            raise UnauthorizedError(
                f"Account is locked. Try again after {user.locked_until.isoformat()}Z"
            )

        # 鎖定已過期（lazy unlock）或未鎖定：重置計數
        await self.repo.reset_login_stats(user)
        tokens = await self._create_session(user, meta)
        await self.repo.commit()

        logger.info("User logged in: {}", user.id)
        return AuthResponse(user=AuthUser.model_validate(user), tokens=tokens)

    async def _record_failed_login(self, user: User) -> None:
        attempts = await self.repo.increment_failed_login(user.id)
        if attempts >= self.settings.AUTH_MAX_LOGIN_ATTEMPTS:
            locked_until = utcnow() + timedelta(minutes=self.settings.AUTH_LOCK_DURATION_MINUTES)
            await self.repo.lock_user(user.id, locked_until)
            logger.warning("User {} locked until {} after {} failed attempts", user.id, locked_until, attempts)
        await self.repo.commit()

    # === Sessions ===
    async def _create_session(self, user: User, meta: Optional[ClientMeta]) -> TokenPair:
        meta = meta or ClientMeta()
        access_token = create_access_token(user.id)
        refresh_token, expires_at = create_refresh_token(user.id)
        await self.repo.create_session(
            user_id=user.id,
            refresh_token_hash=hash_token(refresh_token),
            expires_at=expires_at,
            user_agent=meta.user_agent,
            ip_address=meta.ip,
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def refresh_token(self, token: str) -> TokenPair:
        """
        單次輪替：
          1️⃣ 驗 JWT 簽章 / exp / type
          2️⃣ 以雜湊找未撤銷的 session；找不到 = 從未簽發或已輪替過（重用偵測）
          3️⃣ session 過期 → 撤銷並拒絕；使用者停用 → 拒絕
          4️⃣ 條件式覆寫雜湊（舊 token 立即失效），簽發新的 access / refresh
        """
        try:
            claims = decode_refresh_token(token)
        except JWTError:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        old_hash = hash_token(token)
        session = await self.repo.find_active_session_by_hash(old_hash)
        if session is None or str(session.user_id) != str(claims.get("sub")):
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        if session.expires_at <= utcnow():
            await self.repo.revoke_session(session.id)
            await self.repo.commit()
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        user = await self.repo.find_by_id(session.user_id)
        if user is None or not user.is_active:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        new_refresh, expires_at = create_refresh_token(user.id)
        rotated = await self.repo.rotate_session_hash(session.id, old_hash, hash_token(new_refresh), expires_at)
        if not rotated:
            # 併發 refresh：另一個請求已先輪替
            await self.repo.rollback()
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)
        await self.repo.commit()

        return TokenPair(access_token=create_access_token(user.id), refresh_token=new_refresh)

    async def logout(self, user_id: int, refresh_token: str) -> None:
        """只撤銷這張 refresh token 的 session；access token 仍有效直到自然過期。"""
        session = await self.repo.find_active_session_by_hash(hash_token(refresh_token), user_id=user_id)
        if session is None:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)
        await self.repo.revoke_session(session.id)
        await self.repo.commit()

    async def revoke_all_sessions(self, user_id: int) -> int:
        revoked = await self.repo.revoke_all_user_sessions(user_id)
        await self.repo.commit()
        logger.info("Revoked {} session(s) for user {}", revoked, user_id)
        return revoked

    # === Profile ===
    async def get_profile(self, user_id: int) -> ProfileResponse:
        user = await self.repo.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return ProfileResponse(user=ProfileUser.model_validate(user))

    # === Action tokens ===
    async def _issue_action_token(self, model: Type[ActionToken], user_id: int, ttl: timedelta) -> str:
        """產生原始 token 並只存雜湊；回傳原始 token 供寄信。"""
        raw = generate_token()
        await self.repo.create_action_token(model, user_id, hash_token(raw), utcnow() + ttl)
        return raw

    async def _load_usable_token(self, model: Type[ActionToken], raw: str, not_found_message: str) -> ActionToken:
        token = await self.repo.find_action_token(model, hash_token(raw))
        if token is None:
            raise BadRequestError(not_found_message)
        if token.used_at is not None:
            raise BadRequestError("Token already used")
        if token.expires_at < utcnow():
            raise BadRequestError("Token expired")
        return token

    async def _enqueue_safely(
        self, enqueue: Callable[..., Awaitable[Any]], user_id: int, email: str, raw: str
    ) -> None:
        """token 已落地後才排寄信；排入失敗只記錄，不影響 API 回應。"""
        try:
            await enqueue(user_id, email, raw)
        except Exception:
            logger.exception("Failed to enqueue email job for user {}", user_id)

    async def send_verification_email(self, user: User) -> None:
        raw = await self._issue_action_token(
            EmailVerificationToken,
            user.id,
            timedelta(hours=self.settings.AUTH_EMAIL_VERIFICATION_EXPIRATION_HOURS),
        )
        await self.repo.commit()
        await self._enqueue_safely(self.queue.enqueue_email_verification, user.id, user.email, raw)

    async def resend_verification(self, user_id: int) -> None:
        user = await self.repo.find_by_id(user_id)
        # 不存在或已驗證：靜默略過
        if user is None or user.email_verified_at is not None:
            return
        await self.send_verification_email(user)

    async def verify_email(self, raw_token: str) -> None:
        token = await self._load_usable_token(
            EmailVerificationToken, raw_token, "Invalid or expired verification token"
        )
        # used_at 與 email_verified_at 同一交易
        if not await self.repo.consume_action_token(EmailVerificationToken, token.id):
            await self.repo.rollback()
            raise BadRequestError("Token already used")
        await self.repo.mark_email_verified(token.user_id)
        await self.repo.commit()
        logger.info("Email verified for user {}", token.user_id)

    async def forgot_password(self, email: str) -> None:
        user = await self.repo.find_by_email(email)
        # 不論帳號是否存在都回成功（防探測）；只有啟用中的帳號才真的發 token
        if user is None or not user.is_active:
            return
        raw = await self._issue_action_token(
            PasswordResetToken,
            user.id,
            timedelta(minutes=self.settings.AUTH_PASSWORD_RESET_EXPIRATION_MINUTES),
        )
        await self.repo.commit()
        # 佇列錯誤不能外洩成 500，否則已知 / 未知 email 的回應會不同
        await self._enqueue_safely(self.queue.enqueue_password_reset, user.id, user.email, raw)

    async def reset_password(self, raw_token: str, new_password: str) -> None:
        token = await self._load_usable_token(PasswordResetToken, raw_token, "Invalid or expired reset token")
        password_hash = hash_password(new_password)

        if not await self.repo.consume_action_token(PasswordResetToken, token.id):
            await self.repo.rollback()
            raise BadRequestError("Token already used")
        await self.repo.update_password(token.user_id, password_hash)
        # 強制所有裝置重新登入，偷來的 refresh token 一併失效
        await self.repo.revoke_all_user_sessions(token.user_id)
        await self.repo.commit()
        logger.info("Password reset for user {}", token.user_id)
