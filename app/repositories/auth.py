# app/repositories/auth.py
from datetime import datetime, timedelta
from typing import Optional, Type, Union

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import utcnow
from app.models.auth_tokens import EmailVerificationToken, PasswordResetToken
from app.models.sessions import UserSession
from app.models.users import User

ActionToken = Union[EmailVerificationToken, PasswordResetToken]


class AuthRepository:
    """
    認證相關的資料存取。
    不自行 commit：交易邊界由 service 決定（commit / rollback）。
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # === Users ===
    async def find_by_email(self, email: str) -> Optional[User]:
        res = await self.db.execute(select(User).where(User.email == email.strip().lower()))
        return res.scalar_one_or_none()

    async def find_by_id(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def create_user(self, name: str, email: str, password_hash: str) -> User:
        user = User(name=name, email=email.strip().lower(), password_hash=password_hash)
        self.db.add(user)
        # flush 取得 id；email 重複時在此拋 IntegrityError
        await self.db.flush()
        return user

    async def increment_failed_login(self, user_id: int) -> int:
        """原子遞增失敗次數，回傳遞增後的值。"""
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(failed_login_attempts=User.failed_login_attempts + 1)
            .execution_options(synchronize_session=False)
        )
        res = await self.db.execute(select(User.failed_login_attempts).where(User.id == user_id))
        return int(res.scalar_one())

    async def lock_user(self, user_id: int, locked_until: datetime) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(locked_until=locked_until)
            .execution_options(synchronize_session=False)
        )

    async def reset_login_stats(self, user: User) -> None:
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = utcnow()
        await self.db.flush()

    async def mark_email_verified(self, user_id: int) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(email_verified_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def update_password(self, user_id: int, password_hash: str) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(password_hash=password_hash, password_changed_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    # === Sessions ===
    async def create_session(
        self,
        user_id: int,
        refresh_token_hash: str,
        expires_at: datetime,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> UserSession:
        session = UserSession(
            user_id=user_id,
            refresh_token_hash=refresh_token_hash,
            expires_at=expires_at,
            user_agent=user_agent[:512] if user_agent else None,
            ip_address=ip_address,
        )
        self.db.add(session)
        await self.db.flush()
        return session

    async def find_active_session_by_hash(
        self, token_hash: str, user_id: Optional[int] = None
    ) -> Optional[UserSession]:
        """未撤銷的 session（含已過期者，交給 service 判斷後撤銷）。"""
        q = select(UserSession).where(
            UserSession.refresh_token_hash == token_hash,
            UserSession.revoked_at.is_(None),
        )
        if user_id is not None:
            q = q.where(UserSession.user_id == user_id)
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def rotate_session_hash(
        self, session_id: int, old_hash: str, new_hash: str, expires_at: datetime
    ) -> bool:
        """
        條件式更新：只有舊雜湊仍在且未撤銷時才覆寫。
        兩個併發 refresh 同一張 token 時，只有一個會更新到 1 筆。
        """
        res = await self.db.execute(
            update(UserSession)
            .where(
                UserSession.id == session_id,
                UserSession.refresh_token_hash == old_hash,
                UserSession.revoked_at.is_(None),
            )
            .values(refresh_token_hash=new_hash, expires_at=expires_at, last_used_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return (res.rowcount or 0) == 1

    async def revoke_session(self, session_id: int) -> bool:
        res = await self.db.execute(
            update(UserSession)
            .where(UserSession.id == session_id, UserSession.revoked_at.is_(None))
            .values(revoked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return (res.rowcount or 0) == 1

    async def revoke_all_user_sessions(self, user_id: int) -> int:
        res = await self.db.execute(
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.revoked_at.is_(None))
            .values(revoked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return res.rowcount or 0

    # === Action tokens（email 驗證 / 重設密碼） ===
    async def create_action_token(
        self, model: Type[ActionToken], user_id: int, token_hash: str, expires_at: datetime
    ) -> ActionToken:
        token = model(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        self.db.add(token)
        await self.db.flush()
        return token

    async def find_action_token(self, model: Type[ActionToken], token_hash: str) -> Optional[ActionToken]:
        res = await self.db.execute(select(model).where(model.token_hash == token_hash))
        return res.scalar_one_or_none()

    async def consume_action_token(self, model: Type[ActionToken], token_id: int) -> bool:
        """used_at 只能設定一次；回傳 False 代表已被其他請求用掉。"""
        res = await self.db.execute(
            update(model)
            .where(model.id == token_id, model.used_at.is_(None))
            .values(used_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return (res.rowcount or 0) == 1

    # === Maintenance ===
    async def purge_stale(self, grace: timedelta = timedelta(days=1)) -> int:
        """刪除已過期 / 已撤銷超過 grace 的 session，以及過期或已使用的動作 token。"""
        now = utcnow()
        cutoff = now - grace
        deleted = 0
        res = await self.db.execute(
            delete(UserSession).where(
                or_(UserSession.expires_at < cutoff, UserSession.revoked_at < cutoff)
            )
        )
        deleted += res.rowcount or 0
        for model in (EmailVerificationToken, PasswordResetToken):
            res = await self.db.execute(
                delete(model).where(or_(model.expires_at < now, model.used_at.is_not(None)))
            )
            deleted += res.rowcount or 0
        return deleted
