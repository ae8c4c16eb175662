# app/repositories/users.py
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.users import User


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def find_by_email(self, email: str) -> Optional[User]:
        res = await self.db.execute(select(User).where(User.email == email.strip().lower()))
        return res.scalar_one_or_none()

    async def update(self, user: User, values: Dict[str, Any]) -> User:
        for field, value in values.items():
            setattr(user, field, value)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def rollback(self) -> None:
        await self.db.rollback()
