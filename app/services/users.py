# app/services/users.py
from loguru import logger
from sqlalchemy.exc import IntegrityError

from app.core.errors import ConflictError, NotFoundError
from app.models.users import User
from app.repositories.users import UserRepository
from app.schemas.user import UserUpdate


class UserService:
    def __init__(self, repo: UserRepository):
        self.repo = repo

    async def get(self, user_id: int) -> User:
        user = await self.repo.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update(self, user_id: int, payload: UserUpdate) -> User:
        """部分更新：只處理有帶的欄位；換 email 需重新驗證。"""
        user = await self.get(user_id)
        values = payload.model_dump(exclude_unset=True, exclude_none=True)

        new_email = values.get("email")
        if new_email is not None:
            if new_email == user.email:
                values.pop("email")
            else:
                other = await self.repo.find_by_email(new_email)
                if other is not None and other.id != user.id:
                    raise ConflictError("Email already in use")
                values["email_verified_at"] = None

        if not values:
            return user

        try:
            user = await self.repo.update(user, values)
        except IntegrityError:
            await self.repo.rollback()
            raise ConflictError("Email already in use")

        logger.info("User {} updated fields: {}", user.id, sorted(values))
        return user
