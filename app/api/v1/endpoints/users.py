# app/api/v1/endpoints/users.py
from fastapi import APIRouter, Depends

from app.core.deps import get_current_user_id, get_user_service
from app.schemas.common import ApiResponse, ok
from app.schemas.user import UserRead, UserUpdate
from app.services.users import UserService

router = APIRouter(tags=["users"])


# === 取得目前登入者（需要登入） ===
@router.get("/me", response_model=ApiResponse[UserRead])
async def users_me(
    user_id: int = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    user = await service.get(user_id)
    return ok(UserRead.model_validate(user))


# === 更新自己的資料（name / email） ===
@router.patch("/me", response_model=ApiResponse[UserRead])
async def update_me(
    payload: UserUpdate,
    user_id: int = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    user = await service.update(user_id, payload)
    return ok(UserRead.model_validate(user), "User updated successfully")
