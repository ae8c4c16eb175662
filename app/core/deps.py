# app/core/deps.py
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.errors import UnauthorizedError
from app.core.security import decode_access_token
from app.db.session import get_db
from app.queue.base import JobQueue
from app.repositories.auth import AuthRepository
from app.repositories.examples import ExampleRepository
from app.repositories.users import UserRepository
from app.services.auth import AuthService, ClientMeta
from app.services.examples import ExampleService
from app.services.jobs import JobAdminService
from app.services.users import UserService

# auto_error=False：缺少 header 時由我們回統一格式的 401
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    """
    從 Bearer Access Token 取出使用者 id（無狀態，不查 DB）：
      1️⃣ 驗證 JWT 簽章與 exp
      2️⃣ 確認 type == "access"
      3️⃣ sub 必須是整數
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Not authenticated")
    try:
        payload = decode_access_token(credentials.credentials)
        return int(payload["sub"])
    except Exception:
        raise UnauthorizedError("Invalid or expired access token")


def get_client_meta(request: Request) -> ClientMeta:
    ip = request.client.host if request.client else None
    return ClientMeta(ip=ip, user_agent=request.headers.get("user-agent"))


# ---- app.state 上的單例 ----
def get_job_queue(request: Request) -> JobQueue:
    return request.app.state.job_queue


# ---- Services ----
def get_auth_service(
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(AuthRepository(db), queue, settings)


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(UserRepository(db))


def get_example_service(db: AsyncSession = Depends(get_db)) -> ExampleService:
    return ExampleService(ExampleRepository(db))


def get_job_admin_service(
    queue: JobQueue = Depends(get_job_queue),
    settings: Settings = Depends(get_settings),
) -> JobAdminService:
    return JobAdminService(queue, settings.QUEUE_FAILED_JOB_RETENTION_DAYS)
