# app/services/cleanup.py
from datetime import timedelta
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.queue.base import JobQueue
from app.repositories.auth import AuthRepository


async def cleanup_stale_auth_data(db: AsyncSession, grace: timedelta = timedelta(days=1)) -> int:
    """刪除過期 / 已撤銷的 session 與用過或過期的驗證 token，回傳刪除數量。"""
    repo = AuthRepository(db)
    deleted = await repo.purge_stale(grace)
    await repo.commit()
    return deleted


async def run_maintenance(
    db: AsyncSession, queue: Optional[JobQueue], retention_days: int
) -> Dict[str, int]:
    """排程與一次性腳本共用：DB 清理 + dead-letter 保留期清除。"""
    result = {"deleted": await cleanup_stale_auth_data(db)}
    if queue is not None:
        result["dead_jobs_purged"] = await queue.purge_dead_older_than_days(retention_days)
    return result
