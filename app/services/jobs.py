# app/services/jobs.py
from typing import Any, Dict

from loguru import logger

from app.core.errors import NotFoundError
from app.queue.base import DeadJob, JobNotFoundError, JobQueue
from app.schemas.jobs import CleanupResult, FailedJob, FailedJobList

# 原始 token 只給寄信用，後台列表不外露
_REDACTED_KEYS = {"token"}


def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("***" if k in _REDACTED_KEYS else v) for k, v in data.items()}


def _to_schema(dead: DeadJob) -> FailedJob:
    return FailedJob(**dead.model_dump(exclude={"data"}), data=_redact(dead.data))


class JobAdminService:
    """dead-letter 管理：列出 / 重試 / 移除 / 依保留天數清除。"""

    def __init__(self, queue: JobQueue, retention_days: int):
        self.queue = queue
        self.retention_days = retention_days

    async def list_failed(self) -> FailedJobList:
        jobs = [_to_schema(d) for d in await self.queue.list_dead()]
        return FailedJobList(jobs=jobs, total=len(jobs))

    async def retry(self, dead_id: str) -> None:
        try:
            job = await self.queue.retry_dead(dead_id)
        except JobNotFoundError:
            raise NotFoundError("Failed job not found")
        logger.info("Dead job {} re-enqueued as {} ({})", dead_id, job.id, job.name)

    async def remove(self, dead_id: str) -> None:
        try:
            await self.queue.remove_dead(dead_id)
        except JobNotFoundError:
            raise NotFoundError("Failed job not found")

    async def cleanup(self) -> CleanupResult:
        removed = await self.queue.purge_dead_older_than_days(self.retention_days)
        logger.info("Purged {} dead job(s) older than {} days", removed, self.retention_days)
        return CleanupResult(
            removed_count=removed,
            message=f"Removed {removed} failed job(s) older than {self.retention_days} days",
        )
