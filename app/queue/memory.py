# app/queue/memory.py
import asyncio
import time
from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger

from app.queue.base import DeadJob, Job, JobNotFoundError, JobQueue


class InMemoryJobQueue(JobQueue):
    """
    行程內佇列：本機開發與測試用（不需 Redis）。
    行為與 Redis 版一致：延遲重試、dead-letter 皆支援；但重啟即遺失。
    """

    def __init__(self, max_attempts: int = 3, backoff_ms: int = 1000):
        super().__init__(max_attempts=max_attempts, backoff_ms=backoff_ms)
        self._waiting: List[Job] = []
        self._delayed: Dict[str, tuple] = {}  # job_id -> (ready_at, job)
        self._active: Dict[str, Job] = {}
        self._dead: Dict[str, DeadJob] = {}

    # ---- 測試輔助 ----
    def waiting_jobs(self, name: Optional[str] = None) -> List[Job]:
        return [j for j in self._waiting if name is None or j.name == name]

    def delayed_jobs(self) -> List[Job]:
        return [job for _, job in self._delayed.values()]

    def clear(self) -> None:
        self._waiting.clear()
        self._delayed.clear()
        self._active.clear()
        self._dead.clear()

    # ---- JobQueue ----
    async def _push(self, job: Job) -> None:
        self._waiting.append(job)
        logger.info("[InMemory] Job enqueued: {} ({})", job.name, job.id)

    def _promote_due(self) -> None:
        now = time.time()
        for job_id, (ready_at, job) in list(self._delayed.items()):
            if ready_at <= now:
                del self._delayed[job_id]
                self._waiting.append(job)

    async def reserve(self, timeout: float = 0) -> Optional[Job]:
        deadline = time.monotonic() + max(timeout, 0)
        while True:
            self._promote_due()
            if self._waiting:
                job = self._waiting.pop(0)
                self._active[job.id] = job
                return job
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(0.05, remaining))

    async def complete(self, job: Job) -> None:
        self._active.pop(job.id, None)

    async def fail(self, job: Job, exc: BaseException) -> Optional[DeadJob]:
        self._active.pop(job.id, None)
        job.attempts_made += 1
        job.last_error = str(exc)
        if job.attempts_made < job.max_attempts:
            self._delayed[job.id] = (time.time() + self.backoff_seconds(job.attempts_made), job)
            return None
        dead = self._dead_from(job, exc)
        self._dead[dead.id] = dead
        return dead

    async def recover_stalled(self) -> int:
        stalled = list(self._active.values())
        self._active.clear()
        self._waiting.extend(stalled)
        return len(stalled)

    async def list_dead(self) -> List[DeadJob]:
        return sorted(self._dead.values(), key=lambda d: d.failed_at, reverse=True)

    async def get_dead(self, dead_id: str) -> Optional[DeadJob]:
        return self._dead.get(dead_id)

    async def retry_dead(self, dead_id: str) -> Job:
        dead = self._dead.pop(dead_id, None)
        if dead is None:
            raise JobNotFoundError(dead_id)
        return await self.enqueue(dead.job_name, dead.data, queue=dead.original_queue)

    async def remove_dead(self, dead_id: str) -> None:
        if self._dead.pop(dead_id, None) is None:
            raise JobNotFoundError(dead_id)

    async def purge_dead(self, older_than: datetime) -> int:
        stale = [d.id for d in self._dead.values() if d.failed_at < older_than]
        for dead_id in stale:
            del self._dead[dead_id]
        return len(stale)
