# app/queue/redis_queue.py
import time
from datetime import datetime
from typing import List, Optional

from loguru import logger
from redis.asyncio import Redis

from app.queue.base import EMAIL_QUEUE, DeadJob, Job, JobNotFoundError, JobQueue


class RedisJobQueue(JobQueue):
    """
    Redis 版佇列（正式環境）。
    Key 配置：
      {prefix}:{queue}:waiting  待執行（LIST，LPUSH 進、從右端取）
      {prefix}:{queue}:active   執行中（LIST；worker 當掉時由 recover_stalled 放回）
      {prefix}:{queue}:delayed  延遲重試（ZSET，score = 可執行時間）
      {prefix}:job:{id}         job 內容（JSON）
      {prefix}:dead             dead-letter 索引（ZSET，score = 失敗時間）
      {prefix}:dead:{id}        dead-letter 內容（JSON）
    """

    def __init__(
        self,
        redis: Redis,
        prefix: str = "jobs",
        queue_name: str = EMAIL_QUEUE,
        max_attempts: int = 3,
        backoff_ms: int = 1000,
    ):
        super().__init__(max_attempts=max_attempts, backoff_ms=backoff_ms)
        self.redis = redis
        self.prefix = prefix
        self.queue_name = queue_name

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisJobQueue":
        # 用字串便於除錯
        return cls(Redis.from_url(url, encoding="utf-8", decode_responses=True), **kwargs)

    # ---- keys ----
    def _k_waiting(self, queue: Optional[str] = None) -> str:
        return f"{self.prefix}:{queue or self.queue_name}:waiting"

    def _k_active(self) -> str:
        return f"{self.prefix}:{self.queue_name}:active"

    def _k_delayed(self) -> str:
        return f"{self.prefix}:{self.queue_name}:delayed"

    def _k_job(self, job_id: str) -> str:
        return f"{self.prefix}:job:{job_id}"

    def _k_dead_index(self) -> str:
        return f"{self.prefix}:dead"

    def _k_dead(self, dead_id: str) -> str:
        return f"{self.prefix}:dead:{dead_id}"

    # ---- JobQueue ----
    async def _push(self, job: Job) -> None:
        await self.redis.set(self._k_job(job.id), job.model_dump_json())
        await self.redis.lpush(self._k_waiting(job.queue), job.id)
        logger.info("Job enqueued: {} ({}) on {}", job.name, job.id, job.queue)

    async def _promote_due(self) -> None:
        now = time.time()
        due = await self.redis.zrangebyscore(self._k_delayed(), "-inf", now)
        for job_id in due:
            # zrem 回傳 1 才搬，避免多個 worker 重複搬移
            if await self.redis.zrem(self._k_delayed(), job_id):
                await self.redis.lpush(self._k_waiting(), job_id)

    async def _load(self, job_id: str) -> Optional[Job]:
        raw = await self.redis.get(self._k_job(job_id))
        return Job.model_validate_json(raw) if raw else None

    async def reserve(self, timeout: float = 0) -> Optional[Job]:
        await self._promote_due()
        job_id = await self.redis.lmove(self._k_waiting(), self._k_active(), "RIGHT", "LEFT")
        if job_id is None and timeout > 0:
            job_id = await self.redis.blmove(
                self._k_waiting(), self._k_active(), timeout, "RIGHT", "LEFT"
            )
        if job_id is None:
            return None

        job = await self._load(job_id)
        if job is None:
            # 內容遺失（例如被手動刪除）：丟掉索引即可
            logger.warning("Job payload missing, dropping id {}", job_id)
            await self.redis.lrem(self._k_active(), 1, job_id)
            return None
        return job

    async def complete(self, job: Job) -> None:
        await self.redis.lrem(self._k_active(), 1, job.id)
        await self.redis.delete(self._k_job(job.id))

    async def fail(self, job: Job, exc: BaseException) -> Optional[DeadJob]:
        await self.redis.lrem(self._k_active(), 1, job.id)
        job.attempts_made += 1
        job.last_error = str(exc)

        if job.attempts_made < job.max_attempts:
            ready_at = time.time() + self.backoff_seconds(job.attempts_made)
            await self.redis.set(self._k_job(job.id), job.model_dump_json())
            await self.redis.zadd(self._k_delayed(), {job.id: ready_at})
            return None

        dead = self._dead_from(job, exc)
        await self.redis.set(self._k_dead(dead.id), dead.model_dump_json())
        await self.redis.zadd(self._k_dead_index(), {dead.id: dead.failed_at.timestamp()})
        await self.redis.delete(self._k_job(job.id))
        return dead

    async def recover_stalled(self) -> int:
        moved = 0
        while await self.redis.lmove(self._k_active(), self._k_waiting(), "RIGHT", "RIGHT"):
            moved += 1
        if moved:
            logger.warning("Recovered {} stalled job(s) on {}", moved, self.queue_name)
        return moved

    async def list_dead(self) -> List[DeadJob]:
        ids = await self.redis.zrevrange(self._k_dead_index(), 0, -1)
        out: List[DeadJob] = []
        for dead_id in ids:
            dead = await self.get_dead(dead_id)
            if dead is not None:
                out.append(dead)
        return out

    async def get_dead(self, dead_id: str) -> Optional[DeadJob]:
        raw = await self.redis.get(self._k_dead(dead_id))
        return DeadJob.model_validate_json(raw) if raw else None

    async def retry_dead(self, dead_id: str) -> Job:
        dead = await self.get_dead(dead_id)
        if dead is None:
            raise JobNotFoundError(dead_id)
        job = await self.enqueue(dead.job_name, dead.data, queue=dead.original_queue)
        await self._delete_dead(dead_id)
        return job

    async def remove_dead(self, dead_id: str) -> None:
        if not await self._delete_dead(dead_id):
            raise JobNotFoundError(dead_id)

    async def _delete_dead(self, dead_id: str) -> bool:
        removed = await self.redis.zrem(self._k_dead_index(), dead_id)
        await self.redis.delete(self._k_dead(dead_id))
        return bool(removed)

    async def purge_dead(self, older_than: datetime) -> int:
        ids = await self.redis.zrangebyscore(self._k_dead_index(), "-inf", older_than.timestamp())
        for dead_id in ids:
            await self._delete_dead(dead_id)
        return len(ids)

    async def close(self) -> None:
        await self.redis.aclose()
