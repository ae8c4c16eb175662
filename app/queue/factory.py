# app/queue/factory.py
from app.core.config import Settings
from app.queue.base import JobQueue
from app.queue.memory import InMemoryJobQueue
from app.queue.redis_queue import RedisJobQueue


def build_job_queue(settings: Settings) -> JobQueue:
    """依 QUEUE_DRIVER 選擇實作；Redis 連線為 lazy，建立時不會連線。"""
    if settings.QUEUE_DRIVER == "memory":
        return InMemoryJobQueue(
            max_attempts=settings.QUEUE_JOB_ATTEMPTS,
            backoff_ms=settings.QUEUE_JOB_BACKOFF_MS,
        )
    return RedisJobQueue.from_url(
        settings.REDIS_URL,
        prefix=settings.QUEUE_PREFIX,
        max_attempts=settings.QUEUE_JOB_ATTEMPTS,
        backoff_ms=settings.QUEUE_JOB_BACKOFF_MS,
    )
