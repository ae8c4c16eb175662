# app/queue/base.py
from __future__ import annotations

import time
import traceback
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

EMAIL_QUEUE = "email-queue"
JOB_VERIFY_EMAIL = "verify-email"
JOB_PASSWORD_RESET = "password-reset"


class Job(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    queue: str = EMAIL_QUEUE
    data: Dict[str, Any] = Field(default_factory=dict)
    attempts_made: int = 0
    max_attempts: int = 3
    created_at: float = Field(default_factory=time.time)
    last_error: Optional[str] = None


class DeadJob(BaseModel):
    """重試用盡後移入 dead-letter 的紀錄。"""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    job_name: str
    original_queue: str
    original_job_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    error: str
    error_stack: Optional[str] = None
    failed_at: datetime
    attempts_made: int


class JobNotFoundError(LookupError):
    pass


class JobQueue(ABC):
    """
    背景工作佇列介面（at-least-once）。
      - reserve 取出一筆可執行的 job（含到期的延遲重試）
      - complete / fail 回報結果；fail 依次數決定延遲重試或進 dead-letter
    """

    def __init__(self, max_attempts: int = 3, backoff_ms: int = 1000):
        self.max_attempts = max_attempts
        self.backoff_ms = backoff_ms

    def backoff_seconds(self, attempts_made: int) -> float:
        # 指數退避：base * 2^(n-1)
        return (self.backoff_ms / 1000.0) * (2 ** max(attempts_made - 1, 0))

    def _dead_from(self, job: Job, exc: BaseException) -> DeadJob:
        return DeadJob(
            job_name=job.name,
            original_queue=job.queue,
            original_job_id=job.id,
            data=job.data,
            error=str(exc) or exc.__class__.__name__,
            error_stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            failed_at=datetime.now(timezone.utc),
            attempts_made=job.attempts_made,
        )

    async def enqueue(self, name: str, data: Dict[str, Any], queue: str = EMAIL_QUEUE) -> Job:
        job = Job(name=name, queue=queue, data=data, max_attempts=self.max_attempts)
        await self._push(job)
        return job

    async def enqueue_email_verification(self, user_id: int, email: str, token: str) -> Job:
        return await self.enqueue(JOB_VERIFY_EMAIL, {"userId": user_id, "email": email, "token": token})

    async def enqueue_password_reset(self, user_id: int, email: str, token: str) -> Job:
        return await self.enqueue(JOB_PASSWORD_RESET, {"userId": user_id, "email": email, "token": token})

    async def purge_dead_older_than_days(self, days: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        return await self.purge_dead(cutoff)

    @abstractmethod
    async def _push(self, job: Job) -> None: ...

    @abstractmethod
    async def reserve(self, timeout: float = 0) -> Optional[Job]: ...

    @abstractmethod
    async def complete(self, job: Job) -> None: ...

    @abstractmethod
    async def fail(self, job: Job, exc: BaseException) -> Optional[DeadJob]:
        """回傳 DeadJob 代表已移入 dead-letter；None 代表已排程重試。"""

    @abstractmethod
    async def recover_stalled(self) -> int: ...

    @abstractmethod
    async def list_dead(self) -> List[DeadJob]: ...

    @abstractmethod
    async def get_dead(self, dead_id: str) -> Optional[DeadJob]: ...

    @abstractmethod
    async def retry_dead(self, dead_id: str) -> Job: ...

    @abstractmethod
    async def remove_dead(self, dead_id: str) -> None: ...

    @abstractmethod
    async def purge_dead(self, older_than: datetime) -> int: ...

    async def close(self) -> None:
        return None
