# app/queue/worker.py
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from loguru import logger

from app.queue.base import Job, JobQueue

Handler = Callable[[Job], Awaitable[None]]


class JobWorker:
    """
    從 JobQueue 取 job 並依名稱分派給 handler。
      - 成功 → complete
      - 例外 → fail（佇列決定退避重試或移入 dead-letter）
      - 未知名稱 → 記 warning 後 complete，避免無限重試
    """

    def __init__(
        self,
        queue: JobQueue,
        handlers: Dict[str, Handler],
        concurrency: int = 5,
        poll_timeout: float = 5,
    ):
        self.queue = queue
        self.handlers = handlers
        self.concurrency = max(1, concurrency)
        self.poll_timeout = poll_timeout
        self._tasks: List[asyncio.Task] = []
        self._stopping = asyncio.Event()

    async def process(self, job: Job) -> bool:
        """執行單一 job；回傳是否成功。"""
        handler = self.handlers.get(job.name)
        if handler is None:
            logger.warning("Unknown job name {!r} ({}), discarding", job.name, job.id)
            await self.queue.complete(job)
            return False

        logger.info("Job started: {} ({})", job.name, job.id)
        try:
            await handler(job)
        except Exception as exc:
            logger.error("Job failed: {} ({}) attempt {}: {}", job.name, job.id, job.attempts_made + 1, exc)
            dead = await self.queue.fail(job, exc)
            if dead is not None:
                logger.warning(
                    "Job exhausted all retries, moved to dead-letter: {} ({}) attempts={}",
                    job.name, job.id, dead.attempts_made,
                )
            return False

        await self.queue.complete(job)
        logger.info("Job completed: {} ({})", job.name, job.id)
        return True

    async def process_next(self, timeout: float = 0) -> Optional[bool]:
        """取一筆並執行；佇列為空時回傳 None。"""
        job = await self.queue.reserve(timeout=timeout)
        if job is None:
            return None
        return await self.process(job)

    async def _loop(self, n: int) -> None:
        while not self._stopping.is_set():
            try:
                await self.process_next(timeout=self.poll_timeout)
            except asyncio.CancelledError:
                raise
            except Exception:
                # 佇列後端暫時不可用（例如 Redis 斷線）：記錄後稍候再試
                logger.exception("Worker loop #{} error", n)
                await asyncio.sleep(1)

    async def start(self) -> None:
        recovered = await self.queue.recover_stalled()
        if recovered:
            logger.info("Requeued {} stalled job(s)", recovered)
        self._stopping.clear()
        self._tasks = [asyncio.create_task(self._loop(i)) for i in range(self.concurrency)]
        logger.info("Job worker started (concurrency={})", self.concurrency)

    async def stop(self) -> None:
        self._stopping.set()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Job worker stopped")
