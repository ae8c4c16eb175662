# app/services/scheduler.py
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI  # 型別標註用
from loguru import logger

from app.core.config import settings
from app.db.session import AsyncSessionLocal
from app.jobs.send_email import build_email_handlers
from app.queue.base import JobQueue
from app.queue.worker import JobWorker
from app.services.cleanup import run_maintenance

scheduler: Optional[AsyncIOScheduler] = None


@asynccontextmanager
async def lifespan_scheduler(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan：
      - 啟動 / 關閉 APScheduler（定期清理）
      - ENABLE_BACKGROUND_JOBS 時啟動寄信 worker
      - 關閉時釋放佇列連線
    需接受 app 參數（FastAPI 會注入），否則會出現 TypeError。
    """
    global scheduler
    queue: JobQueue = app.state.job_queue
    worker: Optional[JobWorker] = None

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_cleanup_job,
        IntervalTrigger(minutes=settings.CLEANUP_INTERVAL_MINUTES),
        args=[queue],
        id="maintenance-cleanup",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("APScheduler started: cleanup every {} minutes", settings.CLEANUP_INTERVAL_MINUTES)

    if settings.ENABLE_BACKGROUND_JOBS:
        worker = JobWorker(
            queue,
            build_email_handlers(app.state.email_sender, settings),
            concurrency=settings.QUEUE_CONCURRENCY,
            poll_timeout=settings.QUEUE_POLL_TIMEOUT_SEC,
        )
        await worker.start()
    else:
        logger.info("Background jobs disabled (ENABLE_BACKGROUND_JOBS=false)")

    try:
        yield
    finally:
        if worker is not None:
            await worker.stop()
        if scheduler:
            scheduler.shutdown(wait=False)
            scheduler = None
            logger.info("APScheduler shutdown")
        await queue.close()


async def run_cleanup_job(queue: Optional[JobQueue] = None) -> None:
    """排程作業：建立一次性 DB session 執行清理。"""
    async with AsyncSessionLocal() as db:
        try:
            result = await run_maintenance(db, queue, settings.QUEUE_FAILED_JOB_RETENTION_DAYS)
            logger.info("Maintenance cleanup done: {}", result)
        except Exception:
            # 排程不中斷；下一輪再試
            logger.exception("Maintenance cleanup failed")
            await db.rollback()
