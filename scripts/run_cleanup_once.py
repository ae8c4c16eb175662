# scripts/run_cleanup_once.py
import asyncio

from app.core.config import settings
from app.core.logging import setup_logging
from app.db.session import AsyncSessionLocal
from app.queue.factory import build_job_queue
from app.services.cleanup import run_maintenance


async def main():
    setup_logging()
    queue = build_job_queue(settings)
    try:
        async with AsyncSessionLocal() as db:
            result = await run_maintenance(db, queue, settings.QUEUE_FAILED_JOB_RETENTION_DAYS)
        print(result)
    finally:
        await queue.close()


if __name__ == "__main__":
    asyncio.run(main())
