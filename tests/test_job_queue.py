# tests/test_job_queue.py
from datetime import datetime, timedelta, timezone

import anyio
import pytest

from app.queue.base import EMAIL_QUEUE, JOB_PASSWORD_RESET, JOB_VERIFY_EMAIL
from app.queue.memory import InMemoryJobQueue
from app.queue.worker import JobWorker

pytestmark = pytest.mark.anyio


class _Boom(RuntimeError):
    pass


def test_backoff_is_exponential():
    queue = InMemoryJobQueue(max_attempts=3, backoff_ms=1000)
    assert [queue.backoff_seconds(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]


async def test_enqueue_email_helpers():
    queue = InMemoryJobQueue()
    job = await queue.enqueue_email_verification(7, "a@example.com", "raw-token")
    await queue.enqueue_password_reset(7, "a@example.com", "other-token")

    assert job.queue == EMAIL_QUEUE
    assert job.data == {"userId": 7, "email": "a@example.com", "token": "raw-token"}
    assert [j.name for j in queue.waiting_jobs()] == [JOB_VERIFY_EMAIL, JOB_PASSWORD_RESET]


async def test_worker_completes_successful_job():
    queue = InMemoryJobQueue()
    seen = []

    async def handler(job):
        seen.append(job.data["email"])

    worker = JobWorker(queue, {JOB_VERIFY_EMAIL: handler})
    await queue.enqueue_email_verification(1, "ok@example.com", "t")

    assert await worker.process_next() is True
    assert seen == ["ok@example.com"]
    assert await worker.process_next() is None
    assert await queue.list_dead() == []


async def test_failed_job_retries_then_moves_to_dead_letter():
    queue = InMemoryJobQueue(max_attempts=3, backoff_ms=1)
    calls = []

    async def handler(job):
        calls.append(job.attempts_made)
        raise _Boom("smtp down")

    worker = JobWorker(queue, {JOB_VERIFY_EMAIL: handler})
    await queue.enqueue_email_verification(1, "fail@example.com", "t")

    assert await worker.process_next() is False
    # 第一次失敗後進入延遲重試，而不是直接回 waiting
    assert queue.waiting_jobs() == []
    assert len(queue.delayed_jobs()) == 1

    assert await worker.process_next(timeout=1) is False
    assert await worker.process_next(timeout=1) is False
    assert calls == [0, 1, 2]

    dead = await queue.list_dead()
    assert len(dead) == 1
    assert dead[0].job_name == JOB_VERIFY_EMAIL
    assert dead[0].original_queue == EMAIL_QUEUE
    assert dead[0].attempts_made == 3
    assert dead[0].error == "smtp down"
    assert "_Boom" in dead[0].error_stack
    assert queue.delayed_jobs() == []


async def test_unknown_job_name_is_discarded():
    queue = InMemoryJobQueue()
    worker = JobWorker(queue, {})
    await queue.enqueue("mystery", {"x": 1})

    assert await worker.process_next() is False
    assert await queue.list_dead() == []
    assert await worker.process_next() is None


async def test_retry_remove_and_purge_dead_jobs():
    queue = InMemoryJobQueue(max_attempts=1)

    async def handler(job):
        raise _Boom("nope")

    worker = JobWorker(queue, {JOB_PASSWORD_RESET: handler})
    for i in range(3):
        await queue.enqueue_password_reset(i, f"u{i}@example.com", "t")
        await worker.process_next()

    dead = await queue.list_dead()
    assert len(dead) == 3

    job = await queue.retry_dead(dead[0].id)
    assert job.name == JOB_PASSWORD_RESET
    assert job.attempts_made == 0
    assert [j.id for j in queue.waiting_jobs()] == [job.id]

    await queue.remove_dead(dead[1].id)
    assert [d.id for d in await queue.list_dead()] == [dead[2].id]

    # 只清掉超過保留期的
    assert await queue.purge_dead(datetime.now(timezone.utc) - timedelta(days=1)) == 0
    assert await queue.purge_dead(datetime.now(timezone.utc) + timedelta(seconds=1)) == 1
    assert await queue.list_dead() == []


async def test_recover_stalled_requeues_active_jobs():
    queue = InMemoryJobQueue()
    await queue.enqueue("verify-email", {"email": "s@example.com"})
    reserved = await queue.reserve()
    assert reserved is not None and queue.waiting_jobs() == []

    assert await queue.recover_stalled() == 1
    assert [j.id for j in queue.waiting_jobs()] == [reserved.id]


async def test_worker_start_and_stop():
    queue = InMemoryJobQueue()
    done = []

    async def handler(job):
        done.append(job.id)

    worker = JobWorker(queue, {JOB_VERIFY_EMAIL: handler}, concurrency=2, poll_timeout=0.05)
    await worker.start()
    job = await queue.enqueue_email_verification(1, "bg@example.com", "t")
    for _ in range(40):
        if done:
            break
        await anyio.sleep(0.05)
    await worker.stop()

    assert done == [job.id]
