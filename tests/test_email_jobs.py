# tests/test_email_jobs.py
import pytest

from app.core.config import settings
from app.jobs.send_email import build_email_handlers
from app.mail.sender import ConsoleEmailSender, SmtpEmailSender, build_email_sender
from app.queue.base import JOB_PASSWORD_RESET, JOB_VERIFY_EMAIL
from app.queue.memory import InMemoryJobQueue
from app.queue.worker import JobWorker

pytestmark = pytest.mark.anyio


class RecordingSender:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send(self, to, subject, text, html=None):
        if self.fail:
            raise ConnectionError("smtp unavailable")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})


async def test_verification_email_contains_frontend_link():
    sender = RecordingSender()
    queue = InMemoryJobQueue()
    worker = JobWorker(queue, build_email_handlers(sender, settings))

    await queue.enqueue_email_verification(1, "v@example.com", "abc123")
    assert await worker.process_next() is True

    [mail] = sender.sent
    assert mail["to"] == "v@example.com"
    assert mail["subject"] == "Verify your email address"
    assert f"{settings.FRONTEND_URL.rstrip('/')}/verify-email?token=abc123" in mail["text"]
    assert f"{settings.AUTH_EMAIL_VERIFICATION_EXPIRATION_HOURS} hours" in mail["html"]


async def test_password_reset_email_contains_frontend_link():
    sender = RecordingSender()
    handlers = build_email_handlers(sender, settings)
    queue = InMemoryJobQueue()
    job = await queue.enqueue_password_reset(2, "p@example.com", "def456")

    await handlers[JOB_PASSWORD_RESET](job)

    [mail] = sender.sent
    assert mail["subject"] == "Reset your password"
    assert "/reset-password?token=def456" in mail["text"]
    assert f"{settings.AUTH_PASSWORD_RESET_EXPIRATION_MINUTES} minutes" in mail["html"]


async def test_sender_failure_is_retried_by_queue():
    queue = InMemoryJobQueue(max_attempts=3)
    worker = JobWorker(queue, build_email_handlers(RecordingSender(fail=True), settings))
    await queue.enqueue_email_verification(1, "x@example.com", "t")

    assert await worker.process_next() is False
    [delayed] = queue.delayed_jobs()
    assert delayed.name == JOB_VERIFY_EMAIL
    assert delayed.attempts_made == 1
    assert "smtp unavailable" in delayed.last_error


def test_build_email_sender_by_driver(monkeypatch):
    assert isinstance(build_email_sender(settings), ConsoleEmailSender)
    monkeypatch.setattr(settings, "MAIL_DRIVER", "smtp")
    assert isinstance(build_email_sender(settings), SmtpEmailSender)
