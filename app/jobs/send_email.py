# app/jobs/send_email.py
from typing import Awaitable, Callable, Dict
from urllib.parse import urlencode

from loguru import logger

from app.core.config import Settings
from app.mail.sender import EmailSender
from app.mail.templates import password_reset_email, verification_email
from app.queue.base import JOB_PASSWORD_RESET, JOB_VERIFY_EMAIL, Job

Handler = Callable[[Job], Awaitable[None]]


def build_email_handlers(sender: EmailSender, settings: Settings) -> Dict[str, Handler]:
    """依 job 名稱回傳對應的寄信 handler；例外往外拋，交給 worker 重試。"""
    base = settings.FRONTEND_URL.rstrip("/")

    async def send_verification(job: Job) -> None:
        url = f"{base}/verify-email?{urlencode({'token': job.data['token']})}"
        content = verification_email(url, settings.AUTH_EMAIL_VERIFICATION_EXPIRATION_HOURS)
        await sender.send(job.data["email"], content.subject, content.text, content.html)
        logger.info("Verification email sent for user {}", job.data.get("userId"))

    async def send_password_reset(job: Job) -> None:
        url = f"{base}/reset-password?{urlencode({'token': job.data['token']})}"
        content = password_reset_email(url, settings.AUTH_PASSWORD_RESET_EXPIRATION_MINUTES)
        await sender.send(job.data["email"], content.subject, content.text, content.html)
        logger.info("Password reset email sent for user {}", job.data.get("userId"))

    return {
        JOB_VERIFY_EMAIL: send_verification,
        JOB_PASSWORD_RESET: send_password_reset,
    }
