# app/mail/sender.py
import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol

from loguru import logger

from app.core.config import Settings


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None: ...


class ConsoleEmailSender:
    """開發 / 測試用：只寫 log，不真的寄信。"""

    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        # html 內容不寫入 log，保持乾淨
        logger.info("[Mock Mailer] to={} subject={!r} text={!r}", to, subject, text)


class SmtpEmailSender:
    """SMTP 寄信；smtplib 為同步 API，放到 thread 執行避免卡住事件圈。"""

    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASSWORD
        self.sender = settings.SMTP_FROM
        self.starttls = settings.SMTP_STARTTLS
        self.timeout = settings.SMTP_TIMEOUT_SEC

    def _build(self, to: str, subject: str, text: str, html: Optional[str]) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.starttls:
                smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password or "")
            smtp.send_message(msg)

    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        msg = self._build(to, subject, text, html)
        try:
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to {}: {}", to, e)
            raise
        logger.info("Email sent (SMTP) to={} subject={!r}", to, subject)


def build_email_sender(settings: Settings) -> EmailSender:
    if settings.MAIL_DRIVER == "smtp":
        return SmtpEmailSender(settings)
    return ConsoleEmailSender()
