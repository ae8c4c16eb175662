# app/mail/templates.py
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EmailContent:
    subject: str
    text: str
    html: Optional[str] = None


def verification_email(url: str, expires_hours: int) -> EmailContent:
    return EmailContent(
        subject="Verify your email address",
        text=f"Please verify your email address: {url}",
        html=(
            "<p>Hello,</p>"
            "<p>Please click the link below to verify your email address:</p>"
            f'<p><a href="{url}">{url}</a></p>'
            f"<p>This link will expire in {expires_hours} hours.</p>"
        ),
    )


def password_reset_email(url: str, expires_minutes: int) -> EmailContent:
    return EmailContent(
        subject="Reset your password",
        text=f"Reset your password: {url}",
        html=(
            "<p>Hello,</p>"
            "<p>You requested a password reset. Click the link below to set a new password:</p>"
            f'<p><a href="{url}">{url}</a></p>'
            f"<p>This link will expire in {expires_minutes} minutes.</p>"
            "<p>If you didn't request this, you can safely ignore this email.</p>"
        ),
    )
