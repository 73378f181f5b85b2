"""SMTP delivery of login verification codes."""

from __future__ import annotations

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from app.core.config import Settings, get_settings

LOGIN_CODE_SUBJECT = "Login to your SpeakAllRight account"
SUPPORT_ADDRESS = "support@speakallright.uz"


def render_login_code_email(*, code: str, ttl_minutes: int) -> tuple[str, str]:
    text_body = (
        "SpeakAllRight - Login Verification\n\n"
        f"Your login verification code is: {code}\n\n"
        f"This code will expire in {ttl_minutes} minutes.\n\n"
        f"Need help? Contact {SUPPORT_ADDRESS}"
    )
    html_body = (
        "<!DOCTYPE html><html lang=\"en\"><body style=\"font-family:Arial,sans-serif;\">"
        "<h2>Login Verification</h2>"
        "<p>Please use the verification code below to complete your login:</p>"
        f"<div style=\"font-size:32px;font-weight:700;letter-spacing:8px;\">{escape(code)}</div>"
        f"<p>This code will expire in <strong>{ttl_minutes} minutes</strong>.</p>"
        "<p>Didn't request this code? You can safely ignore this email.</p>"
        f"<p>Need help? <a href=\"mailto:{SUPPORT_ADDRESS}\">Contact Support</a></p>"
        "</body></html>"
    )
    return text_body, html_body


def build_message(*, sender: str, to_email: str, subject: str, text_body: str, html_body: str) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["From"] = sender
    message["To"] = to_email
    message["Subject"] = subject
    message["List-Unsubscribe"] = f"<mailto:{SUPPORT_ADDRESS}>"
    message.attach(MIMEText(text_body, "plain", "utf-8"))
    message.attach(MIMEText(html_body, "html", "utf-8"))
    return message


def _send_sync(settings: Settings, message: MIMEMultipart, to_email: str) -> None:
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
        if settings.smtp_user and settings.smtp_password:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
        server.sendmail(settings.smtp_from, [to_email], message.as_string())


async def send_login_code_email(*, to_email: str, code: str) -> None:
    settings = get_settings()
    text_body, html_body = render_login_code_email(
        code=code,
        ttl_minutes=settings.login_code_ttl_minutes,
    )
    message = build_message(
        sender=settings.smtp_from,
        to_email=to_email,
        subject=LOGIN_CODE_SUBJECT,
        text_body=text_body,
        html_body=html_body,
    )
    await asyncio.to_thread(_send_sync, settings, message, to_email)
