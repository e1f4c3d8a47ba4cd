import asyncio
import html
import smtplib
from utils.clock import utcnow
from email.message import EmailMessage
from typing import Optional
from core.config import settings
from core.errors import ServiceUnavailableError
import logging

logger = logging.getLogger(__name__)


def _redact(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


def smtp_configured() -> bool:
    return bool(settings.SMTP_HOST and settings.SMTP_FROM_EMAIL)


def _build_message(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>" if settings.SMTP_FROM_NAME else settings.SMTP_FROM_EMAIL
    msg["To"] = to_email
    if text_body:
        msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def send_email(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> bool:
    """Blocking SMTP submission.

    Returns False when SMTP is not configured (development); raises
    ServiceUnavailableError when the transport fails or times out.
    """
    if not smtp_configured():
        logger.warning(f"SMTP not configured; skipping email to {_redact(to_email)} ('{subject}')")
        return False
    msg = _build_message(subject, to_email, html_body, text_body)
    timeout = settings.SMTP_TIMEOUT or 15
    debug = 1 if settings.SMTP_DEBUG else 0
    try:
        if settings.SMTP_USE_SSL:
            with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                server.set_debuglevel(debug)
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                server.set_debuglevel(debug)
                if settings.SMTP_USE_TLS:
                    server.starttls()
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error(f"Failed to send email to {_redact(to_email)}: {exc}")
        raise ServiceUnavailableError("Failed to send email. Please try again.") from exc
    logger.info(f"Sent email to {_redact(to_email)} with subject '{subject}'")
    return True


def build_otp_email(name: str, otp: str, otp_type: str = "login") -> tuple[str, str, str]:
    """Return (subject, html, text) for an OTP email."""
    expiry_minutes = settings.OTP_EXPIRY_MINUTES
    if otp_type == "login":
        subject = "Your YB News OTP Code"
        action_text = "complete your login"
    else:
        subject = "Reset Your YB News Password"
        action_text = "reset your password"

    text = f"Your YB News OTP code is: {otp}\nIt expires in {expiry_minutes} minutes."
    html_body = f"""
    <div style='font-family: "Segoe UI", Arial, sans-serif; max-width: 480px; margin: 0 auto;'>
      <div style='background: #1a1a2e; padding: 32px 40px; text-align: center;'>
        <h1 style='color: #e94560; margin: 0;'>YB News</h1>
        <span style='color: #fff; font-size: 14px; opacity: 0.7;'>Your daily news source</span>
      </div>
      <div style='padding: 40px;'>
        <p>Hi <strong>{html.escape(name)}</strong>,</p>
        <p>Use the code below to <strong>{action_text}</strong>:</p>
        <p style='font-family: "Courier New", monospace; font-size: 36px; font-weight: bold; letter-spacing: 8px; text-align: center;'>{otp}</p>
        <p style='font-size: 13px; color: #888;'>This code expires in <strong>{expiry_minutes} minutes</strong>.</p>
        <p>If you did not request this, please ignore this email. Your account is safe.</p>
      </div>
      <p style='color: #aaa; font-size: 12px; text-align: center;'>&copy; {utcnow().year} YB News. All rights reserved.</p>
    </div>
    """
    return subject, html_body, text


async def send_otp_email(to_email: str, name: str, otp: str, otp_type: str = "login") -> bool:
    """Send an OTP email without blocking the event loop."""
    subject, html_body, text = build_otp_email(name, otp, otp_type)
    return await asyncio.to_thread(send_email, subject, to_email, html_body, text)
