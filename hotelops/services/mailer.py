"""
Outgoing email for employee login codes and welcome messages.
"""
import smtplib
from html import escape
from datetime import datetime
from email.message import EmailMessage
from typing import Optional

import structlog

from ..config import Settings, settings


log = structlog.get_logger()


OTP_SUBJECT = "Your OTP for Hotel Management System Login"
WELCOME_SUBJECT = "Welcome to Hotel Management System - Mobile App Login Instructions"


def _otp_html(code: str, minutes: int) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        "<h2>Your login code</h2>"
        f'<p style="font-size: 32px; letter-spacing: 8px; font-weight: bold;">{code}</p>'
        f"<p>This code is valid for <strong>{minutes} minutes</strong>.</p>"
        "<p>If you did not request this code, you can ignore this email.</p>"
        "</div>"
    )


def _welcome_html(email: str, first_name: str, last_name: str, minutes: int) -> str:
    email, first_name, last_name = escape(email), escape(first_name), escape(last_name)
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"<p>Hello <strong>{first_name} {last_name}</strong>,</p>"
        "<p>Your employee account has been successfully created! You can now access the "
        "Hotel Management System mobile app using your email address.</p>"
        f'<p>Use your registered email address: <strong style="color: #007bff;">{email}</strong></p>'
        "<p>&bull; Request a one-time code from the login screen<br>"
        f"&bull; The OTP code is valid for <strong>{minutes} minutes</strong> only<br>"
        "&bull; You do <strong>not need a password</strong> - authentication is done via email OTP only<br>"
        "&bull; Make sure to check your spam folder if you don't receive the OTP email</p>"
        "<p>If you have any questions or need assistance, please contact your system administrator.</p>"
        f"<p><small>This is an automated message. Please do not reply to this email.<br>"
        f"&copy; {datetime.now().year} Hotel Management System. All rights reserved.</small></p>"
        "</div>"
    )


class Mailer:
    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or settings

    @property
    def configured(self) -> bool:
        return bool(self.config.smtp_host and self.config.mail_from)

    def _deliver(self, msg: EmailMessage) -> None:
        cfg = self.config
        with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port) as s:
            if cfg.smtp_tls:
                s.starttls()
            if cfg.smtp_username and cfg.smtp_password:
                # App passwords are often pasted with spaces
                s.login(cfg.smtp_username, cfg.smtp_password.replace(" ", ""))
            s.send_message(msg)

    def _build(self, to: str, subject: str, text: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.config.mail_from
        msg["To"] = to
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        return msg

    def send_otp(self, email: str, code: str) -> bool:
        if not self.configured:
            log.error("email_not_configured", purpose="otp", to=email)
            return False
        minutes = max(1, self.config.otp_ttl_seconds // 60)
        msg = self._build(
            email,
            OTP_SUBJECT,
            f"Your login code is {code}. It is valid for {minutes} minutes.",
            _otp_html(code, minutes),
        )
        try:
            self._deliver(msg)
        except (smtplib.SMTPException, OSError) as e:
            log.error("otp_email_failed", to=email, error=str(e))
            return False
        log.info("otp_email_sent", to=email)
        return True

    def send_welcome(self, email: str, first_name: str, last_name: str) -> dict:
        if not self.configured:
            error = "Email is not configured. Please check SMTP_HOST and MAIL_FROM."
            log.error("email_not_configured", purpose="welcome", to=email)
            return {"ok": False, "error": error}
        minutes = max(1, self.config.otp_ttl_seconds // 60)
        msg = self._build(
            email,
            WELCOME_SUBJECT,
            f"Hello {first_name} {last_name}, your employee account is ready. "
            f"Log in to the mobile app with {email} and the one-time code we email you.",
            _welcome_html(email, first_name, last_name, minutes),
        )
        try:
            self._deliver(msg)
        except smtplib.SMTPAuthenticationError as e:
            log.error("welcome_email_failed", to=email, error=str(e))
            return {"ok": False, "error": "Email authentication failed. Please check SMTP credentials."}
        except (smtplib.SMTPException, OSError) as e:
            log.error("welcome_email_failed", to=email, error=str(e))
            return {"ok": False, "error": str(e)}
        log.info("welcome_email_sent", to=email)
        return {"ok": True, "error": None}


def get_mailer() -> Mailer:
    return Mailer()
