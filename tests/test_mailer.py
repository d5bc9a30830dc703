import smtplib
from unittest import mock

from hotelops.config import settings
from hotelops.services.mailer import OTP_SUBJECT, Mailer


def configured(**extra):
    values = {
        "smtp_host": "smtp.example.com",
        "smtp_port": 587,
        "smtp_username": "mailer@example.com",
        "smtp_password": "abcd efgh ijkl mnop",
        "smtp_tls": True,
        "mail_from": "Hotel Ops <noreply@example.com>",
    }
    values.update(extra)
    return Mailer(settings.model_copy(update=values))


class TestMailer:

    def test_unconfigured(self):
        mailer = Mailer(settings.model_copy(update={"smtp_host": None, "mail_from": None}))
        assert not mailer.configured
        assert mailer.send_otp("a@example.com", "123456") is False
        assert mailer.send_welcome("a@example.com", "A", "B")["ok"] is False

    @mock.patch("hotelops.services.mailer.smtplib.SMTP")
    def test_send_otp(self, smtp):
        conn = smtp.return_value.__enter__.return_value
        assert configured().send_otp("guest@example.com", "482913") is True
        smtp.assert_called_once_with("smtp.example.com", 587)
        conn.starttls.assert_called_once()
        conn.login.assert_called_once_with("mailer@example.com", "abcdefghijklmnop")
        msg = conn.send_message.call_args[0][0]
        assert msg["To"] == "guest@example.com"
        assert msg["Subject"] == OTP_SUBJECT
        assert "482913" in msg.get_body(("plain",)).get_content()

    @mock.patch("hotelops.services.mailer.smtplib.SMTP")
    def test_plain_connection(self, smtp):
        conn = smtp.return_value.__enter__.return_value
        configured(smtp_tls=False, smtp_username=None).send_otp("guest@example.com", "482913")
        conn.starttls.assert_not_called()
        conn.login.assert_not_called()

    @mock.patch("hotelops.services.mailer.smtplib.SMTP")
    def test_otp_failure(self, smtp):
        smtp.side_effect = OSError("connection refused")
        assert configured().send_otp("guest@example.com", "482913") is False

    @mock.patch("hotelops.services.mailer.smtplib.SMTP")
    def test_welcome(self, smtp):
        result = configured().send_welcome("jo@example.com", "Jo", "Bloggs")
        assert result == {"ok": True, "error": None}
        msg = smtp.return_value.__enter__.return_value.send_message.call_args[0][0]
        assert "Jo Bloggs" in msg.get_body(("html",)).get_content()

    @mock.patch("hotelops.services.mailer.smtplib.SMTP")
    def test_welcome_escapes_names(self, smtp):
        configured().send_welcome("jo@example.com", "<script>alert(1)</script>", "O'Neil & Co")
        msg = smtp.return_value.__enter__.return_value.send_message.call_args[0][0]
        html = msg.get_body(("html",)).get_content()
        assert "<script>" not in html
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
        assert "O&#x27;Neil &amp; Co" in html

    @mock.patch("hotelops.services.mailer.smtplib.SMTP")
    def test_welcome_bad_credentials(self, smtp):
        conn = smtp.return_value.__enter__.return_value
        conn.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        result = configured().send_welcome("jo@example.com", "Jo", "Bloggs")
        assert result["ok"] is False
        assert "authentication" in result["error"]
