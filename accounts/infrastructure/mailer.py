"""SMTP mailer used for verification and password-reset codes."""

import smtplib
from email.mime.text import MIMEText
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


class Mailer(Protocol):
    def send(self, to_email: str, subject: str, body: str) -> None:
        ...


class SMTPMailer:
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        from_email: str = "",
        starttls: bool = True,
        timeout: int = 10,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.starttls = starttls
        self.timeout = timeout

    def send(self, to_email: str, subject: str, body: str) -> None:
        msg = MIMEText(body)
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.starttls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(msg)
        logger.info("Email sent", to=to_email, subject=subject)


def verification_email(otp: str) -> tuple[str, str]:
    return "Account Verification", f"Your account verification code is: {otp}"


def forgot_password_email(otp: str) -> tuple[str, str]:
    return "Forgot Password Verification", f"Your password reset code is: {otp}"
