"""Email provider implementations used by the application."""
from __future__ import annotations

import base64
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from .config import EmailConfig

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GMAIL_SEND_SCOPES = ["https://www.googleapis.com/auth/gmail.send"]


def build_mime_message(sender: str, to: str, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["From"] = sender
    message["To"] = to
    message["Subject"] = subject
    message.attach(MIMEText(text_body, "plain", "utf-8"))
    message.attach(MIMEText(html_body, "html", "utf-8"))
    return message


class EmailProvider:
    """Base provider for outbound email delivery."""

    name = "base"

    def __init__(self, *, from_email: str) -> None:
        self.from_email = from_email

    def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> None:
        raise NotImplementedError

    def describe(self) -> Dict[str, str]:
        return {"email_provider": self.name, "email_sender": self.from_email}


class DevPrintProvider(EmailProvider):
    """Development provider that logs messages instead of sending them."""

    name = "dev"

    def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> None:  # pragma: no cover - trivial logging
        logger.info(
            "Dev email dispatch",
            extra={
                "email_recipient": to,
                "email_subject": subject,
                "email_sender": self.from_email,
            },
        )


class SMTPProvider(EmailProvider):
    """Simple SMTP-based provider for production use."""

    name = "smtp"

    def __init__(
        self,
        *,
        from_email: str,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        use_tls: bool,
    ) -> None:
        super().__init__(from_email=from_email)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> None:
        payload = build_mime_message(self.from_email, to, subject, html_body, text_body).as_string()
        with smtplib.SMTP(self.host, self.port, timeout=30) as client:
            if self.use_tls:
                client.starttls()
            if self.username and self.password:
                client.login(self.username, self.password)
            client.sendmail(self.from_email, [to], payload)


class GmailAPIProvider(EmailProvider):
    """Sends mail through the Gmail API using an OAuth2 refresh token."""

    name = "gmail"

    def __init__(
        self,
        *,
        from_email: str,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        service: Optional[Any] = None,
    ) -> None:
        super().__init__(from_email=from_email)
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self._service = service

    def _get_service(self) -> Any:
        if self._service is None:
            credentials = Credentials(
                token=None,
                refresh_token=self.refresh_token,
                token_uri=GOOGLE_TOKEN_URI,
                client_id=self.client_id,
                client_secret=self.client_secret,
                scopes=GMAIL_SEND_SCOPES,
            )
            self._service = build("gmail", "v1", credentials=credentials, cache_discovery=False)
        return self._service

    @staticmethod
    def encode_message(message: MIMEMultipart) -> str:
        return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")

    def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> None:
        message = build_mime_message(self.from_email, to, subject, html_body, text_body)
        service = self._get_service()
        service.users().messages().send(
            userId="me",
            body={"raw": self.encode_message(message)},
        ).execute()


def create_email_provider(config: EmailConfig) -> EmailProvider:
    provider = (config.provider_name or "dev").strip().lower()
    if provider == "smtp":
        return SMTPProvider(
            from_email=config.sender,
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username,
            password=config.smtp_password,
            use_tls=config.smtp_use_tls,
        )
    if provider == "gmail":
        if not config.gmail_configured:
            logger.error(
                "Gmail API credentials are not configured; falling back to the dev email provider",
            )
            return DevPrintProvider(from_email=config.sender)
        return GmailAPIProvider(
            from_email=config.sender,
            client_id=config.gmail_client_id or "",
            client_secret=config.gmail_client_secret or "",
            refresh_token=config.gmail_refresh_token or "",
        )
    return DevPrintProvider(from_email=config.sender)


__all__ = [
    "EmailProvider",
    "DevPrintProvider",
    "GmailAPIProvider",
    "SMTPProvider",
    "build_mime_message",
    "create_email_provider",
]
