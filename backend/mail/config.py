"""Email configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional
import os

DEFAULT_FROM_NAME = "EnemPro"


@dataclass(frozen=True)
class EmailConfig:
    """Configuration for outbound email delivery."""

    provider_name: str
    from_email: str
    from_name: str
    smtp_host: str
    smtp_port: int
    smtp_username: Optional[str]
    smtp_password: Optional[str]
    smtp_use_tls: bool
    gmail_client_id: Optional[str]
    gmail_client_secret: Optional[str]
    gmail_refresh_token: Optional[str]
    app_base_url: str

    @property
    def sender(self) -> str:
        if self.from_name:
            return f"{self.from_name} <{self.from_email}>"
        return self.from_email

    @property
    def gmail_configured(self) -> bool:
        return bool(self.gmail_client_id and self.gmail_client_secret and self.gmail_refresh_token)


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def load_email_config(env: Optional[Mapping[str, str]] = None) -> EmailConfig:
    """Load :class:`EmailConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    provider_name = (env_mapping.get("EMAIL_PROVIDER") or "dev").strip().lower() or "dev"
    from_email = env_mapping.get("FROM_EMAIL") or env_mapping.get("EMAIL_FROM") or "noreply@example.com"
    from_name = env_mapping.get("EMAIL_FROM_NAME", DEFAULT_FROM_NAME)

    smtp_host = env_mapping.get("SMTP_HOST", "localhost")
    smtp_port = _to_int(env_mapping.get("SMTP_PORT"), default=587)
    smtp_username = env_mapping.get("SMTP_USER") or None
    smtp_password = env_mapping.get("SMTP_PASS") or None
    smtp_use_tls = _to_bool(env_mapping.get("SMTP_USE_TLS"), default=True)

    app_base_url = env_mapping.get("APP_BASE_URL", "http://localhost:3000")

    return EmailConfig(
        provider_name=provider_name,
        from_email=from_email,
        from_name=from_name,
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_username=smtp_username,
        smtp_password=smtp_password,
        smtp_use_tls=smtp_use_tls,
        gmail_client_id=env_mapping.get("G_CLIENT_ID") or None,
        gmail_client_secret=env_mapping.get("G_CLIENT_SECRET") or None,
        gmail_refresh_token=env_mapping.get("G_REFRESH_TOKEN") or None,
        app_base_url=app_base_url.rstrip("/"),
    )
