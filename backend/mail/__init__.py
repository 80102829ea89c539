"""Outbound email configuration, providers and templates."""

from .config import EmailConfig, load_email_config
from .providers import (
    DevPrintProvider,
    EmailProvider,
    GmailAPIProvider,
    SMTPProvider,
    create_email_provider,
)
from .renderer import render_welcome_email

__all__ = [
    "DevPrintProvider",
    "EmailConfig",
    "EmailProvider",
    "GmailAPIProvider",
    "SMTPProvider",
    "create_email_provider",
    "load_email_config",
    "render_welcome_email",
]
