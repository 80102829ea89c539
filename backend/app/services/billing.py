"""Application wiring for the subscription webhook reconciler."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from ..accounts import Account
from ..accounts.repository import PostgresAccountDirectory
from ..billing import (
    CredentialDeliveryPayload,
    NotificationDispatcher,
    WebhookConfig,
    WebhookReconciler,
    create_credential_strategy,
    load_webhook_config,
)
from ...mail import EmailConfig, EmailProvider, create_email_provider, load_email_config, render_welcome_email


logger = logging.getLogger("billing")

PASSWORD_CHANGE_NOTICE = "Recomendamos que você altere sua senha no primeiro acesso."

_email_provider: Optional[EmailProvider] = None


@lru_cache(maxsize=1)
def get_email_config() -> EmailConfig:
    return load_email_config()


@lru_cache(maxsize=1)
def get_webhook_config() -> WebhookConfig:
    return load_webhook_config()


def get_email_provider() -> EmailProvider:
    global _email_provider
    if _email_provider is None:
        _email_provider = create_email_provider(get_email_config())
    return _email_provider


def set_email_provider(provider: Optional[EmailProvider]) -> None:
    global _email_provider
    _email_provider = provider


class EmailWelcomeNotifier(NotificationDispatcher):
    """Sends the welcome email carrying the initial credentials."""

    def __init__(
        self,
        *,
        provider: Optional[EmailProvider] = None,
        login_url: str = "",
        product_name: Optional[str] = None,
    ) -> None:
        self._provider = provider
        self.login_url = login_url
        self._product_name = product_name

    @property
    def provider(self) -> EmailProvider:
        return self._provider if self._provider is not None else get_email_provider()

    @property
    def product_name(self) -> str:
        if self._product_name is not None:
            return self._product_name
        return get_email_config().from_name

    def render(self, account: Account, credentials: CredentialDeliveryPayload):
        context = {
            "product_name": self.product_name,
            "display_name": credentials.display_name or account.display_name,
            "email": credentials.email,
            "password": credentials.password,
            "login_url": credentials.login_url or self.login_url,
            "password_notice": PASSWORD_CHANGE_NOTICE if credentials.must_change_password else "",
        }
        return render_welcome_email(context)

    def send_welcome(self, account: Account, credentials: CredentialDeliveryPayload) -> None:
        provider = self.provider
        log_context = {
            **provider.describe(),
            "email_recipient": credentials.email,
            "account_id": account.id,
            "email_type": "welcome",
        }
        logger.info(
            "Dispatching welcome email",
            extra={**log_context, "email_event": "welcome.dispatch.start"},
        )
        subject, text_body, html_body = self.render(account, credentials)
        try:
            provider.send_email(credentials.email, subject, html_body, text_body)
        except Exception:
            logger.exception(
                "Failed to send welcome email",
                extra={**log_context, "email_event": "welcome.dispatch.error"},
            )
            raise
        logger.info(
            "Welcome email dispatched",
            extra={**log_context, "email_event": "welcome.dispatch.success"},
        )


@lru_cache(maxsize=1)
def get_webhook_reconciler() -> WebhookReconciler:
    config = get_webhook_config()
    return WebhookReconciler(
        directory=PostgresAccountDirectory(),
        credential_strategy=create_credential_strategy(config),
        notifier=EmailWelcomeNotifier(login_url=config.login_url),
        login_url=config.login_url,
    )


__all__ = [
    "EmailWelcomeNotifier",
    "get_email_provider",
    "get_webhook_config",
    "get_webhook_reconciler",
    "set_email_provider",
]
