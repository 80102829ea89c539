"""Billing domain package reconciling provider webhooks into accounts."""

from .config import WebhookConfig, load_webhook_config
from .credentials import (
    ConfiguredCredentialStrategy,
    CredentialStrategy,
    GeneratedCredentialStrategy,
    create_credential_strategy,
)
from .models import (
    CredentialDeliveryPayload,
    CustomerInfo,
    OutcomeKind,
    ProductRef,
    ReconciliationOutcome,
    WebhookData,
    WebhookEvent,
    WebhookEventType,
)
from .service import GENERIC_SERVER_ERROR_MESSAGE, NotificationDispatcher, WebhookReconciler

__all__ = [
    "ConfiguredCredentialStrategy",
    "CredentialDeliveryPayload",
    "CredentialStrategy",
    "CustomerInfo",
    "GENERIC_SERVER_ERROR_MESSAGE",
    "GeneratedCredentialStrategy",
    "NotificationDispatcher",
    "OutcomeKind",
    "ProductRef",
    "ReconciliationOutcome",
    "WebhookConfig",
    "WebhookData",
    "WebhookEvent",
    "WebhookEventType",
    "WebhookReconciler",
    "create_credential_strategy",
    "load_webhook_config",
]
