"""Configuration for the subscription webhook receiver."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


CREDENTIAL_STRATEGY_GENERATED = "generated"
CREDENTIAL_STRATEGY_CONFIGURED = "configured"


@dataclass(frozen=True)
class WebhookConfig:
    """Settings that drive account provisioning from webhooks."""

    credential_strategy: str
    default_password: Optional[str]
    generated_password_length: int
    notify_in_background: bool
    app_base_url: str

    @property
    def login_url(self) -> str:
        return f"{self.app_base_url}/login"


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


def load_webhook_config(env: Optional[Mapping[str, str]] = None) -> WebhookConfig:
    """Load :class:`WebhookConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    strategy = (
        env_mapping.get("WEBHOOK_CREDENTIAL_STRATEGY") or CREDENTIAL_STRATEGY_GENERATED
    ).strip().lower()
    if strategy not in {CREDENTIAL_STRATEGY_GENERATED, CREDENTIAL_STRATEGY_CONFIGURED}:
        raise ValueError(f"Unknown credential strategy {strategy!r}")

    default_password = env_mapping.get("WEBHOOK_DEFAULT_PASSWORD") or None
    if strategy == CREDENTIAL_STRATEGY_CONFIGURED and not default_password:
        raise ValueError("WEBHOOK_DEFAULT_PASSWORD is required for the configured strategy")

    length = _to_int(env_mapping.get("WEBHOOK_GENERATED_PASSWORD_LENGTH"), default=12)
    if length < 8:
        raise ValueError("WEBHOOK_GENERATED_PASSWORD_LENGTH must be >= 8")

    return WebhookConfig(
        credential_strategy=strategy,
        default_password=default_password,
        generated_password_length=length,
        notify_in_background=_to_bool(env_mapping.get("WEBHOOK_NOTIFY_IN_BACKGROUND"), default=True),
        app_base_url=env_mapping.get("APP_BASE_URL", "http://localhost:3000").rstrip("/"),
    )


__all__ = [
    "CREDENTIAL_STRATEGY_CONFIGURED",
    "CREDENTIAL_STRATEGY_GENERATED",
    "WebhookConfig",
    "load_webhook_config",
]
