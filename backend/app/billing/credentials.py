"""Strategies for issuing the initial password of provisioned accounts."""
from __future__ import annotations

import secrets
import string
from typing import Protocol

from .config import CREDENTIAL_STRATEGY_CONFIGURED, WebhookConfig

_ALPHABET = string.ascii_letters + string.digits


class CredentialStrategy(Protocol):
    """Produces the first-login password for a new account."""

    def issue(self, email: str) -> str:
        ...


class ConfiguredCredentialStrategy:
    """Hands out one operator-configured password to every new account."""

    def __init__(self, password: str) -> None:
        if not password:
            raise ValueError("A configured default password must not be empty")
        self._password = password

    def issue(self, email: str) -> str:
        return self._password


class GeneratedCredentialStrategy:
    """Generates a random password per account."""

    def __init__(self, length: int = 12) -> None:
        if length < 8:
            raise ValueError("length must be >= 8")
        self.length = length

    def issue(self, email: str) -> str:
        return "".join(secrets.choice(_ALPHABET) for _ in range(self.length))


def create_credential_strategy(config: WebhookConfig) -> CredentialStrategy:
    if config.credential_strategy == CREDENTIAL_STRATEGY_CONFIGURED:
        return ConfiguredCredentialStrategy(config.default_password or "")
    return GeneratedCredentialStrategy(config.generated_password_length)


__all__ = [
    "ConfiguredCredentialStrategy",
    "CredentialStrategy",
    "GeneratedCredentialStrategy",
    "create_credential_strategy",
]
