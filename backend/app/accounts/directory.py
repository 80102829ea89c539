"""Capability interface for account storage backends."""
from __future__ import annotations

from typing import Optional, Protocol

from .models import Account, AccountCreate, AccountPatch


class DirectoryError(RuntimeError):
    """Base error raised by account directories."""


class DirectoryWriteError(DirectoryError):
    """Raised when a create or update could not be persisted."""


class AccountConflictError(DirectoryWriteError):
    """Raised when an account with the same email already exists."""

    def __init__(self, email: str) -> None:
        super().__init__(f"Account already exists for {email}")
        self.email = email


class AccountDirectory(Protocol):
    """Lookup and mutation operations on account records.

    Implementations must enforce email uniqueness and report a duplicate
    create as :class:`AccountConflictError`.
    """

    def find_by_email(self, email: str) -> Optional[Account]:
        ...

    def create(self, payload: AccountCreate) -> Account:
        ...

    def update(self, account_id: str, patch: AccountPatch) -> Account:
        ...


__all__ = [
    "AccountConflictError",
    "AccountDirectory",
    "DirectoryError",
    "DirectoryWriteError",
]
