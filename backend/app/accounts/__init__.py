"""Accounts domain package exposing the directory capability interface."""

from .directory import (
    AccountConflictError,
    AccountDirectory,
    DirectoryError,
    DirectoryWriteError,
)
from .models import Account, AccountCreate, AccountPatch, AccountRole

__all__ = [
    "Account",
    "AccountConflictError",
    "AccountCreate",
    "AccountDirectory",
    "AccountPatch",
    "AccountRole",
    "DirectoryError",
    "DirectoryWriteError",
]
