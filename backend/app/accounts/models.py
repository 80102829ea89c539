"""Domain models for platform accounts."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements.models import PlanTier


class AccountRole(str, Enum):
    """Roles an account can hold."""

    USER = "user"
    ADMIN = "admin"


class Account(BaseModel):
    """Account record as exposed by the directory.

    The password credential never leaves the directory; only the
    ``must_change_password`` flag is visible here.
    """

    id: str
    email: str
    display_name: str = ""
    phone: str = ""
    tax_id: str = ""
    birth_date: str = ""
    role: AccountRole = AccountRole.USER
    is_active: bool = True
    plan_tier: Optional[PlanTier] = None
    plan_expires_at: Optional[datetime] = None
    must_change_password: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class AccountCreate(BaseModel):
    """Payload used to provision a new account."""

    email: str
    password: str = Field(repr=False)
    display_name: str
    phone: str = ""
    tax_id: str = ""
    birth_date: str = ""
    role: AccountRole = AccountRole.USER
    is_active: bool = True
    plan_tier: PlanTier
    plan_expires_at: datetime
    must_change_password: bool = True

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class AccountPatch(BaseModel):
    """Partial update applied to an existing account.

    Only explicitly set fields are written.
    """

    is_active: Optional[bool] = None
    plan_tier: Optional[PlanTier] = None
    plan_expires_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
