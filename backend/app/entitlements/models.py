"""Domain models for plan entitlements."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PlanTier(str, Enum):
    """Plan tiers granted to accounts.

    Values are the identifiers stored on the account record and shared with
    the rest of the platform.
    """

    MONTHLY = "mensal"
    SEMIANNUAL = "6meses"
    ANNUAL = "anual"


@dataclass(frozen=True)
class PlanEntry:
    """Entitlement granted by a provider product."""

    plan_tier: PlanTier
    duration_months: int

    def __post_init__(self) -> None:
        if self.duration_months <= 0:
            raise ValueError("duration_months must be > 0")
