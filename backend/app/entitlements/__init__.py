"""Entitlements domain: plan catalog and expiration arithmetic."""

from .catalog import DEFAULT_PLAN_CATALOG, PRODUCT_CATALOG, PlanCatalog, resolve_plan
from .expiration import compute_expiration, format_timestamp, parse_timestamp
from .models import PlanEntry, PlanTier

__all__ = [
    "DEFAULT_PLAN_CATALOG",
    "PRODUCT_CATALOG",
    "PlanCatalog",
    "PlanEntry",
    "PlanTier",
    "compute_expiration",
    "format_timestamp",
    "parse_timestamp",
    "resolve_plan",
]
