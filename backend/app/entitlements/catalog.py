"""Static catalog mapping provider products to plan entitlements."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .models import PlanEntry, PlanTier


PRODUCT_CATALOG: Mapping[str, PlanEntry] = MappingProxyType(
    {
        "Plano Mensal": PlanEntry(plan_tier=PlanTier.MONTHLY, duration_months=1),
        "Plano 6 Meses": PlanEntry(plan_tier=PlanTier.SEMIANNUAL, duration_months=6),
        "Plano Anual": PlanEntry(plan_tier=PlanTier.ANNUAL, duration_months=12),
        "Produto Teste": PlanEntry(plan_tier=PlanTier.ANNUAL, duration_months=12),
    }
)


class PlanCatalog:
    """Exact-match lookup of provider product names.

    Product names are compared verbatim: no case folding and no whitespace
    trimming. A miss is an expected outcome and is reported as ``None``.
    """

    def __init__(self, entries: Mapping[str, PlanEntry]) -> None:
        self._entries: Mapping[str, PlanEntry] = MappingProxyType(dict(entries))

    def resolve(self, product_name: Optional[str]) -> Optional[PlanEntry]:
        if not isinstance(product_name, str):
            return None
        return self._entries.get(product_name)

    def product_names(self) -> Tuple[str, ...]:
        return tuple(self._entries)


DEFAULT_PLAN_CATALOG = PlanCatalog(PRODUCT_CATALOG)


def resolve_plan(product_name: Optional[str]) -> Optional[PlanEntry]:
    """Resolve ``product_name`` against the default catalog."""

    return DEFAULT_PLAN_CATALOG.resolve(product_name)
