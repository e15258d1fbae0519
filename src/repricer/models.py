"""Catalog entities shared across the reconciliation pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


POSITION_SENTINEL = 999999


class Regime(str, Enum):
    """Pricing category assigned to a product."""

    SKIP = "skip"
    USED = "used"
    STANDARD = "standard"
    LOW_MARGIN = "low-margin"

    @property
    def is_typed(self) -> bool:
        return self is not Regime.SKIP


# Mutually exclusive type tags, in the order they are reported
TYPE_TAGS: Tuple[str, ...] = (Regime.USED.value, Regime.STANDARD.value, Regime.LOW_MARGIN.value)


@dataclass(frozen=True)
class Variant:
    variant_id: str
    position: int = POSITION_SENTINEL
    price: Optional[float] = None
    compare_at: Optional[float] = None
    cost: Optional[float] = None


@dataclass(frozen=True)
class Product:
    """Per-product aggregate built from one or more export rows.

    ``variants`` keeps encounter order. The base variant (smallest position,
    first seen on ties) is the only source of reference price and cost.
    """

    product_id: str
    variants: Tuple[Variant, ...]
    title: str = ""
    handle: str = ""
    status: str = ""
    tags: Tuple[str, ...] = ()
    as_low_as_raw: str = ""

    def __post_init__(self) -> None:
        if not self.variants:
            raise ValueError(f"Product {self.product_id} has no variants")

    @property
    def base_variant(self) -> Variant:
        # min() keeps the first of equal keys
        return min(self.variants, key=lambda v: v.position)

    def ordered_variants(self) -> List[Variant]:
        """Base variant first, then the remaining variants by ascending position."""

        base = self.base_variant
        rest = sorted((v for v in self.variants if v is not base), key=lambda v: v.position)
        return [base] + rest


@dataclass(frozen=True)
class CatalogSnapshot:
    """Result of assembling one export file."""

    headers: List[str]
    delimiter: str
    advertised_column: Optional[str]
    products: List[Product] = field(default_factory=list)
