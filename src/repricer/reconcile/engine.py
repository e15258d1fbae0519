"""Per-product diff between current catalog state and the computed target.

Four independent decisions are made for every product:

- draft: reference price or cost missing and the product is not already a draft
- tags: the type tag disagrees with the regime
- price: at least one addressable variant is off the uniform target price
- advertised-from: a ``standard`` product's "as low as" value is missing or stale

A value that is not being actively set is never cleared.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

from ..common.config_validator import RepricerConfig, VatConfig
from ..ingestion.records import parse_number
from ..logging_utils import log_warning
from ..models import Product, Regime
from ..pricing.classifier import classify, is_excluded, projected_margin
from ..pricing.model import PriceQuote, price
from ..pricing.tags import TagOps, reconcile_tags


LOGGER_NAME = "repricer.reconcile"

MONEY_TOLERANCE = 0.005


def money_equal(a: Optional[float], b: Optional[float]) -> bool:
    """Numeric comparison under the monetary tolerance; missing values never match."""

    if a is None or b is None:
        return False
    try:
        na, nb = float(a), float(b)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(na) and math.isfinite(nb)):
        return False
    return abs(na - nb) < MONEY_TOLERANCE


@dataclass(frozen=True)
class VariantUpdate:
    variant_id: str
    price_new: float
    is_base: bool = False


@dataclass
class Reconciliation:
    """Derived target state and change decisions for one product."""

    product_id: str
    regime: Regime
    excluded: bool = False
    msrp_gross: Optional[float] = None
    m_net: float = 0.0
    c_net: float = 0.0
    margin: Optional[float] = None
    quote: Optional[PriceQuote] = None
    tag_ops: TagOps = field(default_factory=lambda: TagOps(desired_tags=[]))
    variant_updates: List[VariantUpdate] = field(default_factory=list)
    do_draft: bool = False
    do_metafield: bool = False
    status_desired: str = ""
    as_low_as_old: Optional[float] = None
    as_low_as_new: Optional[float] = None
    as_low_as_raw: str = ""

    @property
    def do_tags(self) -> bool:
        return self.tag_ops.changed

    @property
    def do_price(self) -> bool:
        return bool(self.variant_updates)

    @property
    def needs_change(self) -> bool:
        return self.do_draft or self.do_tags or self.do_price or self.do_metafield

    @property
    def price_new(self) -> Optional[float]:
        return self.quote.price_new if self.quote is not None else None

    @property
    def priceable(self) -> bool:
        return self.quote is not None

    @property
    def advertised_cell(self) -> str:
        """Text for the advertised-from column.

        A value that is being set is written with two decimals; otherwise the
        stored cell is echoed verbatim so the import never rewrites or clears it.
        """
        if self.do_metafield and self.as_low_as_new is not None:
            return f"{self.as_low_as_new:.2f}"
        return self.as_low_as_raw


def net_figures(gross_reference: Optional[float], cost: Optional[float], vat: VatConfig) -> tuple[float, float]:
    """Return (M, C) as used for classification; missing or non-positive values become 0."""

    M = gross_reference if gross_reference is not None and gross_reference > 0 else 0.0
    C = cost if cost is not None and cost > 0 else 0.0
    if vat.enabled:
        if vat.net_reference:
            M = M / (1 + vat.rate)
        if vat.net_cost:
            C = C / (1 + vat.rate)
    return M, C


def reconcile_product(product: Product, config: RepricerConfig, logger: Optional[logging.Logger] = None) -> Reconciliation:
    log = logger or logging.getLogger(LOGGER_NAME)
    tags = list(product.tags)
    as_low_as_old = parse_number(product.as_low_as_raw)

    if is_excluded(tags, config.classifier):
        return Reconciliation(
            product_id=product.product_id,
            regime=Regime.SKIP,
            excluded=True,
            tag_ops=TagOps(desired_tags=tags),
            status_desired=product.status,
            as_low_as_old=as_low_as_old,
            as_low_as_raw=product.as_low_as_raw,
        )

    base = product.base_variant
    M, C = net_figures(base.compare_at, base.cost, config.vat)
    missing = not (M > 0 and C > 0)

    draft_marker = config.catalog.draft_status
    do_draft = missing and product.status.strip().lower() != draft_marker.lower()
    if do_draft:
        log_warning(log, f"Product {product.product_id} lacks reference price or cost; setting status {draft_marker}")

    if missing:
        return Reconciliation(
            product_id=product.product_id,
            regime=Regime.SKIP,
            msrp_gross=base.compare_at,
            m_net=M,
            c_net=C,
            tag_ops=TagOps(desired_tags=tags),
            do_draft=do_draft,
            status_desired=draft_marker if do_draft else product.status,
            as_low_as_old=as_low_as_old,
            as_low_as_raw=product.as_low_as_raw,
        )

    regime = classify(M, C, tags, config.classifier, config.vat)
    quote = price(M, C, regime, config.pricing)
    tag_ops = reconcile_tags(tags, regime)

    updates: List[VariantUpdate] = []
    if quote is not None:
        for variant in product.ordered_variants():
            # Variants without an id cannot be addressed by the import
            if not variant.variant_id:
                continue
            if not money_equal(variant.price, quote.price_new):
                updates.append(
                    VariantUpdate(
                        variant_id=variant.variant_id,
                        price_new=quote.price_new,
                        is_base=variant is base,
                    )
                )

    as_low_as_new: Optional[float] = None
    do_metafield = False
    if regime is Regime.STANDARD and quote is not None and quote.as_low_as > 0:
        as_low_as_new = quote.as_low_as
        do_metafield = as_low_as_old is None or not money_equal(as_low_as_old, as_low_as_new)

    return Reconciliation(
        product_id=product.product_id,
        regime=regime,
        msrp_gross=base.compare_at,
        m_net=M,
        c_net=C,
        margin=projected_margin(M, C, config.classifier, config.vat),
        quote=quote,
        tag_ops=tag_ops,
        variant_updates=updates,
        status_desired=product.status,
        do_metafield=do_metafield,
        as_low_as_old=as_low_as_old,
        as_low_as_raw=product.as_low_as_raw,
        as_low_as_new=as_low_as_new,
    )


def reconcile_catalog(products: List[Product], config: RepricerConfig, logger: Optional[logging.Logger] = None) -> List[Reconciliation]:
    """Reconcile every product, preserving first-encounter order."""

    return [reconcile_product(p, config, logger=logger) for p in products]
