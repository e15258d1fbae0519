"""Regime decision for a product.

A product is simulated at the deepest configured discount; if the sale still
covers cost, shipping and fees it is ``standard``, otherwise ``low-margin``.
Tagged pre-owned items bypass the simulation and are always ``used``.
"""
from __future__ import annotations

from typing import Iterable, Optional

from ..common.config_validator import ClassifierConfig, VatConfig
from ..models import Regime
from .tags import has_any_tag


def projected_margin(M: float, C: float, cfg: ClassifierConfig, vat: Optional[VatConfig] = None) -> float:
    """Gross margin G of a worst-case sale at ``cfg.d_max`` discount."""

    p_sale_max = M * (1 - cfg.d_max)
    affiliate_fee = p_sale_max * cfg.aff_rate
    fee_base = p_sale_max + cfg.cust_ship
    if vat is not None and vat.enabled and vat.scale_other_fee:
        fee_base = fee_base * (1 + vat.rate)
    other_fee = fee_base * cfg.other_rate
    return p_sale_max - C - cfg.ship_cost - affiliate_fee - other_fee


def is_excluded(tags: Iterable[str], cfg: ClassifierConfig) -> bool:
    """Manually excluded products are out of scope entirely."""

    return bool(cfg.exclusion_tags) and has_any_tag(tags, cfg.exclusion_tags)


def classify(M: Optional[float], C: Optional[float], tags: Iterable[str], cfg: ClassifierConfig, vat: Optional[VatConfig] = None) -> Regime:
    if not (M is not None and M > 0) or not (C is not None and C > 0):
        return Regime.SKIP
    if has_any_tag(tags, cfg.used_tags):
        return Regime.USED
    G = projected_margin(M, C, cfg, vat)
    return Regime.STANDARD if G >= 0 else Regime.LOW_MARGIN
