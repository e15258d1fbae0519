"""Closed-form target prices per regime.

Two models are used:

- cost-plus (``used`` and ``low-margin``): cost is marked up by a constant,
  a log-ratio term on M/C and a logistic size adjustment that fades out for
  expensive items, plus a fixed amount N.
- discount-depth (``standard``): a hidden list price derived from how deep the
  catalog discount already is, so that the maximum discount lands on an
  advertised "as low as" price.

In every regime the reference price M is a hard ceiling for the new price.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from ..common.config_validator import CostPlusParams, PricingConfig, StandardParams
from ..models import Regime


MAX_DISCOUNT_DEPTH = 0.99


@dataclass(frozen=True)
class PriceQuote:
    price_new: float
    as_low_as: float = 0.0


def round_money(x: float) -> float:
    """Round half-up to cents."""
    return float(np.floor(float(x) * 100.0 + 0.5) / 100.0)


def cap_money(x: float, ceiling: float) -> float:
    """Round to cents without ever exceeding ``ceiling``."""
    rounded = round_money(x)
    if rounded > ceiling:
        rounded = float(np.floor(ceiling * 100.0) / 100.0)
    return rounded


def _cost_plus_table(cfg: PricingConfig) -> Dict[Regime, CostPlusParams]:
    return {Regime.USED: cfg.used, Regime.LOW_MARGIN: cfg.low_margin}


def cost_plus_price(M: float, C: float, p: CostPlusParams) -> float:
    with np.errstate(over="ignore"):
        sM = 1.0 / (1.0 + np.exp((M - p.K0) / p.k))
    price_raw = C * (1.0 + p.alpha + p.beta * np.log10(M / C) + p.gamma * sM) + p.N
    return float(min(M, price_raw))


def hidden_price(M: float, C: float, p: StandardParams) -> float:
    """Hidden list price P_hidden of the discount-depth model (capped at M)."""

    d = float(np.clip(1.0 - C / M, 0.0, MAX_DISCOUNT_DEPTH))
    L_d = np.log10(1.0 / (1.0 - d))
    L_dref = np.log10(1.0 / (1.0 - p.d_ref))
    mu_d = p.mu0 + p.beta_disc * (L_d - L_dref)
    m_shape = (M / p.M_ref) ** (-p.gamma_M)
    A_M = M * m_shape / (1.0 - p.d_max)
    B_d = (1.0 - p.rho) * (1.0 + mu_d) * (1.0 - d) + p.rho * (1.0 + p.mu0) * (1.0 - p.d_ref)
    return float(min(M, A_M * B_d))


def price(M: Optional[float], C: Optional[float], regime: Regime, cfg: PricingConfig) -> Optional[PriceQuote]:
    """Return the target quote, or None when the regime or inputs are not priceable."""

    if M is None or C is None or not (M > 0) or not (C > 0):
        return None

    if regime is Regime.STANDARD:
        p_hidden = hidden_price(M, C, cfg.standard)
        return PriceQuote(
            price_new=cap_money(p_hidden, M),
            as_low_as=round_money((1.0 - cfg.standard.d_max) * p_hidden),
        )

    params = _cost_plus_table(cfg).get(regime)
    if params is None:
        return None
    return PriceQuote(price_new=cap_money(cost_plus_price(M, C, params), M), as_low_as=0.0)
