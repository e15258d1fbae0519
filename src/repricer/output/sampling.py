"""Deterministic, regime-stratified selection of changed products for manual review."""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from ..models import Regime


SAMPLE_ORDER: Tuple[Regime, ...] = (Regime.STANDARD, Regime.LOW_MARGIN, Regime.USED)


def default_quota(size: int, order: Sequence[Regime] = SAMPLE_ORDER) -> int:
    return max(1, size // max(1, len(order)))


def select_sample(
    changed: Iterable[Tuple[str, Regime]],
    size: int,
    quota: Optional[int] = None,
    order: Sequence[Regime] = SAMPLE_ORDER,
) -> List[str]:
    """Pick up to ``size`` product ids.

    Each regime in ``order`` contributes up to ``quota`` ids (first seen
    first); the remainder is backfilled in original order. Only regimes
    listed in ``order`` are eligible, so products whose only change is a
    draft (``skip``) never enter the sample.
    """

    eligible = set(order)
    pool = [(product_id, regime) for product_id, regime in changed if regime in eligible]
    if size <= 0 or not pool:
        return []
    per_regime = default_quota(size, order) if quota is None else quota

    picked: List[str] = []
    seen = set()
    for regime in order:
        taken = 0
        for product_id, product_regime in pool:
            if len(picked) >= size or taken >= per_regime:
                break
            if product_regime == regime and product_id not in seen:
                picked.append(product_id)
                seen.add(product_id)
                taken += 1

    for product_id, _ in pool:
        if len(picked) >= size:
            break
        if product_id not in seen:
            picked.append(product_id)
            seen.add(product_id)
    return picked
