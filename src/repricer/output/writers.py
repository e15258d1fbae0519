"""Output layer: preview reports, import files and run summary.

Every file is staged as a ``.tmp`` sibling first; :func:`commit_staged`
renames the set into place only once all of them were written, and
:func:`cleanup_tmp_files` discards them when the run aborts. A rename that
fails midway backs out the renames done before it (see :func:`commit_staged`).
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ..models import TYPE_TAGS, Product, Regime
from ..path_utils import tmp_path_for
from ..reconcile.engine import Reconciliation
from ..reconcile.instructions import fmt_money
from ..standards.schemas import PREVIEW


def _flag(value: bool) -> str:
    return "true" if value else "false"


def preview_row(product: Product, result: Reconciliation) -> Dict[str, str]:
    base = product.base_variant
    return {
        "product_id": product.product_id,
        "handle": product.handle,
        "title": product.title,
        "status_current": product.status,
        "status_desired": result.status_desired,
        "regime": result.regime.value,
        "excluded": _flag(result.excluded),
        "msrp_gross": fmt_money(result.msrp_gross),
        "m_net": fmt_money(result.m_net) if result.m_net > 0 else "",
        "c_net": fmt_money(result.c_net) if result.c_net > 0 else "",
        "margin_projected": fmt_money(result.margin),
        "price_old": fmt_money(base.price),
        "price_new": fmt_money(result.price_new),
        "as_low_as_old": fmt_money(result.as_low_as_old),
        "as_low_as_new": fmt_money(result.as_low_as_new),
        "tags_to_add": "|".join(result.tag_ops.to_add),
        "tags_to_remove": "|".join(result.tag_ops.to_remove),
        "do_draft": _flag(result.do_draft),
        "do_tags": _flag(result.do_tags),
        "do_price": _flag(result.do_price),
        "do_metafield": _flag(result.do_metafield),
        "needs_change": _flag(result.needs_change),
    }


def build_preview_frame(products: Sequence[Product], results: Sequence[Reconciliation]) -> pd.DataFrame:
    rows = [preview_row(p, r) for p, r in zip(products, results)]
    return pd.DataFrame(rows, columns=PREVIEW.required, dtype="string")


def build_rows_frame(rows: Iterable[Dict[str, str]], headers: List[str]) -> pd.DataFrame:
    return pd.DataFrame(list(rows), columns=headers, dtype="string")


def stage_csv(df: pd.DataFrame, final_path: Path) -> Path:
    """Write ``df`` as comma-delimited, minimally quoted CSV to the staging path."""

    tmp = tmp_path_for(final_path)
    df.fillna("").to_csv(tmp, index=False, lineterminator="\n", encoding="utf-8")
    return tmp


def stage_id_list(product_ids: Iterable[str], final_path: Path, header: str = "productId") -> Path:
    tmp = tmp_path_for(final_path)
    tmp.write_text("\n".join([header, *product_ids]), encoding="utf-8")
    return tmp


def stage_json(payload: Dict[str, object], final_path: Path) -> Path:
    tmp = tmp_path_for(final_path)
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
    return tmp


def commit_staged(final_paths: Iterable[Path]) -> List[Path]:
    """Rename staged files into place one by one.

    Renames are individually atomic but the set is not. If one fails, the
    files already renamed by this call are removed again and the error is
    re-raised; same-named outputs of an earlier run that were replaced before
    the failure are not restored.
    """

    committed: List[Path] = []
    try:
        for final_path in final_paths:
            os.replace(tmp_path_for(final_path), final_path)
            committed.append(Path(final_path))
    except OSError:
        for path in committed:
            path.unlink(missing_ok=True)
        raise
    return committed


def summarize_run(
    results: Sequence[Reconciliation],
    row_counts: Dict[str, int],
    outputs: Dict[str, str],
    config_snapshot: Optional[Dict[str, object]] = None,
) -> Dict[str, object]:
    """Machine-readable run summary (counts by regime, drafted, changed)."""

    frame = pd.DataFrame(
        {
            "regime": [r.regime.value for r in results],
            "do_draft": [r.do_draft for r in results],
            "excluded": [r.excluded for r in results],
            "needs_change": [r.needs_change for r in results],
        },
        columns=["regime", "do_draft", "excluded", "needs_change"],
    )
    counts = frame["regime"].value_counts()
    by_regime = {regime.value: int(counts.get(regime.value, 0)) for regime in Regime}
    changed = frame.loc[frame["needs_change"].astype(bool)]
    changed_counts = changed["regime"].value_counts()
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "total_products": int(len(frame)),
        "total_changed": int(len(changed)),
        "drafted": int(frame["do_draft"].astype(bool).sum()),
        "excluded": int(frame["excluded"].astype(bool).sum()),
        "by_regime": by_regime,
        "changed_by_regime": {tag: int(changed_counts.get(tag, 0)) for tag in TYPE_TAGS},
        "row_counts": dict(row_counts),
        "outputs": dict(outputs),
        "config_snapshot": config_snapshot or {},
    }
