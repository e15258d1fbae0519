"""Schemas and validators for repricer output frames."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

import pandas as pd

from ..errors import InvariantViolationError


@dataclass(frozen=True)
class Schema:
    required: List[str]
    flags: List[str]


PREVIEW = Schema(
    required=[
        "product_id", "handle", "title", "status_current", "status_desired", "regime", "excluded",
        "msrp_gross", "m_net", "c_net", "margin_projected", "price_old", "price_new",
        "as_low_as_old", "as_low_as_new", "tags_to_add", "tags_to_remove",
        "do_draft", "do_tags", "do_price", "do_metafield", "needs_change",
    ],
    flags=[
        "excluded", "do_draft", "do_tags", "do_price", "do_metafield", "needs_change",
    ],
)

FLAG_VALUES = {"true", "false"}


def _ensure_columns(df: pd.DataFrame, cols: List[str], name: str) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise InvariantViolationError(f"{name} missing required columns: {missing}")


def _ensure_flags(df: pd.DataFrame, cols: List[str], name: str) -> None:
    for c in cols:
        bad = set(df[c].unique()) - FLAG_VALUES
        if bad:
            raise InvariantViolationError(f"{name} column '{c}' must hold true/false, got {sorted(bad)}")


def validate_preview(df: pd.DataFrame) -> None:
    _ensure_columns(df, PREVIEW.required, "preview")
    _ensure_flags(df, PREVIEW.flags, "preview")


def validate_instructions(df: pd.DataFrame, headers: List[str]) -> None:
    _ensure_columns(df, headers, "instructions")
    if "ID" in df.columns and not df["ID"].astype(str).str.fullmatch(r"[0-9]+").all():
        raise InvariantViolationError("instructions column 'ID' must hold numeric product ids")
