"""Matrixify import rows built from reconciliation results."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from ..errors import InvariantViolationError
from ..models import Product
from ..pricing.tags import join_tags
from .engine import Reconciliation


COMMAND_UPDATE = "UPDATE"
TAGS_COMMAND_REPLACE = "REPLACE"

BASE_IMPORT_HEADERS = [
    "ID",
    "Command",
    "Tags",
    "Tags Command",
    "Status",
    "Variant ID",
    "Variant Command",
    "Variant Price",
]


def import_headers(advertised_column: str) -> List[str]:
    return BASE_IMPORT_HEADERS + [advertised_column]


def fmt_money(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{value:.2f}"


def _blank_row(product_id: str, advertised_column: str) -> Dict[str, str]:
    row = {col: "" for col in import_headers(advertised_column)}
    row["ID"] = product_id
    row["Command"] = COMMAND_UPDATE
    return row


def _attach_product_fields(row: Dict[str, str], result: Reconciliation, advertised_column: str, draft_status: str) -> None:
    if result.do_tags:
        row["Tags"] = join_tags(result.tag_ops.desired_tags)
        row["Tags Command"] = TAGS_COMMAND_REPLACE
    if result.do_draft:
        row["Status"] = draft_status
    row[advertised_column] = result.advertised_cell


def _attach_variant(row: Dict[str, str], variant_id: str, price_new: float) -> None:
    row["Variant ID"] = variant_id
    row["Variant Command"] = COMMAND_UPDATE
    row["Variant Price"] = fmt_money(price_new)


def build_change_rows(result: Reconciliation, advertised_column: str, draft_status: str = "Draft") -> List[Dict[str, str]]:
    """Rows for one changed product: a primary row plus one row per further variant update.

    The primary row carries the product-level fields and, when the base
    variant itself needs a new price, that variant's update.
    """

    if result.excluded or not result.needs_change:
        return []

    primary = _blank_row(result.product_id, advertised_column)
    _attach_product_fields(primary, result, advertised_column, draft_status)
    rows = [primary]
    for update in result.variant_updates:
        if update.is_base:
            _attach_variant(primary, update.variant_id, update.price_new)
            continue
        row = _blank_row(result.product_id, advertised_column)
        _attach_variant(row, update.variant_id, update.price_new)
        rows.append(row)
    return rows


def build_full_rows(product: Product, result: Reconciliation, advertised_column: str, draft_status: str = "Draft") -> List[Dict[str, str]]:
    """Rows writing the target value of every managed field for one product.

    Priceable products get one row per addressable variant (base first);
    other products get a single product-level row. Excluded products get none.
    """

    if result.excluded:
        return []

    variants = [v for v in product.ordered_variants() if v.variant_id]
    if not result.priceable or not variants:
        row = _blank_row(result.product_id, advertised_column)
        _attach_product_fields(row, result, advertised_column, draft_status)
        return [row]

    rows: List[Dict[str, str]] = []
    for idx, variant in enumerate(variants):
        row = _blank_row(result.product_id, advertised_column)
        _attach_variant(row, variant.variant_id, result.price_new)
        if idx == 0:
            _attach_product_fields(row, result, advertised_column, draft_status)
        rows.append(row)
    return rows


def check_variant_price_invariant(rows: Iterable[Dict[str, str]]) -> None:
    """A row may never name a variant without also carrying its price."""

    for row in rows:
        if str(row.get("Variant ID", "")).strip() and not str(row.get("Variant Price", "")).strip():
            raise InvariantViolationError(
                f"Instruction row for product {row.get('ID')} names variant {row.get('Variant ID')} without a price",
                product_id=row.get("ID"),
            )
