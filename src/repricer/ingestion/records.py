"""Record assembly for Matrixify product exports.

The export has one row per product variant. Quoted fields (typically
``Body HTML``) may span several physical lines, so rows are only tokenized
once the accumulated buffer holds a balanced number of quote characters.
"""
from __future__ import annotations

import csv
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..errors import ConfigurationError, StructuralIntegrityError
from ..logging_utils import log_system_event, log_warning
from ..models import POSITION_SENTINEL, CatalogSnapshot, Product, Variant
from ..pricing.tags import split_tags


LOGGER_NAME = "repricer.ingestion"

COL_ID = "ID"
COL_TITLE = "Title"
COL_HANDLE = "Handle"
COL_TAGS = "Tags"
COL_STATUS = "Status"
COL_VARIANT_ID = "Variant ID"
COL_VARIANT_POSITION = "Variant Position"
COL_VARIANT_PRICE = "Variant Price"
COL_VARIANT_COMPARE_AT = "Variant Compare At Price"
COL_VARIANT_COST = "Variant Cost"

REQUIRED_COLUMNS = [
    COL_ID,
    COL_TAGS,
    COL_STATUS,
    COL_VARIANT_ID,
    COL_VARIANT_POSITION,
    COL_VARIANT_PRICE,
    COL_VARIANT_COMPARE_AT,
    COL_VARIANT_COST,
]

HEADER_PREVIEW_COUNT = 10

PRODUCT_ID_PATTERN = re.compile(r"[0-9]+")
BOM = "\ufeff"


def detect_delimiter(header_line: str) -> str:
    """Prefer ``;`` only when it strictly outnumbers ``,`` on the header line."""

    return ";" if header_line.count(";") > header_line.count(",") else ","


def parse_number(value: object) -> Optional[float]:
    """Parse a monetary/position cell; ``,`` and ``.`` are both decimal separators.

    Returns None for blank, unparseable or non-finite input.
    """

    text = str(value if value is not None else "").strip()
    if not text:
        return None
    try:
        number = float(text.replace(",", ".", 1))
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_position(value: object) -> int:
    number = parse_number(value)
    if number is None:
        return POSITION_SENTINEL
    return int(number)


def _strip_line_ending(line: str) -> str:
    return line.rstrip("\r\n")


def is_complete_record(buffer: str) -> bool:
    # A doubled "" escape adds two quotes, so it never changes the parity.
    return buffer.count('"') % 2 == 0


def iter_records(lines: Iterable[str]) -> Iterator[Tuple[int, str]]:
    """Yield ``(physical_line_number, record_text)`` for every complete record.

    Physical lines are BOM-stripped and joined with ``\\n`` while a quoted
    field is still open. The line number is that of the record's first line.
    A quoted field still open at end of input means record boundaries can no
    longer be trusted and raises :class:`StructuralIntegrityError`.
    """

    pending: List[str] = []
    start_line = 0
    for number, raw in enumerate(lines, start=1):
        line = _strip_line_ending(raw).lstrip(BOM)
        if not pending:
            start_line = number
        pending.append(line)
        buffer = "\n".join(pending)
        if not is_complete_record(buffer):
            continue
        pending = []
        if buffer.strip():
            yield start_line, buffer
    if pending:
        raise StructuralIntegrityError(
            f"Unterminated quoted field in record starting at line {start_line}; "
            f"{len(pending)} physical lines were never closed",
            record_number=start_line,
        )


def tokenize(record: str, delimiter: str) -> List[str]:
    """Split one complete record into fields (RFC4180 quoting)."""

    try:
        rows = list(csv.reader([record], delimiter=delimiter, quotechar='"', doublequote=True))
    except csv.Error as exc:
        raise StructuralIntegrityError(f"Unreadable record: {exc}") from exc
    return rows[0] if rows else []


def validate_header(headers: List[str]) -> None:
    missing = [col for col in REQUIRED_COLUMNS if col not in headers]
    if missing:
        preview = headers[:HEADER_PREVIEW_COUNT]
        raise ConfigurationError(
            f"Missing required columns: {missing}. First {len(preview)} headers detected: {preview}",
            missing=missing,
            headers=preview,
        )


def find_advertised_column(headers: List[str], prefix: str) -> Optional[str]:
    for col in headers:
        if col.startswith(prefix):
            return col
    return None


@dataclass
class _PendingProduct:
    product_id: str
    scalars: Dict[str, str] = field(default_factory=dict)
    variants: List[Variant] = field(default_factory=list)


class ProductAccumulator:
    """Keyed accumulator of export rows, grouped by product id in first-seen order."""

    SCALAR_FIELDS = ("title", "handle", "status", "tags", "as_low_as_raw")

    def __init__(self) -> None:
        self._pending: Dict[str, _PendingProduct] = {}

    def add_row(self, product_id: str, scalars: Dict[str, str], variant: Variant) -> None:
        entry = self._pending.get(product_id)
        if entry is None:
            entry = _PendingProduct(product_id=product_id)
            self._pending[product_id] = entry
        for name in self.SCALAR_FIELDS:
            value = scalars.get(name, "")
            # First non-empty value wins
            if value and not entry.scalars.get(name):
                entry.scalars[name] = value
        entry.variants.append(variant)

    def finalize(self) -> List[Product]:
        products: List[Product] = []
        for entry in self._pending.values():
            s = entry.scalars
            products.append(
                Product(
                    product_id=entry.product_id,
                    variants=tuple(entry.variants),
                    title=s.get("title", ""),
                    handle=s.get("handle", ""),
                    status=s.get("status", ""),
                    tags=tuple(split_tags(s.get("tags", ""))),
                    as_low_as_raw=s.get("as_low_as_raw", ""),
                )
            )
        return products


def assemble_products(
    lines: Iterable[str],
    advertised_prefix: str = "Metafield: spotted.as_low_as",
    logger: Optional[logging.Logger] = None,
) -> CatalogSnapshot:
    """Group a Matrixify export into per-product aggregates.

    Raises:
        ConfigurationError: empty input or required columns missing.
        StructuralIntegrityError: a product id is not a positive integer string,
            which means a multi-line record was split in the wrong place.
    """

    log = logger or logging.getLogger(LOGGER_NAME)
    records = iter_records(lines)
    first = next(records, None)
    if first is None:
        raise ConfigurationError("Input is empty: no header line found")

    _, header_line = first
    delimiter = detect_delimiter(header_line)
    headers = [h.strip() for h in tokenize(header_line, delimiter)]
    validate_header(headers)
    advertised_column = find_advertised_column(headers, advertised_prefix)

    index = {name: i for i, name in reversed(list(enumerate(headers)))}

    def cell(values: List[str], name: Optional[str]) -> str:
        if name is None or name not in index:
            return ""
        pos = index[name]
        return values[pos] if pos < len(values) else ""

    accumulator = ProductAccumulator()
    for line_number, record in records:
        values = tokenize(record, delimiter)
        if not any(v.strip() for v in values):
            continue

        product_id = cell(values, COL_ID).strip()
        if not PRODUCT_ID_PATTERN.fullmatch(product_id):
            raise StructuralIntegrityError(
                f"Non-numeric product ID {product_id!r} in record starting at line {line_number}; "
                "the export is probably mis-tokenized (broken multi-line field)",
                record_number=line_number,
                value=product_id,
            )

        raw_position = cell(values, COL_VARIANT_POSITION)
        position = parse_position(raw_position)
        if position == POSITION_SENTINEL and raw_position.strip():
            log_warning(log, f"Unparseable variant position {raw_position!r} for product {product_id} (line {line_number})")

        variant = Variant(
            variant_id=cell(values, COL_VARIANT_ID).strip(),
            position=position,
            price=parse_number(cell(values, COL_VARIANT_PRICE)),
            compare_at=parse_number(cell(values, COL_VARIANT_COMPARE_AT)),
            cost=parse_number(cell(values, COL_VARIANT_COST)),
        )
        accumulator.add_row(
            product_id,
            {
                "title": cell(values, COL_TITLE),
                "handle": cell(values, COL_HANDLE),
                "status": cell(values, COL_STATUS).strip(),
                "tags": cell(values, COL_TAGS),
                "as_low_as_raw": cell(values, advertised_column).strip(),
            },
            variant,
        )

    products = accumulator.finalize()
    log_system_event(log, f"Assembled {len(products)} products from export (delimiter {delimiter!r})")
    return CatalogSnapshot(
        headers=headers,
        delimiter=delimiter,
        advertised_column=advertised_column,
        products=products,
    )
