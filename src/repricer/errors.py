"""Exception taxonomy for the reconciliation run.

Only row-local numeric problems are absorbed (as ``None`` values); everything
below aborts the run before any output file is written.
"""
from __future__ import annotations

from typing import Iterable, List, Optional


class RepricerError(Exception):
    """Base class for fatal run errors."""


class ConfigurationError(RepricerError, ValueError):
    """Input missing, invalid settings, or required columns absent."""

    def __init__(self, message: str, missing: Optional[Iterable[str]] = None, headers: Optional[Iterable[str]] = None):
        self.missing: List[str] = list(missing or [])
        self.headers: List[str] = list(headers or [])
        super().__init__(message)


class StructuralIntegrityError(RepricerError):
    """Record boundaries can no longer be trusted (e.g. non-numeric product id)."""

    def __init__(self, message: str, record_number: Optional[int] = None, value: Optional[str] = None):
        self.record_number = record_number
        self.value = value
        super().__init__(message)


class InvariantViolationError(RepricerError):
    """An emitted instruction row breaks an output invariant."""

    def __init__(self, message: str, product_id: Optional[str] = None):
        self.product_id = product_id
        super().__init__(message)
