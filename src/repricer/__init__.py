"""Catalog price, tag and status reconciliation for Matrixify exports."""

__version__ = "0.1.0"
