"""Reading, normalising, cleaning, and exporting uploaded client spreadsheets."""
from __future__ import annotations

from .cleaning import (
    MISSING_PHONE,
    clean_call_response,
    clean_currency,
    clean_phone,
    clean_rows,
    infer_status,
)
from .exporters import export_clients, export_row_errors
from .loaders import SpreadsheetReadError, UnsupportedFileTypeError, read_first_sheet, read_numbered_rows
from .normalizer import normalize_header

__all__ = [
    "MISSING_PHONE",
    "SpreadsheetReadError",
    "UnsupportedFileTypeError",
    "clean_call_response",
    "clean_currency",
    "clean_phone",
    "clean_rows",
    "export_clients",
    "export_row_errors",
    "infer_status",
    "normalize_header",
    "read_first_sheet",
    "read_numbered_rows",
]
