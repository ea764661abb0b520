"""Utilities for decoding uploaded spreadsheets into raw rows."""
from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional, Tuple, Union

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from ..models import RawRow

PathLike = Union[str, Path]
Source = Union[PathLike, bytes, bytearray]

_CSV_SUFFIXES = {".csv", ".tsv", ".txt"}
_EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
_LEGACY_EXCEL_SUFFIXES = {".xls", ".xlsb"}

# Row 1 of the sheet holds the headers.
FIRST_DATA_ROW = 2

_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


class UnsupportedFileTypeError(ValueError):
    """Raised when an unsupported file format is passed to the loader."""


class SpreadsheetReadError(RuntimeError):
    """Raised when a spreadsheet cannot be decoded."""


def read_first_sheet(
    source: Source,
    *,
    filename: Optional[str] = None,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> List[RawRow]:
    """Decode the first worksheet of a spreadsheet into header -> value rows.

    Parameters
    ----------
    source:
        Path to the file, or the raw bytes of an uploaded file.
    filename:
        Original name of an uploaded file. Its suffix decides the format;
        without it the payload is sniffed.
    loader_kwargs:
        Extra keyword arguments forwarded to :func:`pandas.read_csv` or
        :func:`pandas.read_excel`.
    """

    return [row for _, row in read_numbered_rows(source, filename=filename, loader_kwargs=loader_kwargs)]


def read_numbered_rows(
    source: Source,
    *,
    filename: Optional[str] = None,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> List[Tuple[int, RawRow]]:
    """Like :func:`read_first_sheet`, pairing each row with its sheet row number.

    Blank rows are skipped but still counted, so the numbers match what a
    person editing the sheet sees.
    """

    dataframe = _read_dataframe(source, filename=filename, loader_kwargs=loader_kwargs)
    dataframe.columns = [str(column).strip() for column in dataframe.columns]
    dataframe = dataframe.astype(object).where(dataframe.notna(), None)

    rows: List[Tuple[int, RawRow]] = []
    for index, record in enumerate(dataframe.to_dict(orient="records")):
        if _row_is_empty(record):
            continue
        rows.append((index + FIRST_DATA_ROW, record))
    return rows


def _detect_format(source: Source, filename: Optional[str]) -> str:
    name = filename if filename is not None else (None if isinstance(source, (bytes, bytearray)) else str(source))
    if name is not None:
        suffix = Path(name).suffix.lower()
        if suffix in _CSV_SUFFIXES:
            return "tsv" if suffix == ".tsv" else "csv"
        if suffix in _EXCEL_SUFFIXES:
            return "xlsx"
        if suffix in _LEGACY_EXCEL_SUFFIXES:
            raise UnsupportedFileTypeError(
                f"Legacy Excel format '{suffix}' is not supported; save the workbook as .xlsx"
            )
        raise UnsupportedFileTypeError(f"Unsupported file extension: {suffix or name}")

    payload = bytes(source[:8])  # type: ignore[index]
    if payload.startswith(_ZIP_MAGIC):
        return "xlsx"
    if payload.startswith(_OLE_MAGIC):
        raise UnsupportedFileTypeError("Legacy Excel workbooks are not supported; save the workbook as .xlsx")
    return "csv"


def _read_dataframe(
    source: Source,
    *,
    filename: Optional[str] = None,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> pd.DataFrame:
    loader_kwargs = dict(loader_kwargs or {})
    kind = _detect_format(source, filename)
    handle: Any = io.BytesIO(bytes(source)) if isinstance(source, (bytes, bytearray)) else Path(source)

    try:
        if kind in {"csv", "tsv"}:
            if kind == "tsv":
                loader_kwargs.setdefault("sep", "\t")
            loader_kwargs.setdefault("dtype", object)
            loader_kwargs.setdefault("skip_blank_lines", False)
            return pd.read_csv(handle, **loader_kwargs)

        engine = loader_kwargs.pop("engine", None) or "openpyxl"
        return pd.read_excel(handle, sheet_name=0, engine=engine, **loader_kwargs)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except (OSError, ValueError, KeyError, zipfile.BadZipFile, InvalidFileException) as exc:
        raise SpreadsheetReadError(f"Could not read spreadsheet: {exc}") from exc


def _row_is_empty(row: Dict[str, Any]) -> bool:
    return all(value is None or (isinstance(value, str) and not value.strip()) for value in row.values())


__all__ = ["FIRST_DATA_ROW", "read_first_sheet", "read_numbered_rows", "SpreadsheetReadError", "UnsupportedFileTypeError"]
