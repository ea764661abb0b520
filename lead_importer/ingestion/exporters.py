"""Export utilities for import errors and stored clients."""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Iterable, MutableMapping, Optional, Sequence, Union

import pandas as pd

from ..models import RowError, StoredClient, UpsertOutcome

PathLike = Union[str, Path]

_ERROR_COLUMNS = ["row", "phone", "message"]
_CSV_SUFFIXES = {".csv", ".tsv"}
_EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
EXPORT_SUFFIXES = frozenset(_CSV_SUFFIXES | _EXCEL_SUFFIXES)


def errors_to_dataframe(
    errors: Sequence[RowError],
    failures: Iterable[UpsertOutcome] = (),
) -> pd.DataFrame:
    """Combine row errors and failed upserts into one frame ordered by row."""

    records = [{"row": error.row, "phone": None, "message": error.message} for error in errors]
    records.extend(
        {"row": failure.row_number, "phone": failure.phone, "message": failure.error} for failure in failures
    )
    records.sort(key=lambda record: record["row"] if record["row"] is not None else 0)
    return pd.DataFrame(records, columns=_ERROR_COLUMNS)


def export_row_errors(
    errors: Sequence[RowError],
    path: PathLike,
    *,
    failures: Iterable[UpsertOutcome] = (),
    sheet_name: str = "Errors",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Write the rows an uploader has to fix to a CSV or Excel file."""

    output_path = Path(path)
    _write_dataframe(
        errors_to_dataframe(errors, failures),
        output_path,
        sheet_name=sheet_name,
        exporter_kwargs=exporter_kwargs,
    )
    return output_path


def clients_to_dataframe(clients: Sequence[StoredClient]) -> pd.DataFrame:
    """Convert stored clients into a :class:`pandas.DataFrame`."""

    records = []
    for client in clients:
        row = asdict(client)
        row["balance_due"] = client.balance_due
        for stamp in ("created_at", "updated_at"):
            if row[stamp] is not None:
                row[stamp] = row[stamp].isoformat()
        records.append(row)
    columns = [field for field in StoredClient.__dataclass_fields__] + ["balance_due"]
    return pd.DataFrame(records, columns=columns)


def export_clients(
    clients: Sequence[StoredClient],
    path: PathLike,
    *,
    sheet_name: str = "Clients",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    output_path = Path(path)
    _write_dataframe(clients_to_dataframe(clients), output_path, sheet_name=sheet_name, exporter_kwargs=exporter_kwargs)
    return output_path


def _write_dataframe(
    dataframe: pd.DataFrame,
    path: Path,
    *,
    sheet_name: str,
    exporter_kwargs: Optional[MutableMapping[str, object]],
) -> None:
    exporter_kwargs = dict(exporter_kwargs or {})
    suffix = path.suffix.lower()
    path.parent.mkdir(parents=True, exist_ok=True)

    if suffix in _CSV_SUFFIXES:
        if suffix == ".tsv":
            exporter_kwargs.setdefault("sep", "\t")
        dataframe.to_csv(path, index=False, **exporter_kwargs)
        return

    if suffix in _EXCEL_SUFFIXES:
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        dataframe.to_excel(path, index=False, sheet_name=sheet_name, engine=engine, **exporter_kwargs)
        return

    raise ValueError(f"Unsupported export file extension: {suffix}")


__all__ = ["EXPORT_SUFFIXES", "clients_to_dataframe", "errors_to_dataframe", "export_clients", "export_row_errors"]
