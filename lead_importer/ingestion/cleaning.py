"""Cleaning and validation of raw spreadsheet rows into client records."""
from __future__ import annotations

import logging
import math
import numbers
import re
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models import (
    FEE_FIELDS,
    CallResponse,
    ClientRecord,
    ImportResult,
    ProspectHandlingPolicy,
    RowError,
    Status,
)
from .normalizer import is_status_column, normalize_header, status_flag_column

LOGGER = logging.getLogger(__name__)

# Data starts on the second sheet row; row 1 holds the headers.
HEADER_OFFSET = 2

MISSING_PHONE = "Missing phone"

_CALL_RESPONSE_SYNONYMS: Mapping[str, CallResponse] = MappingProxyType(
    {
        **{member.value.lower(): member for member in CallResponse},
        "hang up": CallResponse.HANGUP,
        "hung up": CallResponse.HANGUP,
        "hanged up": CallResponse.HANGUP,
        "hang call": CallResponse.HANGUP,
        "hang call by client": CallResponse.HANGUP,
        "hang call by cilent": CallResponse.HANGUP,
        "not interested": CallResponse.NOTINTERESTED,
        "wrong number": CallResponse.WRONG,
        "not responded": CallResponse.NOTRESPONDED,
        "no response": CallResponse.NOTRESPONDED,
        "no answer": CallResponse.NOTRESPONDED,
        "not reached": CallResponse.NOTREACHED,
    }
)

_NON_DIGITS = re.compile(r"\D")
_CURRENCY_NOISE = re.compile(r"[\s,$₹€£]")
_STATUS_NOISE = re.compile(r"[\s\-]+")
_WHITESPACE = re.compile(r"\s+")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _render_scalar(value: Any) -> str:
    # Spreadsheets hand back whole numbers as floats (5550001.0).
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        number = float(value)
        if number.is_integer():
            return str(int(number))
    return str(value).strip()


def clean_text(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    return _render_scalar(value) or None


def clean_currency(value: Any) -> Optional[float]:
    """Parse a fee amount; blanks, garbage and negative amounts become ``None``."""

    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        number = float(value)
    else:
        text = _CURRENCY_NOISE.sub("", str(value))
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number) or number < 0:
        return None
    return number


def clean_phone(value: Any) -> Optional[str]:
    """Keep digits and a single leading ``+``: ``"(555) 000-0001"`` -> ``"5550000001"``."""

    if _is_blank(value) or isinstance(value, bool):
        return None
    text = _render_scalar(value)
    digits = _NON_DIGITS.sub("", text)
    if not digits:
        return None
    return f"+{digits}" if text.startswith("+") else digits


def clean_call_response(value: Any) -> Tuple[Optional[CallResponse], bool]:
    """Return the call response and whether the raw value was acceptable.

    A blank cell is acceptable and yields ``None``; an unrecognised phrase
    yields ``(None, False)``.
    """

    if _is_blank(value):
        return None, True
    key = _WHITESPACE.sub(" ", _render_scalar(value)).lower()
    mapped = _CALL_RESPONSE_SYNONYMS.get(key)
    return mapped, mapped is not None


def _is_yes(value: Any) -> bool:
    return not _is_blank(value) and str(value).strip().lower() == "yes"


def apply_prospect_policy(status: Optional[Status], policy: ProspectHandlingPolicy) -> Optional[Status]:
    if policy is ProspectHandlingPolicy.DEFAULT_TO_PROSPECT:
        return status or Status.PROSPECT
    if status is Status.PROSPECT:
        return None
    return status


def infer_status(
    row: Mapping[str, Any],
    policy: ProspectHandlingPolicy = ProspectHandlingPolicy.NULL_ON_PROSPECT,
) -> Optional[Status]:
    """Resolve the status of a row.

    Yes/no flag columns (``HOT``, ``FOLLOW-UP``...) are consulted first, in
    :class:`Status` order. A ``STATUS`` column is only used when no flag
    column says yes.
    """

    flagged = set()
    status_value: Any = None
    for header, value in row.items():
        flag = status_flag_column(header)
        if flag is not None:
            if _is_yes(value):
                flagged.add(flag)
        elif is_status_column(header) and _is_blank(status_value):
            status_value = value

    status = next((member for member in Status if member in flagged), None)
    if status is None and not _is_blank(status_value):
        candidate = _STATUS_NOISE.sub("", _render_scalar(status_value)).upper()
        status = Status.__members__.get(candidate)
    return apply_prospect_policy(status, policy)


def _collect_fields(row: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for header, value in row.items():
        field = normalize_header(header)
        if field is None or _is_blank(value) or field in values:
            continue
        values[field] = value
    return values


def clean_row(
    row: Mapping[str, Any],
    row_number: int,
    policy: ProspectHandlingPolicy = ProspectHandlingPolicy.NULL_ON_PROSPECT,
) -> Tuple[Optional[ClientRecord], List[RowError]]:
    """Clean a single row, returning the record (if usable) and its problems."""

    errors: List[RowError] = []
    values = _collect_fields(row)

    raw_response = values.get("call_response")
    call_response, accepted = clean_call_response(raw_response)
    if not accepted:
        errors.append(
            RowError(row_number, f'Invalid call response: "{_render_scalar(raw_response)}", defaulted to null.')
        )

    phone = clean_phone(values.get("phone"))
    if phone is None:
        errors.append(RowError(row_number, MISSING_PHONE))
        return None, errors

    record = ClientRecord(
        phone=phone,
        name=clean_text(values.get("name")),
        status=infer_status(row, policy),
        call_response=call_response,
        notes=clean_text(values.get("notes")),
        course=clean_text(values.get("course")),
        row_number=row_number,
    )
    for field in FEE_FIELDS:
        setattr(record, field, clean_currency(values.get(field)))
    return record, errors


def clean_rows(
    rows: Iterable[Mapping[str, Any]],
    *,
    policy: ProspectHandlingPolicy = ProspectHandlingPolicy.NULL_ON_PROSPECT,
    row_numbers: Optional[Sequence[int]] = None,
) -> ImportResult:
    """Partition raw rows into cleaned client records and row errors.

    Rows are numbered by position plus :data:`HEADER_OFFSET` unless
    ``row_numbers`` gives the sheet row of each one.
    """

    rows = list(rows)
    if row_numbers is None:
        row_numbers = range(HEADER_OFFSET, len(rows) + HEADER_OFFSET)
    elif len(row_numbers) != len(rows):
        raise ValueError(f"Got {len(row_numbers)} row numbers for {len(rows)} rows")

    result = ImportResult()
    for row_number, row in zip(row_numbers, rows):
        record, errors = clean_row(row, row_number, policy)
        for error in errors:
            LOGGER.warning("Row %s: %s", error.row, error.message)
        result.errors.extend(errors)
        if record is not None:
            result.cleaned.append(record)

    LOGGER.info(
        "Cleaned %s of %s rows (%s row errors)", len(result.cleaned), len(rows), len(result.errors)
    )
    return result


__all__ = [
    "MISSING_PHONE",
    "apply_prospect_policy",
    "clean_call_response",
    "clean_currency",
    "clean_phone",
    "clean_row",
    "clean_rows",
    "clean_text",
    "infer_status",
]
