"""Mapping of human-authored spreadsheet headers onto client fields."""
from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from ..models import Status

_FIELD_SYNONYMS: Mapping[str, Sequence[str]] = MappingProxyType(
    {
        "name": ("name", "full name", "fullname"),
        "phone": ("phone", "phone number", "phonenumber", "contact number", "number"),
        "notes": ("notes", "remark", "comment"),
        "course": ("course",),
        "hostel_fee": ("hostel fee",),
        "course_fee": ("course fee",),
        "total_fee": ("total fee",),
        "course_fee_paid": ("course fee paid",),
        "hostel_fee_paid": ("hostel fee paid",),
        "total_fee_paid": ("total fee paid",),
        "call_response": ("call response", "callstatus", "call status"),
    }
)

COLUMN_MAP: Mapping[str, str] = MappingProxyType(
    {synonym: field for field, synonyms in _FIELD_SYNONYMS.items() for synonym in synonyms}
)

STATUS_COLUMN = "STATUS"

_SEPARATORS = re.compile(r"[\s_\-]+")


def _header_key(header: Any) -> str:
    return _SEPARATORS.sub(" ", str(header)).strip().lower()


def normalize_header(header: Any) -> Optional[str]:
    """Return the client field a header maps to, or ``None`` when unknown."""

    if header is None:
        return None
    return COLUMN_MAP.get(_header_key(header))


def _compact(header: Any) -> str:
    return _SEPARATORS.sub("", str(header)).upper()


def status_flag_column(header: Any) -> Optional[Status]:
    """Return the status a yes/no flag column stands for (``"Follow-Up"`` -> FOLLOWUP)."""

    if header is None:
        return None
    try:
        return Status(_compact(header))
    except ValueError:
        return None


def is_status_column(header: Any) -> bool:
    return header is not None and _compact(header) == STATUS_COLUMN


__all__ = ["COLUMN_MAP", "normalize_header", "status_flag_column", "is_status_column"]
