"""Helpers for collapsing cleaned rows that share a phone number."""
from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from .models import ClientRecord


def collapse_duplicate_phones(
    records: Iterable[ClientRecord],
) -> Tuple[List[ClientRecord], List[ClientRecord]]:
    """Keep one record per phone number before dispatch.

    The last occurrence of a phone wins but takes the slot of the first, so
    the batch keeps sheet order. Returns ``(unique, dropped)``.
    """

    kept: Dict[str, ClientRecord] = {}
    ordered_phones: List[str] = []
    dropped: List[ClientRecord] = []

    for record in records:
        previous = kept.get(record.phone)
        if previous is None:
            ordered_phones.append(record.phone)
        else:
            dropped.append(previous)
        kept[record.phone] = record

    return [kept[phone] for phone in ordered_phones], dropped
