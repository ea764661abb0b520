"""Client stores and the upsert operation the dispatcher runs against them."""
from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from dataclasses import asdict, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from .models import CLIENT_FIELDS, Actor, ClientRecord, StoredClient, UpsertOutcome

LOGGER = logging.getLogger(__name__)

_OWNERSHIP_FIELDS = ("created_by", "assigned_employee_id")
_WRITABLE_FIELDS = frozenset(CLIENT_FIELDS + _OWNERSHIP_FIELDS)
_TIMESTAMP_FIELDS = ("created_at", "updated_at")


class StoreError(RuntimeError):
    """Raised when a store rejects an operation."""


class DuplicateClientError(StoreError):
    """Raised when creating a client whose phone number is already stored."""


class ClientNotFoundError(StoreError):
    """Raised when updating a phone number that is not stored."""


class ClientStore(Protocol):
    """Single-record operations the import pipeline needs from persistence."""

    def find_by_phone(self, phone: str) -> Optional[StoredClient]:  # pragma: no cover - runtime protocol
        ...

    def create(self, fields: Mapping[str, Any]) -> StoredClient:  # pragma: no cover - runtime protocol
        ...

    def update(self, phone: str, fields: Mapping[str, Any]) -> StoredClient:  # pragma: no cover - runtime protocol
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _writable(fields: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(fields) - _WRITABLE_FIELDS)
    if unknown:
        raise StoreError(f"Unknown client fields: {', '.join(unknown)}")
    return dict(fields)


class InMemoryClientStore:
    """Thread-safe store keeping clients in a dictionary keyed by phone."""

    def __init__(self, clients: Iterable[StoredClient] = ()) -> None:
        self._clients: Dict[str, StoredClient] = {client.phone: client for client in clients}
        self._lock = threading.RLock()

    def find_by_phone(self, phone: str) -> Optional[StoredClient]:
        with self._lock:
            client = self._clients.get(phone)
            return replace(client) if client is not None else None

    def create(self, fields: Mapping[str, Any]) -> StoredClient:
        values = _writable(fields)
        phone = values.get("phone")
        if not phone:
            raise StoreError("Clients require a phone number")
        with self._lock:
            if phone in self._clients:
                raise DuplicateClientError(f"A client with phone {phone} already exists")
            now = _utcnow()
            client = StoredClient(id=uuid.uuid4().hex, created_at=now, updated_at=now, **values)
            self._clients[phone] = client
            try:
                self._persist()
            except Exception:
                del self._clients[phone]
                raise
            return replace(client)

    def update(self, phone: str, fields: Mapping[str, Any]) -> StoredClient:
        values = _writable(fields)
        values.pop("phone", None)
        with self._lock:
            previous = self._clients.get(phone)
            if previous is None:
                raise ClientNotFoundError(f"No client with phone {phone}")
            client = replace(previous, **values, updated_at=_utcnow())
            self._clients[phone] = client
            try:
                self._persist()
            except Exception:
                self._clients[phone] = previous
                raise
            return replace(client)

    def all(self) -> List[StoredClient]:
        with self._lock:
            return [replace(client) for client in self._clients.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def _persist(self) -> None:
        """Hook for subclasses that keep a durable copy."""


class JsonClientStore(InMemoryClientStore):
    """Store persisted to a JSON file, rewritten after every change."""

    def __init__(self, path: str | Path = "clients.json") -> None:
        self._path = Path(path)
        super().__init__(self._load())

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> List[StoredClient]:
        if not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        except json.JSONDecodeError as exc:
            raise StoreError(f"Client store '{self._path}' is not valid JSON") from exc

        clients: List[StoredClient] = []
        for entry in payload:
            for stamp in _TIMESTAMP_FIELDS:
                if entry.get(stamp):
                    entry[stamp] = datetime.fromisoformat(entry[stamp])
            clients.append(StoredClient(**entry))
        LOGGER.debug("Loaded %s clients from %s", len(clients), self._path)
        return clients

    def _persist(self) -> None:
        records = []
        for client in self._clients.values():
            entry = asdict(client)
            for stamp in _TIMESTAMP_FIELDS:
                if entry[stamp] is not None:
                    entry[stamp] = entry[stamp].isoformat()
            records.append(entry)

        self._path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._path.with_suffix(self._path.suffix + ".tmp")
        staging.write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(staging, self._path)


def upsert_client(store: ClientStore, record: ClientRecord, actor: Actor) -> UpsertOutcome:
    """Create or update the client keyed by ``record.phone``.

    Both paths hand the client to the uploader: ``created_by`` and
    ``assigned_employee_id`` are overwritten on every call.
    """

    fields = record.as_fields()
    ownership = {"created_by": actor.actor_id, "assigned_employee_id": actor.assignee}

    existing = store.find_by_phone(record.phone)
    if existing is None:
        try:
            client = store.create({**fields, **ownership})
        except DuplicateClientError:
            LOGGER.debug("Client %s appeared concurrently; updating instead", record.phone)
        else:
            return UpsertOutcome(phone=record.phone, row_number=record.row_number, action="created", client=client)

    changes = {key: value for key, value in fields.items() if key != "phone"}
    if changes["name"] is None:
        del changes["name"]
    client = store.update(record.phone, {**changes, **ownership})
    return UpsertOutcome(phone=record.phone, row_number=record.row_number, action="updated", client=client)


__all__ = [
    "ClientNotFoundError",
    "ClientStore",
    "DuplicateClientError",
    "InMemoryClientStore",
    "JsonClientStore",
    "StoreError",
    "upsert_client",
]
