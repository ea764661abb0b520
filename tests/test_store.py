import json

import pytest

from lead_importer.models import Actor, CallResponse, ClientRecord, Role, Status
from lead_importer.store import (
    ClientNotFoundError,
    DuplicateClientError,
    InMemoryClientStore,
    JsonClientStore,
    StoreError,
    upsert_client,
)


def _record(**overrides) -> ClientRecord:
    values = dict(phone="5550001", name="Jane", status=Status.HOT, course_fee=1000.0, row_number=2)
    values.update(overrides)
    return ClientRecord(**values)


def test_upsert_creates_new_client_with_ownership() -> None:
    store = InMemoryClientStore()
    actor = Actor(actor_id="emp-1")

    outcome = upsert_client(store, _record(call_response=CallResponse.ONGOING), actor)

    assert outcome.ok
    assert outcome.action == "created"
    stored = store.find_by_phone("5550001")
    assert stored is not None
    assert stored.status == "HOT"
    assert stored.call_response == "ONGOING"
    assert stored.course_fee == 1000.0
    assert stored.created_by == "emp-1"
    assert stored.assigned_employee_id == "emp-1"
    assert stored.created_at is not None


def test_upsert_updates_existing_client_and_takes_ownership() -> None:
    store = InMemoryClientStore()
    upsert_client(store, _record(notes="first call"), Actor(actor_id="emp-1"))
    original = store.find_by_phone("5550001")

    admin = Actor(actor_id="admin-1", role=Role.ADMIN, assigned_employee_id="emp-2")
    outcome = upsert_client(store, _record(name=None, status=None, notes=None, course_fee=1200.0), admin)

    assert outcome.action == "updated"
    updated = store.find_by_phone("5550001")
    assert updated.id == original.id
    assert updated.name == "Jane"
    assert updated.status is None
    assert updated.notes is None
    assert updated.course_fee == 1200.0
    assert updated.created_by == "admin-1"
    assert updated.assigned_employee_id == "emp-2"
    assert updated.created_at == original.created_at
    assert len(store) == 1


def test_upsert_falls_back_to_update_when_client_appears_concurrently() -> None:
    class RacingStore(InMemoryClientStore):
        def find_by_phone(self, phone):
            return None

    store = RacingStore()
    store.create({"phone": "5550001", "name": "Someone"})

    outcome = upsert_client(store, _record(), Actor(actor_id="emp-1"))

    assert outcome.action == "updated"
    assert store.all()[0].name == "Jane"


def test_store_rejects_duplicates_unknown_fields_and_missing_clients() -> None:
    store = InMemoryClientStore()
    store.create({"phone": "1"})

    with pytest.raises(DuplicateClientError):
        store.create({"phone": "1"})
    with pytest.raises(StoreError):
        store.create({"phone": "2", "email": "x@example.com"})
    with pytest.raises(StoreError):
        store.create({"name": "no phone"})
    with pytest.raises(ClientNotFoundError):
        store.update("3", {"name": "ghost"})


def test_find_returns_copies() -> None:
    store = InMemoryClientStore()
    store.create({"phone": "1", "name": "Ada"})

    copy = store.find_by_phone("1")
    copy.name = "Changed"

    assert store.find_by_phone("1").name == "Ada"


def test_json_store_round_trips_to_disk(tmp_path) -> None:
    path = tmp_path / "data" / "clients.json"
    store = JsonClientStore(path)
    upsert_client(store, _record(), Actor(actor_id="emp-1"))

    reloaded = JsonClientStore(path)

    client = reloaded.find_by_phone("5550001")
    assert client.name == "Jane"
    assert client.assigned_employee_id == "emp-1"
    assert client.created_at is not None
    assert json.loads(path.read_text(encoding="utf-8"))[0]["phone"] == "5550001"


class UnwritableJsonStore(JsonClientStore):
    def __init__(self, path) -> None:
        super().__init__(path)
        self.writable = True

    def _persist(self) -> None:
        if not self.writable:
            raise OSError("disk full")
        super()._persist()


def test_failed_write_leaves_no_unsaved_changes(tmp_path) -> None:
    path = tmp_path / "clients.json"
    store = UnwritableJsonStore(path)
    store.create({"phone": "1", "name": "Ada"})
    store.writable = False

    with pytest.raises(OSError):
        store.create({"phone": "2", "name": "Grace"})
    with pytest.raises(OSError):
        store.update("1", {"name": "Ada L."})

    assert store.find_by_phone("2") is None
    assert store.find_by_phone("1").name == "Ada"
    assert [entry["name"] for entry in json.loads(path.read_text(encoding="utf-8"))] == ["Ada"]


def test_json_store_rejects_corrupt_file(tmp_path) -> None:
    path = tmp_path / "clients.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError):
        JsonClientStore(path)


def test_actor_rules() -> None:
    assert Actor(actor_id="emp-1").assignee == "emp-1"
    assert Actor(actor_id="admin", role="ADMIN", assigned_employee_id="emp-9").assignee == "emp-9"

    with pytest.raises(ValueError):
        Actor(actor_id="admin", role=Role.ADMIN)
    with pytest.raises(ValueError):
        Actor(actor_id="emp-1", assigned_employee_id="emp-2")
    with pytest.raises(ValueError):
        Actor(actor_id="")
