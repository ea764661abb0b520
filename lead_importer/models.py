"""Unified data models for the client import pipeline, stores, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

RawRow = Dict[str, Any]


# --- Enumerations ---

class Status(str, Enum):
    """Lead temperature. Declaration order is the flag-column precedence."""

    HOT = "HOT"
    PROSPECT = "PROSPECT"
    FOLLOWUP = "FOLLOWUP"
    COLD = "COLD"
    SUCCESS = "SUCCESS"


class CallResponse(str, Enum):
    """Outcome of the last call placed to a client."""

    HANGUP = "HANGUP"
    NOTINTERESTED = "NOTINTERESTED"
    WRONG = "WRONG"
    NOTRESPONDED = "NOTRESPONDED"
    NOTREACHED = "NOTREACHED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"


class Role(str, Enum):
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"


class ProspectHandlingPolicy(str, Enum):
    """How ``PROSPECT`` and a missing status are persisted."""

    NULL_ON_PROSPECT = "null_on_prospect"
    DEFAULT_TO_PROSPECT = "default_to_prospect"


# --- Import Models ---

FEE_FIELDS = (
    "hostel_fee",
    "course_fee",
    "total_fee",
    "hostel_fee_paid",
    "course_fee_paid",
    "total_fee_paid",
)

CLIENT_FIELDS = ("name", "phone", "status", "call_response", "notes", "course") + FEE_FIELDS


@dataclass(slots=True)
class ClientRecord:
    """A cleaned spreadsheet row, ready to be persisted."""

    phone: str
    name: Optional[str] = None
    status: Optional[Status] = None
    call_response: Optional[CallResponse] = None
    notes: Optional[str] = None
    course: Optional[str] = None
    hostel_fee: Optional[float] = None
    course_fee: Optional[float] = None
    total_fee: Optional[float] = None
    hostel_fee_paid: Optional[float] = None
    course_fee_paid: Optional[float] = None
    total_fee_paid: Optional[float] = None
    row_number: Optional[int] = None

    def as_fields(self) -> Dict[str, Any]:
        """Return the persistable fields, enums collapsed to their values."""

        fields: Dict[str, Any] = {}
        for name in CLIENT_FIELDS:
            value = getattr(self, name)
            fields[name] = value.value if isinstance(value, Enum) else value
        return fields


@dataclass(slots=True)
class RowError:
    """A problem found in one spreadsheet row.

    ``row`` is the row number a person editing the sheet would see: the header
    occupies row 1, so the first data row is row 2.
    """

    row: int
    message: str

    def as_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "message": self.message}


@dataclass
class ImportResult:
    """Cleaned rows plus the per-row problems collected while cleaning."""

    cleaned: List[ClientRecord] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)


# --- Identity ---

@dataclass(slots=True)
class Actor:
    """The user performing an upload, supplied by the calling web layer."""

    actor_id: str
    role: Role = Role.EMPLOYEE
    assigned_employee_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.actor_id:
            raise ValueError("Actor requires an actor_id")
        self.role = Role(self.role)
        if self.role is Role.ADMIN and not self.assigned_employee_id:
            raise ValueError("Admin uploads must name the employee the clients are assigned to")
        if (
            self.role is Role.EMPLOYEE
            and self.assigned_employee_id
            and self.assigned_employee_id != self.actor_id
        ):
            raise ValueError("Employees can only assign uploaded clients to themselves")

    @property
    def assignee(self) -> str:
        return self.assigned_employee_id or self.actor_id


# --- Store & Dispatch Models ---

@dataclass
class StoredClient:
    """A client as held by a store."""

    id: str
    phone: str
    name: Optional[str] = None
    status: Optional[str] = None
    call_response: Optional[str] = None
    notes: Optional[str] = None
    course: Optional[str] = None
    hostel_fee: Optional[float] = None
    course_fee: Optional[float] = None
    total_fee: Optional[float] = None
    hostel_fee_paid: Optional[float] = None
    course_fee_paid: Optional[float] = None
    total_fee_paid: Optional[float] = None
    created_by: Optional[str] = None
    assigned_employee_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def balance_due(self) -> Optional[float]:
        if self.total_fee is None or self.total_fee_paid is None:
            return None
        return self.total_fee - self.total_fee_paid


@dataclass
class UpsertOutcome:
    """Result of persisting a single cleaned row."""

    phone: str
    row_number: Optional[int] = None
    action: Optional[str] = None
    client: Optional[StoredClient] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> Dict[str, Any]:
        return {"row": self.row_number, "phone": self.phone, "message": self.error}


@dataclass
class DispatchReport:
    """Outcomes of one dispatched batch, in input order."""

    outcomes: List[UpsertOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[UpsertOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> List[UpsertOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def success_count(self) -> int:
        return len(self.succeeded)


@dataclass
class ImportSummary:
    """Everything the web layer needs to answer an upload request."""

    result: ImportResult
    report: DispatchReport
    duplicates: int = 0

    @property
    def success_count(self) -> int:
        return self.report.success_count

    @property
    def errors(self) -> List[RowError]:
        return self.result.errors

    @property
    def failures(self) -> List[UpsertOutcome]:
        return self.report.failed

    @property
    def message(self) -> str:
        return f"{self.success_count} clients processed successfully"

    def as_dict(self) -> Dict[str, Any]:
        """Return the JSON body sent back to the uploader."""

        return {
            "message": self.message,
            "errors": [error.as_dict() for error in self.errors],
            "failures": [failure.as_dict() for failure in self.failures],
        }
