"""Top-level package for the bulk client spreadsheet importer."""

from . import models  # noqa: F401
from .models import (
    Actor,
    CallResponse,
    ClientRecord,
    DispatchReport,
    ImportResult,
    ImportSummary,
    ProspectHandlingPolicy,
    Role,
    RowError,
    Status,
    StoredClient,
    UpsertOutcome,
)
from .orchestrator import BatchDispatchError, UpsertDispatcher, import_clients, import_rows

__all__ = [
    "Actor",
    "BatchDispatchError",
    "CallResponse",
    "ClientRecord",
    "DispatchReport",
    "ImportResult",
    "ImportSummary",
    "ProspectHandlingPolicy",
    "Role",
    "RowError",
    "Status",
    "StoredClient",
    "UpsertDispatcher",
    "UpsertOutcome",
    "import_clients",
    "import_rows",
    "ingestion",
    "orchestrator",
    "store",
]
