"""Workflow orchestration for coordinating ingestion, cleaning, and persistence."""

from .service import BatchDispatchError, UpsertDispatcher, import_clients, import_rows

__all__ = ["BatchDispatchError", "UpsertDispatcher", "import_clients", "import_rows"]
