"""Command line interface for importing a client spreadsheet into a store."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import ConfigurationError, ImportSettings, load_configuration
from .factory import build_store
from .ingestion.exporters import EXPORT_SUFFIXES, export_row_errors
from .ingestion.loaders import SpreadsheetReadError, UnsupportedFileTypeError
from .models import Actor, Role
from .orchestrator import BatchDispatchError, import_clients
from .store import StoreError

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_USAGE = 2


def build_parser(prog: str | None = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Import clients from a spreadsheet, creating or updating them by phone number",
    )
    parser.add_argument("input", help="Path to the spreadsheet to import (XLSX or CSV)")
    parser.add_argument("--actor-id", required=True, help="Id of the user performing the upload")
    parser.add_argument(
        "--role",
        choices=[role.value.lower() for role in Role],
        default="employee",
        help="Role of the uploading user",
    )
    parser.add_argument(
        "--assign-to",
        default=None,
        help="Employee id the clients are assigned to (required for admin uploads)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the importer configuration file (YAML or JSON)",
    )
    parser.add_argument(
        "--store",
        default=None,
        help="Path of the JSON client store, overriding the configured store path",
    )
    parser.add_argument(
        "--errors-output",
        default=None,
        help="Write the rows that need fixing to this CSV/XLSX file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    if args.errors_output and Path(args.errors_output).suffix.lower() not in EXPORT_SUFFIXES:
        logging.error(
            "Unsupported --errors-output extension '%s'. Supported: %s",
            Path(args.errors_output).suffix,
            ", ".join(sorted(EXPORT_SUFFIXES)),
        )
        return EXIT_USAGE

    try:
        config = load_configuration(args.config) if args.config else {}
        settings = ImportSettings.from_config(config)
        store = build_store(config, overrides={"path": args.store} if args.store else None)
        actor = Actor(
            actor_id=args.actor_id,
            role=Role(args.role.upper()),
            assigned_employee_id=args.assign_to,
        )
    except (ConfigurationError, StoreError, ValueError) as exc:
        logging.error("%s", exc)
        return EXIT_USAGE

    try:
        summary = import_clients(args.input, actor, store, settings=settings)
    except (SpreadsheetReadError, UnsupportedFileTypeError) as exc:
        logging.error("Could not import %s: %s", args.input, exc)
        return EXIT_USAGE
    except BatchDispatchError as exc:
        logging.error("%s", exc)
        print(json.dumps({"message": str(exc), "failures": [o.as_dict() for o in exc.report.failed]}, indent=2))
        return EXIT_FAILURES

    print(json.dumps(summary.as_dict(), indent=2))

    if args.errors_output and (summary.errors or summary.failures):
        try:
            destination = export_row_errors(summary.errors, args.errors_output, failures=summary.failures)
        except OSError as exc:
            logging.error("Could not write %s: %s", args.errors_output, exc)
            return EXIT_USAGE
        logging.info("Rows needing attention written to %s", Path(destination).resolve())

    return EXIT_FAILURES if summary.failures else EXIT_OK


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
