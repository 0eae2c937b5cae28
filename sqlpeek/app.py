"""Command-line host for sqlpeek."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Sequence

from .config import load_config
from .errors import SqlPeekError, StorageError
from .service import Workbench

LOG = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_STORE_UNAVAILABLE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sqlpeek", description="Browse SQL databases from saved connection profiles.")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument("--store", type=Path, default=None, help="Override the profile store file")
    commands = parser.add_subparsers(dest="command", required=True)

    save = commands.add_parser("save", help="Save a connection profile")
    save.add_argument("name")
    save.add_argument("backend", help="Backend type, e.g. postgres or sqlite")
    save.add_argument("dsn")

    commands.add_parser("list", help="List saved profiles")

    delete = commands.add_parser("delete", help="Delete a saved profile")
    delete.add_argument("id", type=int)

    test = commands.add_parser("test", help="Check that a DSN is reachable without saving it")
    test.add_argument("backend")
    test.add_argument("dsn")

    tables = commands.add_parser("tables", help="List tables with row counts")
    tables.add_argument("id", type=int)

    columns = commands.add_parser("columns", help="Describe the columns of a table")
    columns.add_argument("id", type=int)
    columns.add_argument("table")

    page = commands.add_parser("page", help="Print one page of table rows")
    page.add_argument("id", type=int)
    page.add_argument("table")
    page.add_argument("--offset", type=int, default=0)
    page.add_argument("--limit", type=int, default=None)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    if args.store is not None:
        config = config.with_store_path(args.store)
    logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        workbench = Workbench.open(config)
    except StorageError as exc:
        LOG.critical("Failed to initialize connection store: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_STORE_UNAVAILABLE

    with workbench:
        try:
            result = _dispatch(workbench, args)
        except (SqlPeekError, ValueError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return EXIT_ERROR
    if result is not None:
        print(json.dumps(_to_jsonable(result), indent=2, default=str))
    return 0


def _dispatch(workbench: Workbench, args: argparse.Namespace) -> object:
    command = args.command
    if command == "save":
        return workbench.save_connection(args.name, args.backend, args.dsn)
    if command == "list":
        return workbench.list_connections()
    if command == "delete":
        workbench.delete_connection(args.id)
        return {"deleted": args.id}
    if command == "test":
        return {"ok": True, "latency_ms": workbench.test_connection(args.backend, args.dsn)}
    workbench.connect(args.id)
    if command == "tables":
        return workbench.list_tables()
    if command == "columns":
        return workbench.list_columns(args.table)
    if command == "page":
        return workbench.get_page(args.table, args.offset, args.limit)
    raise ValueError(f"Unknown command: {command}")  # pragma: no cover - argparse guards this


def _to_jsonable(value: object) -> object:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    return value


__all__ = ["build_parser", "main"]
