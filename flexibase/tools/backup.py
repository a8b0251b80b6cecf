"""
Backup CLI for FlexiBase.

Commands:
- export: Write the whole document to a backup file
- import: Replace the document with a backup file
- sync: Run one pull/reconcile/push against the configured remote
- status: Show document and sync status

Usage:
    flexibase-backup export --out flexibase_backup.json
    flexibase-backup import flexibase_backup.json
    flexibase-backup --data-path ./flexibase.json status

Configuration is read from the environment (see flexibase.config);
--data-path overrides FLEXIBASE_DATA_PATH.

Invariants:
    - import never replaces the document unless the file validates
    - Failures exit non-zero with a one-line message on stderr
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Any, Optional, Sequence

from ..config import AppConfig, ObservabilityConfig
from ..database import Database
from ..errors import FlexiBaseError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


class BackupTool:
    """Runs backup commands against a Database.

    Example:
        >>> tool = BackupTool(AppConfig.from_env())
        >>> path = await tool.export("backup.json")
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    async def export(self, out: Optional[str] = None) -> str:
        async with Database.from_config(self.config) as db:
            path = await db.export_to_file(out)
        return str(path)

    async def import_(self, path: str) -> dict[str, int]:
        async with Database.from_config(self.config) as db:
            document = await db.import_from_file(path)
            await db.sync.flush()
        return {"tables": len(document.tables), "activities": len(document.activities)}

    async def sync(self) -> dict[str, Any]:
        async with Database.from_config(self.config) as db:
            result = await db.manual_sync()
            status = db.sync_status()
        return {
            "success": result.success,
            "winner": result.winner,
            "pushed": result.pushed,
            "error": result.error,
            "blob_id": status["blob_id"],
        }

    async def status(self) -> dict[str, Any]:
        async with Database.from_config(self.config) as db:
            document = db.document
            return {
                "data_path": self.config.storage.data_path,
                "version": document.meta.version,
                "last_modified": document.meta.last_modified,
                "tables": [t["name"] for t in db.list_tables()],
                "records": sum(len(t.records) for t in document.tables.values()),
                "activities": len(document.activities),
                "sync": db.sync_status(),
            }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="FlexiBase backup and sync tool")
    parser.add_argument("--data-path", help="Local document path (default: FLEXIBASE_DATA_PATH)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # export command
    export_parser = subparsers.add_parser("export", help="Export the document to a JSON file")
    export_parser.add_argument(
        "--out", "-o", help="Output file (default: flexibase_backup_<date>.json)"
    )

    # import command
    import_parser = subparsers.add_parser("import", help="Replace the document with a backup")
    import_parser.add_argument("path", help="Backup JSON file")

    # sync command
    subparsers.add_parser("sync", help="Pull, reconcile and push once")

    # status command
    subparsers.add_parser("status", help="Show document and sync status")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for the backup tool."""
    args = build_parser().parse_args(argv)

    setup_logging(ObservabilityConfig(log_level="DEBUG" if args.verbose else "WARNING"))

    try:
        config = AppConfig.from_env()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)
    if args.data_path:
        config.storage = replace(config.storage, data_path=args.data_path)

    tool = BackupTool(config)
    try:
        if args.command == "export":
            path = asyncio.run(tool.export(args.out))
            print(f"Exported to {path}")

        elif args.command == "import":
            counts = asyncio.run(tool.import_(args.path))
            print(
                f"Imported {counts['tables']} table(s) and {counts['activities']} activity entries"
            )

        elif args.command == "sync":
            if not config.sync.remote_enabled:
                print("Remote sync is not enabled (set SYNC_REMOTE_ENABLED=true)", file=sys.stderr)
                sys.exit(1)
            result = asyncio.run(tool.sync())
            if not result["success"]:
                print(f"Sync failed: {result['error']}", file=sys.stderr)
                sys.exit(1)
            print(f"Sync completed: {result['winner']} copy won")
            print(f"  Blob: {result['blob_id'] or 'none'}")

        elif args.command == "status":
            print(json.dumps(asyncio.run(tool.status()), indent=2))

    except FlexiBaseError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"{args.command} failed: {e.message}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"{args.command} failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
