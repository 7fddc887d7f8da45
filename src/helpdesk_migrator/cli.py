"""
Command-line interface for the helpdesk ticket migration tool.

Account credentials are read from the environment (or a ``.env`` file):
SOURCE_SUBDOMAIN, SOURCE_EMAIL, SOURCE_API_TOKEN and the TARGET_* equivalents.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from .config import Settings, credentials_from_env
from .exceptions import AuthenticationFailure, MigrationError, ValidationError
from .models import MigrationOptions
from .orchestrator import TicketMigrator
from .utils import setup_logging

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Migrate helpdesk tickets between two accounts")
    _ = parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    commands = parser.add_subparsers(dest="command", required=True)

    _ = commands.add_parser("test-connections", help="Check the source and target credentials")

    migrate = commands.add_parser("migrate", help="Migrate one ticket from the source to the target account")
    _ = migrate.add_argument("ticket_id", type=int, help="Ticket id in the source account")
    _ = migrate.add_argument("--dry-run", action="store_true", help="Read and resolve only, write nothing")
    _ = migrate.add_argument("--no-users", action="store_true", help="Do not resolve or create the requester")
    _ = migrate.add_argument("--no-comments", action="store_true", help="Do not copy comments")

    proxy = commands.add_parser("proxy", help="Send a raw API call to one account")
    _ = proxy.add_argument("method", help="HTTP method (GET, POST, PUT, DELETE)")
    _ = proxy.add_argument("path", help="API path, e.g. /api/v2/tickets/1.json")
    _ = proxy.add_argument("--data", help="JSON request body")
    _ = proxy.add_argument(
        "--account", choices=("source", "target"), default="source", help="Account to call (default: source)"
    )

    return parser.parse_args(argv)


def _print_connection_report(report: dict[str, dict[str, str]]) -> None:
    print("Connection test PASSED")
    for side in ("source", "target"):
        print(f"  {side.capitalize()}: {report[side]['user']} <{report[side]['email']}>")


def _print_migration_report(report: dict[str, Any]) -> None:
    status = "PASSED" if report["success"] else "FAILED"
    print(f"Migration of ticket {report['source_ticket_id']}: {status}")
    print(f"  {report['message']}")

    for name, stage in report.get("stages", {}).items():
        print(f"  {name}: {stage['outcome']}")
        for error in stage["errors"]:
            print(f"    - {error}")

    if not report["success"] and report.get("details") is not None:
        print(f"  Details: {json.dumps(report['details'], default=str)}")


def _run(args: argparse.Namespace, migrator: TicketMigrator) -> int:
    if args.command == "test-connections":
        report = migrator.test_connections(credentials_from_env("SOURCE"), credentials_from_env("TARGET"))
        _print_connection_report(report.to_dict())
        return 0

    if args.command == "migrate":
        options = MigrationOptions(
            dry_run=args.dry_run, migrate_users=not args.no_users, migrate_comments=not args.no_comments
        )
        result = migrator.migrate_ticket(
            args.ticket_id, credentials_from_env("SOURCE"), credentials_from_env("TARGET"), options
        )
        _print_migration_report(result.to_dict())
        return 0 if result.success else 1

    try:
        body = json.loads(args.data) if args.data else None
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON body: {e}"
        raise ValidationError(msg) from e
    payload = migrator.proxy_request(args.method, args.path, body, credentials_from_env(args.account))
    print(json.dumps(payload, indent=2, default=str))
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(verbose=args.verbose)

    try:
        settings = Settings.from_env()
        exit_code = _run(args, TicketMigrator.from_settings(settings))
    except ValidationError as e:
        logger.error(f"Invalid request: {e}")  # noqa: TRY400
        sys.exit(2)
    except AuthenticationFailure as e:
        logger.error(f"{e}: {json.dumps(e.failures, default=str)}")  # noqa: TRY400
        sys.exit(1)
    except (MigrationError, ValueError):
        logger.exception("Command failed")
        sys.exit(1)

    sys.exit(exit_code)
