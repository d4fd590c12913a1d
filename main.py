#!/usr/bin/env python3
"""Jamf Pro Prestage Scope CLI.

This module provides a command-line interface for inspecting and changing
which serial numbers are scoped to Jamf Pro computer and mobile device
prestages.

Architecture:
    - Uses JamfClient as the shared HTTP layer for all API calls
    - TokenManager handles OAuth2 client credentials flow
    - PrestageManager composes JamfClient for scope reads and writes

Environment Variables Required:
    - JAMF_URL: Jamf Pro server URL (e.g. https://example.jamfcloud.com)
    - JAMF_CLIENT_ID: API client ID
    - JAMF_CLIENT_SECRET: API client secret
    - JAMF_TOKEN_URL: Token endpoint (optional, defaults to JAMF_URL/api/oauth/token)

Example Usage:
    $ python main.py default                          # Show the default prestage
    $ python main.py scope "Staff Macs"               # List a prestage's scope
    $ python main.py assigned C02XK1JDJGH5            # Which prestage has a serial
    $ python main.py unassigned                       # Serials not in any prestage
    $ python main.py assign "Staff Macs" C02XK1JDJGH5 # Assign serials
    $ python main.py --mobile unassign 3 DMQX1234ABCD # Unassign (mobile prestages)
"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv

load_dotenv()

# Local imports
from src.jamf.api import JamfClient, JamfError, TokenManager
from src.jamf.prestage import (
    COMPUTER_PRESTAGES,
    MOBILE_DEVICE_PRESTAGES,
    PrestageManager,
    PrestageScope,
)

logger = logging.getLogger("main")


def print_scope(label: str, scope: PrestageScope) -> None:
    """Print a scope as a table of serial numbers."""
    print(f"\n{label} {scope.prestage_id}: {len(scope)} serial(s), versionLock={scope.version_lock}")
    if not scope.assignments:
        return

    print(f"{'Serial Number':<20} {'Assigned':<27} {'By':<20}")
    print("-" * 70)
    for assignment in scope.assignments:
        assigned = assignment.assignment_date.isoformat() if assignment.assignment_date else "N/A"
        by = assignment.user_assigned or "N/A"
        print(f"{assignment.serial_number:<20} {assigned:<27} {by:<20}")


async def run_command(args: argparse.Namespace) -> None:
    """Run one CLI command against the Jamf Pro server.

    Args:
        args: Parsed command-line arguments
    """
    collection = MOBILE_DEVICE_PRESTAGES if args.mobile else COMPUTER_PRESTAGES
    token_manager = TokenManager()

    async with JamfClient(token_manager) as client:
        prestages = PrestageManager.for_client(client, collection)

        if args.command == "default":
            prestage = await prestages.default()
            if prestage is None:
                print(f"No default {collection.label}")
            else:
                print(f"Default {collection.label}: {prestage.display_name} (id {prestage.id})")

        elif args.command == "scope":
            print_scope(collection.label, await prestages.scope_for(args.prestage))

        elif args.command == "assigned":
            serial = args.serial.strip().upper()
            prestage_id = await prestages.assigned_prestage_id(serial, refresh=True)
            if prestage_id is None:
                print(f"{serial} is not assigned to any {collection.label}")
            else:
                print(f"{serial} is assigned to {collection.label} {prestage_id}")

        elif args.command == "unassigned":
            serials = await prestages.unassigned_sns()
            print(f"{len(serials)} unassigned serial(s)")
            for serial in serials:
                print(f"  {serial}")

        elif args.command == "assign":
            scope = await prestages.assign(args.serials, to_prestage=args.prestage)
            print_scope(collection.label, scope)

        elif args.command == "unassign":
            scope = await prestages.unassign(args.serials, from_prestage=args.prestage)
            print_scope(collection.label, scope)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect and change Jamf Pro prestage scopes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py default                            # Show the default prestage
  python main.py scope "Staff Macs"                 # Serials scoped to a prestage
  python main.py assigned C02XK1JDJGH5              # Which prestage has this serial
  python main.py unassigned                         # Enrollable serials without a prestage
  python main.py assign "Staff Macs" SN1 SN2        # Assign serials
  python main.py --mobile unassign 3 DMQX1234ABCD   # Work on mobile device prestages
        """
    )

    parser.add_argument(
        "--mobile",
        action="store_true",
        help="Use mobile device prestages instead of computer prestages"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("default", help="Show the default prestage")

    scope_cmd = commands.add_parser("scope", help="List serials scoped to a prestage")
    scope_cmd.add_argument("prestage", metavar="IDENT", help="Prestage id or name")

    assigned_cmd = commands.add_parser("assigned", help="Show which prestage a serial is assigned to")
    assigned_cmd.add_argument("serial", metavar="SERIAL")

    commands.add_parser("unassigned", help="List enrollable serials not assigned to any prestage")

    assign_cmd = commands.add_parser("assign", help="Assign serials to a prestage")
    assign_cmd.add_argument("prestage", metavar="IDENT", help="Prestage id or name")
    assign_cmd.add_argument("serials", metavar="SERIAL", nargs="+")

    unassign_cmd = commands.add_parser("unassign", help="Unassign serials from a prestage")
    unassign_cmd.add_argument("prestage", metavar="IDENT", help="Prestage id or name")
    unassign_cmd.add_argument("serials", metavar="SERIAL", nargs="+")

    return parser


def main():
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    start_time = datetime.now(timezone.utc)
    try:
        asyncio.run(run_command(args))
    except JamfError as e:
        print(f"[Main] Error: {e}", file=sys.stderr)
        sys.exit(1)

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.debug(f"Completed in {duration:.1f} seconds")


if __name__ == "__main__":
    main()
