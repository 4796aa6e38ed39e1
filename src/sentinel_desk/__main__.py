# SentinelDesk - Command line entry point
#
# Runs the local API backend. --verify-ledger checks one owner's ledger
# offline and exits non-zero if the chain is invalid.

import argparse
import asyncio
import json
import sys

from . import __version__
from .config import get_settings
from .core import EventSeverity, EventType, get_audit_logger


def verify_ledger(owner_id: str) -> int:
    """Print the owner's ledger summary as JSON. Returns the exit code."""
    from .exceptions import VaultError
    from .ledger import IntegrityLedger
    from .store import SQLiteVaultStore

    ledger = IntegrityLedger(SQLiteVaultStore())
    try:
        info = asyncio.run(ledger.info(owner_id))
    except VaultError as e:
        print(f"Error: {e.user_message}", file=sys.stderr)
        return 2

    print(json.dumps(info, indent=2))
    return 0 if info["chain_valid"] else 1


def main(argv=None):
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="sentinel-desk",
        description="SentinelDesk - encrypted credential vault with an integrity ledger",
    )
    parser.add_argument(
        "--host",
        default=settings.api_host,
        help=f"Backend host (default: {settings.api_host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.api_port,
        help=f"Backend port (default: {settings.api_port})",
    )
    parser.add_argument(
        "--verify-ledger",
        metavar="OWNER",
        help="Validate OWNER's integrity ledger, print a summary and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"SentinelDesk v{__version__}",
    )

    args = parser.parse_args(argv)

    if args.verify_ledger:
        sys.exit(verify_ledger(args.verify_ledger))

    from .api.main import start_api_server

    print(f"Starting SentinelDesk API on {args.host}:{args.port} (Ctrl+C to stop)")
    try:
        start_api_server(host=args.host, port=args.port)
    except KeyboardInterrupt:
        print("\nShutting down backend...")
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.CRITICAL,
            message=f"SentinelDesk backend crashed: {e}",
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
