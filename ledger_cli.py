#!/usr/bin/env python3
# PYTHON_ARGCOMPLETE_OK
"""
Ledger administration CLI

Command-line tool for operating the ledger from the server terminal.

Usage:
    python ledger_cli.py init-defaults
    python ledger_cli.py list-accounts [--type ASSET]
    python ledger_cli.py show-account <account_number>
    python ledger_cli.py adjust-balance <account_number> <amount> --actor <user> [--reason TEXT]
    python ledger_cli.py probe-store
    python ledger_cli.py serve [--host 127.0.0.1] [--port 8000]

Add --test to any command to run it against TEST_DATABASE_URL.
"""
import sys
import argparse
import asyncio
from pathlib import Path

import argcomplete

# Add project root to path (file is in root)
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from backend.app.config import get_settings, set_test_mode, is_test_mode
from backend.app.db.capabilities import probe_store_capabilities
from backend.app.db.models import AccountType
from backend.app.db.session import get_async_engine, make_session_factory
from backend.app.logging_config import configure_logging
from backend.app.services.account_service import AccountService
from backend.app.services.errors import LedgerError


async def cmd_init_defaults() -> bool:
    """Migrate the database and create the default revenue account."""
    from backend.app.main import ensure_database_exists

    ensure_database_exists()
    engine = get_async_engine()
    try:
        async with make_session_factory(engine)() as session:
            account = await AccountService(session).ensure_default_revenue_account()
        print(f"✅ Default revenue account: {account.account_number} {account.name}")
        return True
    finally:
        await engine.dispose()


async def cmd_list_accounts(account_type: str = None) -> bool:
    """List active accounts, optionally of one type."""
    engine = get_async_engine()
    try:
        async with make_session_factory(engine)() as session:
            service = AccountService(session)
            if account_type:
                accounts = await service.list_by_type(account_type, limit=500)
            else:
                accounts = await service.list_accounts(limit=500)

        if not accounts:
            print("No accounts found")
            return True

        print(f"\n{'Number':<10} {'Name':<32} {'Type':<10} {'Currency':<9} {'Balance':>20}")
        print("-" * 85)
        for a in accounts:
            print(f"{a.account_number:<10} {a.name[:32]:<32} {a.type.value:<10} {a.currency:<9} {a.balance:>20}")
        print()
        return True
    finally:
        await engine.dispose()


async def cmd_show_account(account_number: str) -> bool:
    """Show one account."""
    engine = get_async_engine()
    try:
        async with make_session_factory(engine)() as session:
            account = await AccountService(session).get_by_number(account_number)

        if account is None:
            print(f"❌ Account '{account_number}' not found")
            return False

        for key, value in account.model_dump().items():
            print(f"{key:<18} {value}")
        return True
    finally:
        await engine.dispose()


async def cmd_adjust_balance(account_number: str, amount: str, actor: str, reason: str = None) -> bool:
    """Privileged balance override (audited)."""
    engine = get_async_engine()
    try:
        async with make_session_factory(engine)() as session:
            service = AccountService(session)
            account = await service.get_by_number(account_number)
            if account is None:
                print(f"❌ Account '{account_number}' not found")
                return False
            updated = await service.adjust_balance(account.id, amount, actor=actor, reason=reason)

        print(f"✅ {updated.account_number} balance: {account.balance} -> {updated.balance}")
        return True
    except LedgerError as e:
        print(f"❌ {e.message}")
        return False
    finally:
        await engine.dispose()


async def cmd_probe_store() -> bool:
    """Probe the configured store and print its capabilities."""
    engine = get_async_engine()
    try:
        capabilities = await probe_store_capabilities(engine)
    finally:
        await engine.dispose()

    mode = "atomic" if capabilities.atomic_writes else "degraded (per-step commits)"
    print(f"Dialect:       {capabilities.dialect}")
    print(f"Write mode:    {mode}")
    print(f"Source:        {capabilities.source}")
    print(f"Detail:        {capabilities.detail}")
    return True


def cmd_serve(host: str, port: int = None) -> bool:
    """Run the API with uvicorn (TEST_PORT in test mode)."""
    import uvicorn

    settings = get_settings()
    if port is None:
        port = settings.TEST_PORT if is_test_mode() else settings.PORT
    uvicorn.run("backend.app.main:app", host=host, port=port, log_level=settings.LOG_LEVEL.lower())
    return True


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="LedgerCore administration CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python ledger_cli.py init-defaults
  python ledger_cli.py list-accounts --type ASSET
  python ledger_cli.py show-account 10001
  python ledger_cli.py adjust-balance 10001 -25.50 --actor admin --reason "bank fee correction"
  python ledger_cli.py probe-store
  python ledger_cli.py --test serve
        """
        )
    parser.add_argument("--test", action="store_true", help="Use TEST_DATABASE_URL")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init-defaults
    subparsers.add_parser("init-defaults", help="Migrate database and create default accounts")

    # list-accounts
    list_parser = subparsers.add_parser("list-accounts", help="List active accounts")
    list_parser.add_argument("--type", dest="account_type", choices=[t.value for t in AccountType], help="Only accounts of this type")

    # show-account
    show_parser = subparsers.add_parser("show-account", help="Show one account")
    show_parser.add_argument("account_number", help="Account number (e.g. 10001)")

    # adjust-balance
    adjust_parser = subparsers.add_parser("adjust-balance", help="Add a signed amount to a balance (audited)")
    adjust_parser.add_argument("account_number", help="Account number")
    adjust_parser.add_argument("amount", help="Signed amount, e.g. 100 or -25.50")
    adjust_parser.add_argument("--actor", required=True, help="Who is performing the override")
    adjust_parser.add_argument("--reason", default=None, help="Justification, kept in the audit log")

    # probe-store
    subparsers.add_parser("probe-store", help="Report whether the store supports atomic multi-record writes")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=None, help="Default: PORT, or TEST_PORT with --test")

    return parser


def main():
    parser = create_parser()
    argcomplete.autocomplete(parser)
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if args.test:
        set_test_mode(True)
    configure_logging(get_settings().LOG_LEVEL, enable_file_logging=False)

    if args.command == "init-defaults":
        ok = asyncio.run(cmd_init_defaults())
    elif args.command == "list-accounts":
        ok = asyncio.run(cmd_list_accounts(args.account_type))
    elif args.command == "show-account":
        ok = asyncio.run(cmd_show_account(args.account_number))
    elif args.command == "adjust-balance":
        ok = asyncio.run(cmd_adjust_balance(args.account_number, args.amount, args.actor, args.reason))
    elif args.command == "probe-store":
        ok = asyncio.run(cmd_probe_store())
    elif args.command == "serve":
        ok = cmd_serve(args.host, args.port)
    else:
        ok = False

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
