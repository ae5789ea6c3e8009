"""DareDevil CLI entry point."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from daredevil import __version__
from daredevil.app import DareDevilApp
from daredevil.bets import BetActionResult
from daredevil.config import get_settings
from daredevil.errors import BetError
from daredevil.models import BetStatus, StraightBet

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_TEMPLATE = """# DareDevil Configuration
# Operational parameters only. Credentials (SUPABASE_URL, SUPABASE_ANON_KEY,
# SUPABASE_EMAIL, SUPABASE_PASSWORD, LOGFIRE_TOKEN) belong in .env.

ledger:
  poll_interval_seconds: 10
  transaction_limit: 50

bets:
  default_limit: 50
  validate_picks: true
  strict_pick_derivation: false

supabase:
  timeout_seconds: 30.0
  max_retries: 3
"""


def _init_logfire() -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from daredevil.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def _run_signed_in(action: Callable[[DareDevilApp], Awaitable[T]]) -> T:
    """Open the backend connection, sign in from settings, and run ``action``."""
    _init_logfire()
    settings = get_settings()

    async def runner() -> T:
        async with DareDevilApp(settings) as app:
            await app.sign_in_from_settings()
            return await action(app)

    return asyncio.run(runner())


def _format_bet(bet: StraightBet) -> str:
    acceptor = bet.acceptor_username or "-"
    created = bet.created_at.strftime("%b %d, %I:%M%p") if bet.created_at else "N/A"
    return (
        f"{bet.id}  {bet.status.value:<15} {bet.amount:>6} pts  "
        f"creator={bet.creator_username or bet.creator_user_id}  "
        f"acceptor={acceptor}  created={created}"
    )


def _print_result(result: BetActionResult) -> int:
    if result.success:
        print(f"\n✓ {result.message}")
        if result.bet:
            print(f"  {_format_bet(result.bet)}")
        print(f"  Event ID: {result.correlation_id}\n")
        return 0
    print(f"\n❌ {result.message}")
    if result.bet:
        print(f"  Current state: {_format_bet(result.bet)}")
    print()
    return 1


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize data directory and configuration file."""
    data_dir = Path("data").resolve()

    try:
        data_dir.mkdir(exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE)
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        print("\n✓ DareDevil initialized successfully!\n")
        print("Next steps:")
        print("  1. Create .env with SUPABASE_URL, SUPABASE_ANON_KEY, SUPABASE_EMAIL, SUPABASE_PASSWORD")
        print(f"  2. Review {config_path}")
        print("  3. Run 'python -m daredevil balance' to verify the connection\n")
        return 0

    except Exception as e:
        logger.error(f"Initialization failed: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== DareDevil Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Ledger:")
        print(f"  Poll Interval: {settings.ledger.poll_interval_seconds}s")
        print(f"  Transaction Limit: {settings.ledger.transaction_limit}\n")

        print("Bets:")
        print(f"  Default Limit: {settings.bets.default_limit}")
        print(f"  Validate Picks: {settings.bets.validate_picks}")
        print(f"  Strict Pick Derivation: {settings.bets.strict_pick_derivation}\n")

        print("Backend:")
        print(f"  Supabase URL: {settings.supabase_url or '✗ Not set'}")
        print(f"  Anon Key: {'✓ Set' if settings.supabase_anon_key else '✗ Not set'}")
        print(f"  Email: {settings.supabase_email or '✗ Not set'}")
        print(f"  Password: {'✓ Set' if settings.supabase_password else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")
        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1


def cmd_balance(args: argparse.Namespace) -> int:
    """Display free, reserved and total points."""

    async def action(app: DareDevilApp) -> int:
        balance = await app.ledger.get_balances()
        print(f"\n=== Points for {app.sessions.require().username} ===\n")
        print(f"  Free:     {balance.free:>8}")
        print(f"  Reserved: {balance.reserved:>8}")
        print(f"  Total:    {balance.total:>8}\n")
        return 0

    try:
        return _run_signed_in(action)
    except BetError as e:
        print(f"\n❌ {e.user_message}\n")
        return 1


def cmd_transactions(args: argparse.Namespace) -> int:
    """Display points transaction history, newest first."""

    async def action(app: DareDevilApp) -> int:
        transactions = await app.ledger.get_transactions(args.limit)
        print(f"\n=== Transactions ({len(transactions)}) ===\n")
        for tx in transactions:
            when = tx.created_at.strftime("%Y-%m-%d %H:%M") if tx.created_at else "N/A"
            print(
                f"  {when}  {tx.transaction_key:<30} {tx.affected_balance:<8} {tx.amount:+d}"
            )
        print()
        return 0

    try:
        return _run_signed_in(action)
    except BetError as e:
        print(f"\n❌ {e.user_message}\n")
        return 1


def cmd_bets(args: argparse.Namespace) -> int:
    """List bets: open, by status, or the signed-in user's."""

    async def action(app: DareDevilApp) -> int:
        status = BetStatus(args.status) if args.status else None
        if args.mine:
            bets = await app.bets.list_by_user(
                app.sessions.require().account_id, status, args.limit
            )
        elif args.match:
            bets = await app.bets.list_by_match(args.match, args.limit)
        elif status is not None:
            bets = await app.bets.list_by_status(status, args.limit)
        else:
            bets = await app.bets.list_open(args.limit)

        print(f"\n=== Bets ({len(bets)}) ===\n")
        for bet in bets:
            pick = await app.matches.resolve_pick_name(bet.match_id, bet.creators_pick_id)
            print(f"  {_format_bet(bet)}  pick={pick}")
        print()
        return 0

    try:
        return _run_signed_in(action)
    except BetError as e:
        print(f"\n❌ {e.user_message}\n")
        return 1


def cmd_bet(args: argparse.Namespace) -> int:
    """Show a single bet with resolved pick names."""

    async def action(app: DareDevilApp) -> int:
        bet = await app.bets.get_bet(args.bet_id)
        if bet is None:
            print(f"\n❌ Bet not found: {args.bet_id}\n")
            return 1
        print("\n=== Bet ===\n")
        print(f"  Match: {await app.matches.describe_match(bet.match_id)}")
        print(f"  {_format_bet(bet)}")
        print(
            "  Creator's pick: "
            f"{await app.matches.resolve_pick_name(bet.match_id, bet.creators_pick_id)}"
        )
        if bet.acceptors_pick_id:
            print(
                "  Acceptor's pick: "
                f"{await app.matches.resolve_pick_name(bet.match_id, bet.acceptors_pick_id)}"
            )
        if bet.creators_note:
            print(f"  Note: {bet.creators_note}")
        print()
        return 0

    try:
        return _run_signed_in(action)
    except BetError as e:
        print(f"\n❌ {e.user_message}\n")
        return 1


def cmd_create(args: argparse.Namespace) -> int:
    """Create a straight bet."""

    async def action(app: DareDevilApp) -> int:
        result = await app.controller.create_bet(
            args.match, args.pick, args.amount, args.note
        )
        return _print_result(result)

    try:
        return _run_signed_in(action)
    except BetError as e:
        print(f"\n❌ {e.user_message}\n")
        return 1


def cmd_accept(args: argparse.Namespace) -> int:
    """Accept an open bet, taking the opposite side automatically."""

    async def action(app: DareDevilApp) -> int:
        bet = await app.bets.get_bet(args.bet_id)
        if bet is None:
            print(f"\n❌ Bet not found: {args.bet_id}\n")
            return 1
        return _print_result(await app.controller.accept_bet(bet))

    try:
        return _run_signed_in(action)
    except BetError as e:
        print(f"\n❌ {e.user_message}\n")
        return 1


def cmd_cancel(args: argparse.Namespace) -> int:
    """Cancel one of your open bets."""

    async def action(app: DareDevilApp) -> int:
        bet = await app.bets.get_bet(args.bet_id)
        if bet is None:
            print(f"\n❌ Bet not found: {args.bet_id}\n")
            return 1
        return _print_result(await app.controller.cancel_bet(bet))

    try:
        return _run_signed_in(action)
    except BetError as e:
        print(f"\n❌ {e.user_message}\n")
        return 1


def cmd_watch(args: argparse.Namespace) -> int:
    """Poll the balance on the configured interval and print every change."""

    async def action(app: DareDevilApp) -> int:
        interval = app.settings.ledger.poll_interval_seconds
        print(f"\nWatching balance every {interval}s (Ctrl+C to stop)\n")
        last = None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + args.seconds if args.seconds else None
        while deadline is None or loop.time() < deadline:
            balance = app.ledger.balance
            if balance is not None and (balance.free, balance.reserved) != last:
                last = (balance.free, balance.reserved)
                print(
                    f"  {balance.fetched_at:%H:%M:%S}  free={balance.free} "
                    f"reserved={balance.reserved} total={balance.total}"
                )
            if app.ledger.last_error:
                print(f"  ⚠ {app.ledger.last_error} (showing last-known balance)")
            await asyncio.sleep(1)
        return 0

    try:
        return _run_signed_in(action)
    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal. Shutting down...\n")
        return 0
    except BetError as e:
        print(f"\n❌ {e.user_message}\n")
        return 1


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="DareDevil: peer-to-peer straight bets with a points economy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"DareDevil {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory and configuration file",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_balance = subparsers.add_parser(
        "balance",
        help="Display free, reserved and total points",
    )
    parser_balance.set_defaults(func=cmd_balance)

    parser_transactions = subparsers.add_parser(
        "transactions",
        help="Display points transaction history",
    )
    parser_transactions.add_argument("--limit", type=int, default=None)
    parser_transactions.set_defaults(func=cmd_transactions)

    parser_bets = subparsers.add_parser(
        "bets",
        help="List bets (open by default)",
    )
    parser_bets.add_argument(
        "--status",
        choices=[s.value for s in BetStatus],
        help="Filter by bet status",
    )
    parser_bets.add_argument("--mine", action="store_true", help="Only your bets")
    parser_bets.add_argument("--match", help="Only bets on this match id")
    parser_bets.add_argument("--limit", type=int, default=None)
    parser_bets.set_defaults(func=cmd_bets)

    parser_bet = subparsers.add_parser("bet", help="Show a single bet")
    parser_bet.add_argument("bet_id")
    parser_bet.set_defaults(func=cmd_bet)

    parser_create = subparsers.add_parser("create", help="Create a straight bet")
    parser_create.add_argument("--match", required=True, help="Match id")
    parser_create.add_argument("--pick", required=True, help="Team or player id")
    parser_create.add_argument("--amount", required=True, type=int, help="Points to wager")
    parser_create.add_argument("--note", default=None, help="Optional note")
    parser_create.set_defaults(func=cmd_create)

    parser_accept = subparsers.add_parser("accept", help="Accept an open bet")
    parser_accept.add_argument("bet_id")
    parser_accept.set_defaults(func=cmd_accept)

    parser_cancel = subparsers.add_parser("cancel", help="Cancel one of your open bets")
    parser_cancel.add_argument("bet_id")
    parser_cancel.set_defaults(func=cmd_cancel)

    parser_watch = subparsers.add_parser(
        "watch",
        help="Poll and print the balance on the configured interval",
    )
    parser_watch.add_argument(
        "--seconds",
        type=int,
        default=0,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    parser_watch.set_defaults(func=cmd_watch)

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
