"""Command-line entry point for driving a session against the backend."""

import argparse
import asyncio
import getpass
import json
import logging
import sys

from .core.config import get_settings
from .services.exceptions import GuestQuotaExceededError, SessionError
from .services.local_store import LocalStore
from .services.session_manager import SessionManager
from .services.streak import StreakTracker

EXIT_ERROR = 1
EXIT_QUOTA_EXCEEDED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wouldyou-session",
        description="Inspect and change the local Would You Rather session.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("status", help="Show the restored session")
    commands.add_parser("guest", help="Continue as guest")
    commands.add_parser("play", help="Consume one play (counts against the guest quota)")
    login = commands.add_parser("login", help="Sign in with email and password")
    login.add_argument("email")
    register = commands.add_parser("register", help="Create an account")
    register.add_argument("email")
    commands.add_parser("logout", help="Sign out and clear local session state")
    commands.add_parser("delete-account", help="Permanently delete the signed-in account")
    return parser


async def run_command(
    manager: SessionManager,
    args: argparse.Namespace,
    streak: StreakTracker | None = None,
) -> dict[str, object]:
    """Restore the session, apply the command and return the resulting snapshot."""
    await manager.restore()

    if args.command == "guest":
        await manager.continue_as_guest()
    elif args.command == "play":
        manager.require_feature()
        await manager.increment_guest_usage()
        if streak is not None:
            await streak.load()
            await streak.record_play()
    elif args.command == "login":
        await manager.login(args.email, getpass.getpass("Password: "))
    elif args.command == "register":
        await manager.register(args.email, getpass.getpass("Password: "))
    elif args.command == "logout":
        await manager.logout()
    elif args.command == "delete-account":
        password = getpass.getpass("Password (leave empty for Apple accounts): ")
        await manager.delete_account(password or None)

    return manager.snapshot().to_dict()


async def _main(args: argparse.Namespace) -> int:
    settings = get_settings()
    streak = StreakTracker(LocalStore(settings.local_state_path))
    async with SessionManager.from_settings(settings) as manager:
        try:
            snapshot = await run_command(manager, args, streak)
        except GuestQuotaExceededError as e:
            print(f"error ({e.code}): {e.message}", file=sys.stderr)
            return EXIT_QUOTA_EXCEEDED
        except SessionError as e:
            print(f"error ({e.code}): {e.message}", file=sys.stderr)
            return EXIT_ERROR
    print(json.dumps(snapshot, indent=2))
    return 0


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(_main(args)))


if __name__ == "__main__":
    main()
