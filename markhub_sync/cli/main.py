"""Command line entry point for Markhub bookmark sync.

The local bookmark tree is read from and written to a JSON snapshot shaped
like the browser's ``getTree()`` output.

Usage:
    markhub-sync login --identity user@example.com
    markhub-sync enable
    markhub-sync pull --tree ~/bookmarks.json
    markhub-sync push --tree ~/bookmarks.json
    markhub-sync status
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import os
import sys
from typing import TYPE_CHECKING

from markhub_sync.adapters.local_tree.snapshot import load_tree, save_tree
from markhub_sync.adapters.markhub.client import MarkhubClient
from markhub_sync.adapters.markhub.errors import MarkhubClientError
from markhub_sync.config.manager import ConfigManager, JsonFileConfigStorage
from markhub_sync.config.settings import load_config
from markhub_sync.core.logging_utils import setup_json_logging
from markhub_sync.sync.service import SyncService

if TYPE_CHECKING:
    from markhub_sync.config.settings import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_TREE_PATH = "~/.config/markhub-sync/bookmarks.json"
MAX_PRINTED_ERRORS = 10


def _config_manager(cfg: AppConfig) -> ConfigManager:
    return ConfigManager(JsonFileConfigStorage(cfg.runtime.config_path))


def _print_errors(errors: list[str]) -> None:
    if not errors:
        return
    print(f"\nErrors ({len(errors)}):")
    for err in errors[:MAX_PRINTED_ERRORS]:
        print(f"  - {err}")
    if len(errors) > MAX_PRINTED_ERRORS:
        print(f"  ... and {len(errors) - MAX_PRINTED_ERRORS} more")


async def cmd_login(cfg: AppConfig, args: argparse.Namespace) -> int:
    manager = _config_manager(cfg)
    await manager.initialize()
    password = args.password or os.getenv("MARKHUB_PASSWORD") or getpass.getpass("Password: ")
    async with MarkhubClient.from_config(cfg.markhub, manager) as client:
        try:
            auth = await client.login(args.identity, password)
        except MarkhubClientError as exc:
            print(f"Login failed: {exc}")
            return 1
    if args.enable_sync:
        await manager.update(sync_enabled=True)
    print(f"Logged in as {auth.record.email or auth.record.id}")
    return 0


async def cmd_logout(cfg: AppConfig, args: argparse.Namespace) -> int:
    manager = _config_manager(cfg)
    await manager.initialize()
    await manager.set_auth_token(None)
    print("Logged out")
    return 0


async def cmd_set_sync(cfg: AppConfig, args: argparse.Namespace) -> int:
    manager = _config_manager(cfg)
    await manager.initialize()
    await manager.update(sync_enabled=args.command == "enable")
    print(f"Sync {'enabled' if args.command == 'enable' else 'disabled'}")
    return 0


async def cmd_status(cfg: AppConfig, args: argparse.Namespace) -> int:
    manager = _config_manager(cfg)
    user_config = await manager.initialize()
    async with MarkhubClient.from_config(cfg.markhub, manager) as client:
        healthy = await client.health_check()
    print("=== Markhub Sync Status ===")
    print(f"Server: {cfg.markhub.api_url} ({'reachable' if healthy else 'unreachable'})")
    print(f"Authenticated: {'yes' if manager.is_authenticated() else 'no'}")
    print(f"Sync enabled: {'yes' if user_config.sync_enabled else 'no'}")
    print(f"Last sync: {user_config.last_sync_time or 'never'}")
    print(f"Folder recommendations: {'on' if cfg.folder_recommendation.is_configured else 'off'}")
    return 0 if healthy else 1


async def cmd_pull(cfg: AppConfig, args: argparse.Namespace) -> int:
    tree = load_tree(args.tree)
    service = SyncService(cfg, tree, config_manager=_config_manager(cfg))
    try:
        await service.initialize()
        result = await service.sync_from_markhub()
        await tree.drain_events()
    finally:
        await service.aclose()
    if result.success:
        await save_tree(tree, args.tree)

    print("\n=== Markhub Pull Summary ===")
    print(
        f"Folders created: {result.folders_created}, "
        f"bookmarks created: {result.bookmarks_created}, "
        f"updated: {result.bookmarks_updated}, skipped: {result.skipped}"
    )
    print(f"Duration: {result.duration_seconds:.1f}s")
    _print_errors(result.errors)
    return 0 if result.success else 1


async def cmd_push(cfg: AppConfig, args: argparse.Namespace) -> int:
    tree = load_tree(args.tree)
    service = SyncService(cfg, tree, config_manager=_config_manager(cfg))
    try:
        await service.initialize()
        result = await service.batch_sync()
    finally:
        await service.aclose()

    print("\n=== Markhub Push Summary ===")
    print(f"Successful: {result.successful}, failed: {result.failed}")
    _print_errors(result.errors)
    return 0 if not result.errors else 1


COMMANDS = {
    "login": cmd_login,
    "logout": cmd_logout,
    "enable": cmd_set_sync,
    "disable": cmd_set_sync,
    "status": cmd_status,
    "pull": cmd_pull,
    "push": cmd_push,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="markhub-sync",
        description="Synchronize a local bookmark tree with Markhub",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (defaults to LOG_LEVEL or INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and store the auth token")
    login.add_argument("--identity", required=True, help="Markhub user email or username")
    login.add_argument(
        "--password",
        default=None,
        help="Password (defaults to MARKHUB_PASSWORD or an interactive prompt)",
    )
    login.add_argument(
        "--enable-sync", action="store_true", help="Turn sync on after logging in"
    )

    sub.add_parser("logout", help="Forget the stored auth token")
    sub.add_parser("enable", help="Turn sync on")
    sub.add_parser("disable", help="Turn sync off")
    sub.add_parser("status", help="Show server, auth and sync status")

    for name, help_text in (
        ("pull", "Import Markhub folders and bookmarks into the tree snapshot"),
        ("push", "Upload every bookmark of the tree snapshot to Markhub"),
    ):
        command = sub.add_parser(name, help=help_text)
        command.add_argument(
            "--tree",
            default=DEFAULT_TREE_PATH,
            help=f"Bookmark tree JSON snapshot (default: {DEFAULT_TREE_PATH})",
        )
    return parser


async def run(args: argparse.Namespace) -> int:
    """Run one subcommand; returns the process exit code."""
    try:
        cfg = load_config()
    except RuntimeError as exc:
        print(f"ERROR: {exc}")
        return 1

    setup_json_logging(
        args.log_level or cfg.runtime.log_level,
        use_loguru=cfg.runtime.use_loguru,
        log_file=cfg.runtime.log_file,
    )
    try:
        return await COMMANDS[args.command](cfg, args)
    except Exception as exc:
        logger.exception("cli_command_failed", extra={"command": args.command})
        print(f"\nERROR: {exc}")
        return 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
