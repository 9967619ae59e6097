"""Main entry point for MailScanner."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mailscanner.config import Settings


def setup_logging(
    level: str = "INFO",
    debug: bool = False,
    log_to_file: bool = False,
    log_file_path: Path | None = None,
    log_file_max_bytes: int = 10 * 1024 * 1024,
    log_file_backup_count: int = 5,
    log_format: str = "text",
) -> None:
    """Configure logging with console and optional rotating file output.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR)
        debug: If True, overrides level to DEBUG
        log_to_file: Enable file logging in addition to console
        log_file_path: Path to log file (required for file logging)
        log_file_max_bytes: Maximum size per log file before rotation
        log_file_backup_count: Number of rotated backup files to keep
        log_format: 'text' for human-readable, 'json' for structured output
    """
    effective_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(effective_level)

    # Clear any existing handlers to avoid duplicates
    root_logger.handlers.clear()

    from mailscanner.utils.logging import (
        CorrelationIDFilter,
        JSONFormatter,
        LogSanitizer,
        SanitizingFormatter,
    )

    formatter: logging.Formatter
    if log_format == "json":
        formatter = JSONFormatter()
    else:
        formatter = SanitizingFormatter(
            "%(asctime)s [%(levelname)s] [%(correlation_id)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    # Console goes to stderr so command output on stdout stays clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(effective_level)
    console_handler.setFormatter(formatter)
    # Filters are not inherited by child loggers, so attach them to handlers
    console_handler.addFilter(LogSanitizer())
    console_handler.addFilter(CorrelationIDFilter())
    root_logger.addHandler(console_handler)

    if log_to_file and log_file_path:
        try:
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file_path,
                maxBytes=log_file_max_bytes,
                backupCount=log_file_backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(effective_level)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(LogSanitizer())
            file_handler.addFilter(CorrelationIDFilter())
            root_logger.addHandler(file_handler)
            logging.info(f"File logging enabled: {log_file_path}")
        except OSError as e:
            # Continue with console-only logging
            logging.warning(f"Failed to initialize file logging: {e}. Using console-only logging.")


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="mailscanner",
        description="MailScanner - client for the mail-indexing API",
    )
    parser.add_argument("--api-url", default=None, help="API base URL (env: MAILSCANNER_API_BASE_URL)")
    parser.add_argument(
        "--storage-file",
        default=None,
        help="Persistent storage file (env: MAILSCANNER_STORAGE_PATH)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (env: MAILSCANNER_LOG_LEVEL)",
    )
    parser.add_argument("--debug", action="store_true", default=None, help="Enable debug mode")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("status", help="Show storage usage and session state")
    subparsers.add_parser("cleanup", help="Evict transient and non-essential storage entries")
    subparsers.add_parser("config", help="Print the effective configuration")
    login = subparsers.add_parser("login", help="Log in with IMAP credentials")
    login.add_argument("email")
    subparsers.add_parser("logout", help="End the current session")
    subparsers.add_parser("health", help="Query API health")
    monitor = subparsers.add_parser("monitor", help="Watch storage usage in the foreground")
    monitor.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between samples (env: MAILSCANNER_STORAGE_MONITOR_INTERVAL)",
    )
    return parser


def _print_status(settings: Settings) -> None:
    from mailscanner.storage.slots import get_user_storage

    slots = get_user_storage(settings)
    guard = slots.guard
    info = slots.get_user_info()
    print(f"Storage file: {settings.storage_file}")
    print(f"Entries: {len(guard.store.keys())}")
    print(f"Used: {guard.occupied_size()} of {guard.max_size} bytes ({guard.usage_percent():.2f}%)")
    print(f"Session: {slots.session_state.value}")
    if info.email is not None:
        print(f"User: {info.name or '-'} <{info.email}>")


async def _login(settings: Settings, email: str) -> int:
    from mailscanner.api import ApiClient, ApiService

    password = getpass.getpass(f"IMAP password for {email}: ")
    async with ApiClient.from_settings(settings) as client:
        await ApiService(client).login_with_imap(email, password)
    print("Logged in")
    return 0


async def _logout(settings: Settings) -> int:
    from mailscanner.api import ApiClient, ApiService

    async with ApiClient.from_settings(settings) as client:
        await ApiService(client).logout()
    print("Logged out")
    return 0


async def _health(settings: Settings) -> int:
    from mailscanner.api import ApiClient, ApiService

    async with ApiClient.from_settings(settings) as client:
        result = await ApiService(client).health()
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


async def _monitor(settings: Settings, interval: float) -> int:
    from mailscanner.service.storage_monitor import StorageMonitor
    from mailscanner.storage.slots import get_user_storage

    monitor = StorageMonitor(
        get_user_storage(settings).guard,
        interval_seconds=interval,
        warning_ratio=settings.storage_monitor_ratio,
    )
    monitor.check()
    await monitor.start()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the MailScanner command-line interface."""
    import httpx

    from mailscanner.config import Settings, reset_settings
    from mailscanner.storage.errors import StorageError
    from mailscanner.storage.slots import get_user_storage, reset_user_storage

    args = build_parser().parse_args(argv)

    overrides: dict[str, object] = {}
    if args.api_url is not None:
        overrides["api_base_url"] = args.api_url
    if args.storage_file is not None:
        overrides["storage_path"] = Path(args.storage_file)
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.debug is not None:
        overrides["debug"] = args.debug

    # CLI overrides take priority over env vars and .env
    reset_settings()
    reset_user_storage()
    settings = Settings(**overrides)  # type: ignore[arg-type]

    setup_logging(
        level=settings.log_level,
        debug=settings.debug,
        log_to_file=settings.log_to_file,
        log_file_path=settings.log_file_path,
        log_file_max_bytes=settings.log_file_max_bytes,
        log_file_backup_count=settings.log_file_backup_count,
        log_format=settings.log_format,
    )

    try:
        if args.command == "status":
            _print_status(settings)
            return 0
        if args.command == "config":
            settings.print_config()
            return 0
        if args.command == "cleanup":
            cleaned = get_user_storage(settings).cleanup_storage()
            print("Storage cleaned" if cleaned else "Nothing to clean")
            return 0
        if args.command == "login":
            return asyncio.run(_login(settings, args.email))
        if args.command == "logout":
            return asyncio.run(_logout(settings))
        if args.command == "health":
            return asyncio.run(_health(settings))
        if args.command == "monitor":
            return asyncio.run(_monitor(settings, args.interval or settings.storage_monitor_interval))
    except KeyboardInterrupt:
        return 130
    except httpx.HTTPStatusError as e:
        print(f"API error: {e.response.status_code} {e.response.reason_phrase}", file=sys.stderr)
        return 1
    except httpx.HTTPError as e:
        print(f"Request failed: {e}", file=sys.stderr)
        return 1
    except StorageError as e:
        print(f"Storage error: {e}", file=sys.stderr)
        return 1

    return 2


if __name__ == "__main__":
    sys.exit(main())
