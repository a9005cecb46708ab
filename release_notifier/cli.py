"""
Command line entry point.

Usage:
    release-notifier serve
    release-notifier discover
    release-notifier list-repos
    release-notifier clear-cache
"""
import argparse
import asyncio
import logging
import sys
from collections import defaultdict
from pathlib import Path
from typing import List, Optional

from release_notifier.config import ConfigError, Settings, get_settings
from release_notifier.main import configure_logging, create_app
from release_notifier.startup import Services, build_services, discover_and_store

logger = logging.getLogger(__name__)


async def _with_services(settings: Settings, action):
    services = build_services(settings)
    await services.db.connect()
    try:
        return await action(services)
    finally:
        await services.github.aclose()
        await services.telegram.aclose()
        await services.db.close()


async def _discover(services: Services) -> int:
    repos = await discover_and_store(services)
    print(f"\nDiscovered {len(repos)} repositories:")
    for repo in repos:
        print(f"  - {repo.full_name}")
    return 0


async def _list_repos(services: Services) -> int:
    repos = await services.directory.list_all()
    print(f"\nTotal repositories: {len(repos)}\n")
    if not repos:
        print("No repositories found. Run discovery first: release-notifier discover\n")
        return 0

    grouped = defaultdict(list)
    for repo in repos:
        grouped[repo.webhook_status.value].append(repo)

    for status, group in grouped.items():
        print(f"{status.upper()} ({len(group)}):")
        for repo in group:
            hook = f" [hook: {repo.webhook_id}]" if repo.webhook_id else ""
            chat = f" [chat: {repo.chat_id}]" if repo.chat_id else ""
            print(f"  - {repo.full_name}{hook}{chat}")
        print()
    return 0


def clear_cache(db_path: str) -> int:
    """Delete the SQLite database together with its WAL and SHM files"""
    path = Path(db_path)
    found = False
    for candidate in (path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        if candidate.exists():
            candidate.unlink()
            found = True
            print(f"Deleted {candidate}")

    if not found:
        print("No database file found")
        return 0

    logger.info(f"Database cleared: {db_path}")
    print("\nCache cleared. Run discovery again: release-notifier discover\n")
    return 0


def serve(settings: Settings) -> int:
    import uvicorn

    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="release-notifier", description="GitHub release notifications for Telegram")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("serve", help="Run the webhook server, discovery and polling")
    subparsers.add_parser("discover", help="Discover repositories and store them")
    subparsers.add_parser("list-repos", help="List stored repositories grouped by webhook status")
    subparsers.add_parser("clear-cache", help="Delete the local SQLite database")
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except Exception as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level)

    try:
        if args.command == "serve":
            return serve(settings)
        if args.command == "clear-cache":
            return clear_cache(settings.db_path)
        if args.command == "discover":
            return asyncio.run(_with_services(settings, _discover))
        return asyncio.run(_with_services(settings, _list_repos))
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception(f"{args.command} failed")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
