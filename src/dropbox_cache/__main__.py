from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dropbox_cache.config import YamlConfigLoader
from dropbox_cache.config.models import AppConfig, ConfigLoadRequest
from dropbox_cache.errors import ConfigurationError, DropboxCacheError
from dropbox_cache.fetcher import build_fetcher
from dropbox_cache.logging import init_logging, resolve_level

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dropbox-cache", description="Local cache for Dropbox files")
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to config.yaml (default: config.yaml)",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to a .env file with secrets (default: .env)",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured logging level")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    fetch_parser = subparsers.add_parser("fetch", help="Fetch a remote file and print its local path")
    fetch_parser.add_argument("remote_path", help="Remote path, e.g. /reports/2024.pdf")
    fetch_parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Download attempts before giving up (default: cache.max_attempts)",
    )
    fetch_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort the fetch after N seconds.",
    )

    subparsers.add_parser("test-connection", help="Check that the credentials can reach the storage API")

    prune_parser = subparsers.add_parser("prune", help="Evict least recently fetched cache entries")
    prune_parser.add_argument("--max-entries", type=int, required=True, help="Number of entries to keep")

    return parser


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = YamlConfigLoader()
    request = ConfigLoadRequest(yaml_path=args.config, dotenv_path=args.env_file)
    return await loader.load(request)


async def _fetch(args: argparse.Namespace, config: AppConfig) -> int:
    fetcher = build_fetcher(config)
    try:
        local_path = await fetcher.fetch(args.remote_path, max_attempts=args.max_attempts, timeout=args.timeout)
    except asyncio.TimeoutError:
        logger.error("Fetch timed out. path=%s timeout_seconds=%s", args.remote_path, args.timeout)
        return EXIT_FAILURE
    except DropboxCacheError as e:
        logger.error("Fetch failed. path=%s error=%s", args.remote_path, e)
        return EXIT_FAILURE
    print(local_path)
    return 0


async def _test_connection(args: argparse.Namespace, config: AppConfig) -> int:
    fetcher = build_fetcher(config)
    return 0 if await fetcher.test_connection() else EXIT_FAILURE


async def _prune(args: argparse.Namespace, config: AppConfig) -> int:
    if args.max_entries < 0:
        logger.error("prune needs a non-negative --max-entries. max_entries=%s", args.max_entries)
        return EXIT_FAILURE
    fetcher = build_fetcher(config)
    removed = await asyncio.to_thread(fetcher.store.prune, args.max_entries)
    print(removed)
    return 0


async def _main_async() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        if args.log_level is not None:
            try:
                resolve_level(args.log_level)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        config = await _load_config(args)
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR
    init_logging(config.logging, level_override=args.log_level)

    if args.command == "fetch":
        return await _fetch(args, config)
    if args.command == "test-connection":
        return await _test_connection(args, config)
    if args.command == "prune":
        return await _prune(args, config)
    parser.error(f"Unknown command: {args.command}")
    return EXIT_FAILURE


def main() -> None:
    try:
        sys.exit(asyncio.run(_main_async()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")


if __name__ == "__main__":
    main()
