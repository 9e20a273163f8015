"""CLI entry point for flatcrawl."""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .config import AppConfig, load_config
from .errors import ConfigurationError, GistError, StorageError
from .gist import pull_table_from_gist, sync_table_to_gist
from .models import RunSummary
from .scraper import scrape_all

logger = logging.getLogger(__name__)


def _ensure_utf8() -> None:
    """Ensure stdout/stderr use UTF-8 on Windows to avoid charmap errors."""
    if sys.platform == "win32":
        os.environ.setdefault("PYTHONUTF8", "1")
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flatcrawl",
        description="Open configured pages in a headless browser and track their links in CSV",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.json (default: $FLATCRAWL_CONFIG or ./config.json)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    scrape = commands.add_parser("scrape", help="Scrape URLs from configured sources")
    scrape.add_argument("source", nargs="?", default=None, help="Specific source to scrape")
    scrape.add_argument(
        "--output",
        choices=["json", "table"],
        default="table",
        help="Summary format (default: table)",
    )

    serve = commands.add_parser("serve", help="Start the review server")
    serve.add_argument("--port", "-p", type=int, default=None, help="Port to listen on")

    commands.add_parser("sync", help="Sync the table to a GitHub gist")
    commands.add_parser("pull", help="Replace the local table with the gist copy")
    return parser


def print_summary(summary: RunSummary, output: str) -> None:
    if output == "json":
        print(json.dumps(summary.model_dump(mode="json", by_alias=True), indent=2))
        return

    print(f"\n{'='*60}")
    print(f"  Sources attempted: {summary.sources_attempted}")
    print(f"  Sources failed:    {summary.sources_failed}")
    print(f"  New records:       {summary.total_new}")
    print(f"{'='*60}")
    for outcome in summary.outcomes:
        if outcome.success:
            print(
                f"  {outcome.source}: {outcome.new_count} new "
                f"({outcome.urls_found} found, {outcome.invalid_urls} invalid, "
                f"{outcome.duplicates} duplicates)"
            )
        else:
            print(f"  {outcome.source}: FAILED - {outcome.error}")


def _run_scrape(config: AppConfig, args: argparse.Namespace) -> int:
    sources = [args.source] if args.source else None
    summary = asyncio.run(scrape_all(config, sources=sources))
    print_summary(summary, args.output)
    # A single named source that fails is a failed run.
    if args.source and summary.failed:
        return 1
    return 0


def _run_serve(config: AppConfig, args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    port = args.port or config.server.port
    logger.info(f"Starting server on http://localhost:{port}")
    uvicorn.run(create_app(config), host="127.0.0.1", port=port)
    return 0


def _run_sync(config: AppConfig, args: argparse.Namespace) -> int:
    gist_id = asyncio.run(sync_table_to_gist(config))
    print(f"Sync completed successfully. Gist ID: {gist_id}")
    return 0


def _run_pull(config: AppConfig, args: argparse.Namespace) -> int:
    count = asyncio.run(pull_table_from_gist(config))
    print(f"Pulled {count} records into {config.csv_path}")
    return 0


COMMANDS = {
    "scrape": _run_scrape,
    "serve": _run_serve,
    "sync": _run_sync,
    "pull": _run_pull,
}


def main(argv: Optional[list[str]] = None) -> int:
    _ensure_utf8()
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = load_config(config_path=args.config)
        return COMMANDS[args.command](config, args)
    except (ConfigurationError, StorageError, GistError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
