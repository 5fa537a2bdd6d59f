"""Command-line entry point for Strive maintenance tasks."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from strive.config import Config
from strive.enrichment.enricher import ItemEnricher
from strive.enrichment.imdb import IMDbClient
from strive.enrichment.tmdb import TMDBClient
from strive.errors import StriveError
from strive.exporters.csv_codec import template_csv
from strive.exporters.list_export import export_list
from strive.web.database import Database
from strive.web.enrichment_service import EnrichmentWorker, WorkerState

TEMPLATE_FILENAME = "strive-import-template.csv"


def setup_logging(level: str) -> None:
    """Configure logging."""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    log_file = log_dir / f"strive_{datetime.now().strftime('%Y-%m-%d')}.log"

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )


def build_enricher() -> ItemEnricher:
    return ItemEnricher(
        TMDBClient(Config.TMDB_API_KEY, Config.FETCH_TIMEOUT),
        IMDbClient(Config.IMDB_API_BASE_URL, Config.FETCH_TIMEOUT),
    )


def write_file(output_dir: Path, filename: str, body: str) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    # newline="" keeps the "\n" separators untouched on every platform
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(body)
    return path


def cmd_issue_token(args, db: Database, logger: logging.Logger) -> int:
    token = db.issue_token(args.user)
    logger.info(f"Issued API token for user {args.user}")
    print(token)
    return 0


def cmd_revoke_token(args, db: Database, logger: logging.Logger) -> int:
    if not db.revoke_token(args.token):
        logger.error("Unknown token")
        return 1
    logger.info("Token revoked")
    return 0


def cmd_export(args, db: Database, logger: logging.Logger) -> int:
    try:
        export = asyncio.run(
            export_list(db, build_enricher(), args.user, args.list, Config.EXPORT_CONCURRENCY)
        )
    except StriveError as e:
        logger.error(f"Export failed: {e.message}")
        return 1

    if export is None:
        logger.warning(f"List {args.list} has no items, nothing exported")
        return 0

    output_file = write_file(args.output or Config.OUTPUT_DIR, export.filename, export.body)
    logger.info(f"Exported {export.row_count} items to: {output_file}")
    return 0


def cmd_enrich(args, db: Database, logger: logging.Logger) -> int:
    worker = EnrichmentWorker(
        db,
        build_enricher(),
        WorkerState(),
        batch_size=Config.ENRICH_BATCH_SIZE,
        delay=Config.ENRICH_DELAY,
    )
    result = asyncio.run(worker.run(args.user))
    logger.info(f"Enrichment result: {result}")
    return 0


def cmd_template(args, db: Optional[Database], logger: logging.Logger) -> int:
    output_file = write_file(args.output or Config.OUTPUT_DIR, TEMPLATE_FILENAME, template_csv())
    logger.info(f"Import template written to: {output_file}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Strive list maintenance")
    subparsers = parser.add_subparsers(dest="command", required=True)

    issue = subparsers.add_parser("issue-token", help="Create an API bearer token for a user")
    issue.add_argument("user", help="User id")
    issue.set_defaults(func=cmd_issue_token)

    revoke = subparsers.add_parser("revoke-token", help="Revoke an API bearer token")
    revoke.add_argument("token")
    revoke.set_defaults(func=cmd_revoke_token)

    export = subparsers.add_parser("export", help="Export a list to CSV")
    export.add_argument("user", help="User id")
    export.add_argument("list", help='List id, or "watchlist"')
    export.add_argument("--output", type=Path, default=None, help="Output directory (default: from .env)")
    export.set_defaults(func=cmd_export)

    enrich = subparsers.add_parser("enrich", help="Run one enrichment pass for a user")
    enrich.add_argument("user", help="User id")
    enrich.set_defaults(func=cmd_enrich)

    template = subparsers.add_parser("template", help="Write an import template CSV")
    template.add_argument("--output", type=Path, default=None, help="Output directory (default: from .env)")
    template.set_defaults(func=cmd_template, needs_db=False)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Validate configuration
    errors = Config.validate()
    if errors:
        print("Configuration errors:")
        for error in errors:
            print(f"  - {error}")
        print("\nPlease check your .env file")
        return 1

    Config.ensure_directories()
    setup_logging(Config.LOG_LEVEL)
    logger = logging.getLogger(__name__)

    db = Database(Config.DATABASE_PATH) if getattr(args, "needs_db", True) else None
    return args.func(args, db, logger)


if __name__ == "__main__":
    sys.exit(main())
