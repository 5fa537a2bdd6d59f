"""Web server entry point."""

import logging
import sys

import uvicorn

from strive.config import Config

logger = logging.getLogger(__name__)


def main() -> int:
    """Run the web server."""
    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
        ],
    )

    # Validate config
    errors = Config.validate()
    if errors:
        print("Configuration errors:")
        for error in errors:
            print(f"  - {error}")
        print("\nPlease check your .env file")
        return 1

    Config.ensure_directories()

    if not Config.TMDB_API_KEY:
        logger.warning("TMDB_API_KEY is not set: lookups are disabled and exports use stored ratings only")

    logger.info("=" * 50)
    logger.info("Strive - List Service")
    logger.info("=" * 50)
    logger.info(f"Starting server on http://localhost:{Config.WEB_PORT}")
    if Config.ENRICH_INTERVAL > 0:
        logger.info(f"Enrichment interval: {Config.ENRICH_INTERVAL} minutes")
    else:
        logger.info("Scheduled enrichment disabled")
    logger.info("=" * 50)

    uvicorn.run(
        "strive.web.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=Config.WEB_PORT,
        reload=False,
        log_level=Config.LOG_LEVEL.lower(),
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
