#!/usr/bin/env python3
"""
Curalink Search - HTTP Server

Runs the federated search API with uvicorn.

Usage:
    # Defaults from the environment
    python run_server.py

    # Custom host/port and local database
    python run_server.py --host 127.0.0.1 --port 9000 --database-url sqlite:///dev.db

Environment Variables:
    CURALINK_DATABASE_URL: Local store URL (default: sqlite:///curalink.db)
    AACT_DATABASE_URL: Optional AACT PostgreSQL URL (ClinicalTrials.gov fallback)
    NCBI_EMAIL / NCBI_API_KEY: NCBI E-utilities identity and key
    SERPAPI_KEY: SerpAPI key for Google Scholar
    CURALINK_SOURCE_TIMEOUT: Per-source timeout in seconds (default: 8)
    CURALINK_HOST / CURALINK_PORT: Server address (default: 0.0.0.0:8000)
    CURALINK_LOG_LEVEL: Logging level (default: INFO)
"""

import argparse
import dataclasses
import logging
import os
import sys

# Add src to path for development
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "src"))

from curalink_search.api.server import run_api_server
from curalink_search.config import Settings
from curalink_search.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def main():
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    parser = argparse.ArgumentParser(description="Run the Curalink federated search API")
    parser.add_argument("--host", default=settings.host, help=f"Server host (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Server port (default: {settings.port})")
    parser.add_argument("--database-url", default=settings.database_url, help="Local store SQLAlchemy URL")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=f"Logging level (default: {settings.log_level})",
    )
    args = parser.parse_args()

    settings = dataclasses.replace(
        settings,
        host=args.host,
        port=args.port,
        database_url=args.database_url,
        log_level=args.log_level,
    )

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info("Creating Curalink Search API...")
    settings.log_summary(logger)
    run_api_server(settings)


if __name__ == "__main__":
    main()
