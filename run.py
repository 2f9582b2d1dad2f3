"""
Run script for starting the Voice Business Search server.

This script configures and starts the FastAPI server that issues provider
credentials and runs business searches for the realtime voice client.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import os
import sys
from pathlib import Path

import uvicorn

sys.path.append(str(Path(__file__).parent))

from voice_search.config.logging_config import configure_logging
from voice_search.config.settings import Settings

# Configure logging
logger = configure_logging()


def parse_args(settings: Settings):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Start the Voice Business Search server"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 3001 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args()


def main():
    """Main entry point for starting the server."""
    settings = Settings.from_env()
    args = parse_args(settings)

    # Credentials are optional individually; report which ones are missing
    missing = [
        name
        for name, value in (
            ("OPENAI_API_KEY", settings.openai_api_key),
            ("ELEVENLABS_API_KEY", settings.elevenlabs_api_key),
            ("SUPABASE_URL", settings.supabase_url),
            ("GOOGLE_PLACES_API_KEY", settings.google_places_api_key),
        )
        if not value
    ]
    if not settings.openai_api_key:
        logger.error("OPENAI_API_KEY environment variable not set")
        print("Error: OPENAI_API_KEY environment variable is required")
        print("Please set it in your environment or in a .env file")
        sys.exit(1)
    for name in missing:
        logger.warning(f"{name} is not configured; related features will be unavailable")

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")

    uvicorn.run(
        "voice_search.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        access_log=False,
        # Reload on code changes during development
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
