"""Run the blob store service.

Usage:
    python -m tmpstore
    python -m tmpstore --directory /var/tmp/blobs --port 8080

Settings not given on the command line come from the environment
(TMPSTORE_DIR, TMPSTORE_MAX_ENTRY_SIZE, TMPSTORE_SWEEP_INTERVAL,
TMPSTORE_ENTRY_LIFETIME, TMPSTORE_HOST, TMPSTORE_PORT, LOG_LEVEL).
"""

import argparse
import logging

import uvicorn
from pydantic import ValidationError

from tmpstore.config import StoreSettings
from tmpstore.main import create_app


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Short-lived blob storage over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--directory", "-d",
        help="Directory for blob files",
    )
    parser.add_argument(
        "--host",
        help="Address to bind",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Port to listen on",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> StoreSettings:
    """Merge command line overrides into the environment settings."""
    settings = StoreSettings.from_env()
    overrides = {
        key: value
        for key, value in {
            "directory": args.directory,
            "host": args.host,
            "port": args.port,
            "log_level": args.log_level,
        }.items()
        if value is not None
    }
    if overrides:
        settings = StoreSettings.model_validate(
            {**settings.model_dump(), **overrides}
        )
    return settings


def main(argv: list[str] | None = None) -> None:
    try:
        settings = load_settings(parse_args(argv))
    except ValidationError as e:
        raise SystemExit(f"Invalid settings: {e}") from e
    logging.getLogger().setLevel(settings.log_level)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
