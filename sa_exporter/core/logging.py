"""Logging setup for the SA exporter process."""
import logging
import os

# httpx logs every request at INFO; a scrape issues several.
_NOISY = ("httpx", "httpcore")


def setup_logging(level: str | None = None) -> None:
    """Configure root logging from ``level`` or the LOG_LEVEL environment variable."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    for name in _NOISY:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLogger().level))
