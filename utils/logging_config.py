"""Logging setup shared by the app factory and scripts."""

import logging


def configure_logging(level="INFO"):
    """Configure root logging once and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("lms")
