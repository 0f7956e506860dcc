"""Logging configuration for the wallet service."""
import logging
import sys
from typing import Optional


def setup_logging(level: Optional[str] = None) -> None:
    """
    Send wallet and uvicorn logs to stdout at one level.

    Withdrawal admissions, admin decisions and store write failures are
    logged by the ``wallet.*`` loggers; serverless hosts collect stdout.

    Args:
        level: Level name such as DEBUG or WARNING. Defaults to INFO.
    """
    log_level = (level or "INFO").upper()

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).setLevel(log_level)
