"""Logging setup for DramaScore entry points."""

import logging
import sys
from typing import Optional

from .config import Config

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger with a single stderr handler.

    Existing root handlers are removed so repeated calls (CLI + web app in
    one process, test runs) do not duplicate output.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    logging.root.setLevel((level or Config.LOG_LEVEL).upper())

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logging.root.addHandler(console_handler)

    logging.captureWarnings(True)
