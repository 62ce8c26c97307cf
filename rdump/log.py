"""Logging setup: route the rdump loggers through a rich console handler."""
from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger("rdump")


def setup_logging(verbose: bool = False) -> None:
    """Install a RichHandler on stderr for the ``rdump`` logger hierarchy."""
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="%H:%M:%S"))

    logger.handlers.clear()
    logger.propagate = False
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
