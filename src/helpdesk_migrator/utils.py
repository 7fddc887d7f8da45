"""
Utility functions for the helpdesk ticket migration tool.
"""

from __future__ import annotations

import logging


def setup_logging(*, verbose: bool = False) -> None:
    """Configure logging for the migration process."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler(), logging.FileHandler("migration.log", mode="a")],
    )
    if not verbose:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
