"""Shared logging setup for the ordersync CLI and tests."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: INFO level
    and a terse format suitable for CLI output. Pass ``force=True`` to reconfigure
    during tests or when the verbosity flag changes the level.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    # httpx logs every request at INFO, which drowns out per-batch progress lines
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
