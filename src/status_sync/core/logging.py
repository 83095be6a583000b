"""Shared logging helpers."""

from __future__ import annotations

import logging

from status_sync.core.settings import settings


def configure_logging(*, level: int | str | None = None, force: bool = False) -> None:
    """Initialise the root logger once with a terse worker-friendly format.

    Defaults to the ``LOG_LEVEL`` setting. Pass ``force=True`` to reconfigure
    during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level if level is not None else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
