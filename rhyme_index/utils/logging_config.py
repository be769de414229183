"""Helpers for configuring consistent project logging output."""

from __future__ import annotations

import logging
import os
from typing import Optional

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_CONFIGURED = False

LOG_LEVEL_ENV = "RHYME_INDEX_LOG_LEVEL"


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    try:
        return int(level)
    except (TypeError, ValueError):
        normalized = str(level).strip().upper()
        return getattr(logging, normalized, logging.INFO)


def configure_logging(level: Optional[str | int] = None, *, force: bool = False) -> None:
    """Initialise root logging handlers for the CLI and background builds.

    The level falls back to ``RHYME_INDEX_LOG_LEVEL`` and then ``INFO``. Unknown
    IPA symbols are reported at ``WARNING``, so a full dictionary build at the
    default level still surfaces lossy pronunciations.
    """

    global _CONFIGURED

    if _CONFIGURED and not force:
        return

    env_level = os.environ.get(LOG_LEVEL_ENV)
    resolved_level = _resolve_level(level if level is not None else env_level)

    logging.basicConfig(level=resolved_level, format=_DEFAULT_FORMAT, force=force)
    logging.getLogger("rhyme_index").setLevel(resolved_level)
    _CONFIGURED = True


__all__ = ["configure_logging", "LOG_LEVEL_ENV"]
