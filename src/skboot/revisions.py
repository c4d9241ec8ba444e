"""
Revision naming for pushes.

A push writes the same tree under every revision its strategies name:
the stable pointer that pulls read by default, and a timestamp snapshot
that no later push overwrites.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from .models import BootConfig, RevisionStrategy

SNAPSHOT_FORMAT = "%Y%m%d.%H%M"


def snapshot_revision(now: Optional[datetime] = None) -> str:
    """Return the minute-resolution UTC snapshot tag, e.g. ``20261019.1432``."""
    moment = now or datetime.now(timezone.utc)
    return moment.strftime(SNAPSHOT_FORMAT)


def _stable(config: BootConfig, now: datetime) -> str:
    return config.revision


def _snapshot(config: BootConfig, now: datetime) -> str:
    return snapshot_revision(now)


_NAMERS: dict[RevisionStrategy, Callable[[BootConfig, datetime], str]] = {
    RevisionStrategy.STABLE: _stable,
    RevisionStrategy.SNAPSHOT: _snapshot,
}


def resolve_revisions(
    config: BootConfig, now: Optional[datetime] = None
) -> list[str]:
    """Name every revision one push should write.

    Args:
        config: Boot configuration; its strategies are applied in order.
        now: Clock reading for snapshot names. Defaults to the current UTC time.

    Returns:
        Ordered revision names with duplicates removed.
    """
    moment = now or datetime.now(timezone.utc)
    revisions: list[str] = []
    for strategy in config.revision_strategies:
        name = _NAMERS[strategy](config, moment)
        if name and name not in revisions:
            revisions.append(name)
    return revisions
