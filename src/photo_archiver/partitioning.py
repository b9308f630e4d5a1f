# src/photo_archiver/partitioning.py

"""
Size-bounded partitioning of an event's photos into archive groups.

Groups are filled greedily in input order. A group is closed as soon as the
next photo would push it over the budget, so every group with more than one
photo fits the budget, and a photo that is larger than the budget on its own
ends up alone in its group instead of being dropped.

Ordering is never changed: identical listings always produce identical groups,
which keeps part numbers in archive filenames stable between runs.
"""

import logging
from typing import Iterable

from .models import PhotoGroup
from .schemas import PhotoRecord

logger = logging.getLogger(__name__)


def partition(photos: Iterable[PhotoRecord], budget_mb: float) -> list[PhotoGroup]:
    """Split *photos* into ordered groups of at most *budget_mb* each."""
    if budget_mb <= 0:
        raise ValueError("budget_mb must be a positive number")

    groups: list[PhotoGroup] = []
    open_group: list[PhotoRecord] = []
    running_mb = 0.0

    for photo in photos:
        size_mb = photo.size_mb or 0.0
        if open_group and running_mb + size_mb > budget_mb:
            groups.append(PhotoGroup(ordinal=len(groups) + 1, photos=tuple(open_group)))
            open_group = []
            running_mb = 0.0
        open_group.append(photo)
        running_mb += size_mb

    if open_group:
        groups.append(PhotoGroup(ordinal=len(groups) + 1, photos=tuple(open_group)))

    oversized = [g.ordinal for g in groups if g.count == 1 and g.size_mb > budget_mb]
    if oversized:
        logger.warning(
            "Photos larger than the size budget were given their own archives.",
            extra={"budget_mb": budget_mb, "chunk_indexes": oversized},
        )
    logger.debug(
        f"Partitioned photos into {len(groups)} groups.",
        extra={"group_sizes_mb": [round(g.size_mb, 2) for g in groups]},
    )
    return groups
