"""Rotation policy for master keys."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from .config import DEFAULT_ROTATION_THRESHOLD

ROTATION_THRESHOLD: timedelta = DEFAULT_ROTATION_THRESHOLD


def needs_rotation(
    creation_date: datetime,
    now: Optional[datetime] = None,
    threshold: timedelta = ROTATION_THRESHOLD,
) -> bool:
    """
    Whether a key created at ``creation_date`` should be replaced.

    The boundary is exclusive: a key exactly ``threshold`` old is still
    considered fresh.

    Args:
        creation_date: Timezone-aware creation instant
        now: Current instant, defaults to the current UTC time
        threshold: Maximum age before rotation

    Returns:
        True if the key is older than ``threshold``
    """
    if now is None:
        now = datetime.now(timezone.utc)
    return now - creation_date > threshold
