"""
Prediction lock clock

A fixture accepts predictions until `lock window` minutes before kickoff.
Lock state is always derived from the clock and never stored.
"""

import logging
import math
from datetime import timedelta

from flask import current_app

from predictor.utils.timezone_utils import ensure_utc

logger = logging.getLogger(__name__)

STATUS_SCHEDULED = "SCHEDULED"
STATUS_FINISHED = "FINISHED"


def lock_instant(kickoff_at, lock_minutes=0):
    """Instant from which predictions are no longer accepted"""
    return ensure_utc(kickoff_at) - timedelta(minutes=lock_minutes or 0)


def is_locked(kickoff_at, lock_minutes, now, status=STATUS_SCHEDULED):
    """
    Check whether a fixture is closed for predictions.

    Args:
        kickoff_at: kickoff instant (naive values are UTC)
        lock_minutes: lock window before kickoff, may be 0
        now: current instant
        status: fixture status

    Returns:
        True if the fixture is finished or now >= kickoff - lock window
    """
    if status == STATUS_FINISHED:
        return True
    return ensure_utc(now) >= lock_instant(kickoff_at, lock_minutes)


def lock_window_minutes():
    """Configured lock window in minutes (LOCK_MINUTES_BEFORE, default 0)"""
    raw = current_app.config.get("LOCK_MINUTES_BEFORE", 0)
    try:
        minutes = float(raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid LOCK_MINUTES_BEFORE={raw!r}, using 0")
        return 0

    if not math.isfinite(minutes) or minutes < 0:
        logger.warning(f"Invalid LOCK_MINUTES_BEFORE={raw!r}, using 0")
        return 0

    return minutes
