"""
Recurrence arithmetic for check-in series.

`next_occurrence` is pure: it never raises for a frequency it does not
recognise and falls back to the weekly cadence instead. Unknown values are
rejected earlier, at the input boundary, by `validate_frequency`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from checkin_engine.core.errors import ValidationError
from checkin_engine.utils.time import add_months

logger = logging.getLogger(__name__)

DAILY = "daily"
WEEKLY = "weekly"
BI_WEEKLY = "bi-weekly"
MONTHLY = "monthly"
CUSTOM = "custom"

FREQUENCIES = (DAILY, WEEKLY, BI_WEEKLY, MONTHLY, CUSTOM)

FIXED_INTERVALS = {
    DAILY: timedelta(days=1),
    WEEKLY: timedelta(days=7),
    BI_WEEKLY: timedelta(days=14),
}

MAX_CUSTOM_DAYS = 365
MAX_CUSTOM_HOURS = 23


@dataclass(frozen=True, slots=True)
class CustomFrequency:
    days: int = 0
    hours: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.days and not self.hours


def validate_frequency(frequency: str, custom: Optional[CustomFrequency] = None) -> str:
    """
    Boundary check for user supplied recurrence rules.
    """
    if frequency not in FREQUENCIES:
        raise ValidationError(
            f"Unknown frequency '{frequency}'",
            detail=f"Expected one of: {', '.join(FREQUENCIES)}",
        )
    if custom is not None:
        if not 0 <= custom.days <= MAX_CUSTOM_DAYS:
            raise ValidationError(f"Custom frequency days must be between 0 and {MAX_CUSTOM_DAYS}")
        if not 0 <= custom.hours <= MAX_CUSTOM_HOURS:
            raise ValidationError(f"Custom frequency hours must be between 0 and {MAX_CUSTOM_HOURS}")
    return frequency


def next_occurrence(anchor: datetime, frequency: str, custom: Optional[CustomFrequency] = None) -> datetime:
    """
    Next occurrence after `anchor` for the given rule.
    - daily / weekly / bi-weekly add 1 / 7 / 14 days
    - monthly adds one calendar month, clamping the day of month
    - custom adds days + hours; an empty custom rule behaves as weekly
    - anything else behaves as weekly
    """
    if frequency in FIXED_INTERVALS:
        return anchor + FIXED_INTERVALS[frequency]
    if frequency == MONTHLY:
        return add_months(anchor, 1)
    if frequency == CUSTOM:
        if custom is None or custom.is_empty:
            return anchor + FIXED_INTERVALS[WEEKLY]
        return anchor + timedelta(days=custom.days, hours=custom.hours)

    logger.warning("Unrecognized frequency %r, falling back to weekly", frequency)
    return anchor + FIXED_INTERVALS[WEEKLY]


def calculate_next_date(current: datetime, frequency: str, custom: Optional[CustomFrequency] = None) -> datetime:
    """
    Cursor step used when materialising a series.
    """
    return next_occurrence(current, frequency, custom)
