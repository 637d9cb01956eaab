from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable, Optional
from uuid import UUID

from checkin_engine.domain.checkin import COMPLETED, MISSED, PENDING, CheckIn
from checkin_engine.repositories.base import CheckInQuery, CheckInStore
from checkin_engine.utils.time import ensure_aware, utcnow

PERIOD_DAYS = {"week": 7, "month": 30, "quarter": 90, "year": 365}
DEFAULT_PERIOD = "month"

MOOD_SCORES = {"excellent": 5, "good": 4, "neutral": 3, "poor": 2, "terrible": 1}


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """
    Start of the trailing window for a summary period; unknown periods use a month.
    """
    days = PERIOD_DAYS.get(period, PERIOD_DAYS[DEFAULT_PERIOD])
    return ensure_aware(now or utcnow()) - timedelta(days=days)


def _mean(values: Iterable[Any]) -> Optional[float]:
    nums = [float(v) for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]
    return round(sum(nums) / len(nums), 2) if nums else None


def _average(values: Iterable[Any]) -> float:
    mean = _mean(values)
    return 0.0 if mean is None else mean


def summarize(checkins: list[CheckIn]) -> dict[str, Any]:
    total = len(checkins)
    completed = sum(1 for c in checkins if c.status == COMPLETED)
    assessments = [c.progress_assessment for c in checkins]
    return {
        "total": total,
        "completed": completed,
        "missed": sum(1 for c in checkins if c.status == MISSED),
        "pending": sum(1 for c in checkins if c.status == PENDING),
        "completion_rate": round(completed / total * 100) if total else 0,
        "average_rating": _average(a.get("rating") for a in assessments),
        "average_progress": _average(a.get("overallProgress") for a in assessments),
        "average_mood": _average(MOOD_SCORES.get(a.get("mood")) for a in assessments),
    }


async def checkin_analytics(
    store: CheckInStore,
    user_id: UUID,
    period: str = DEFAULT_PERIOD,
    *,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Completion statistics for check-ins scheduled since the start of `period`.
    """
    start = period_start(period, now)
    checkins = await store.find(CheckInQuery(user_id=user_id, scheduled_from=start))
    result = summarize(checkins)
    result["period"] = period
    result["since"] = start.isoformat()
    return result


def bucket_format(period: str) -> str:
    # a year is bucketed per month, shorter periods per day
    return "%Y-%m" if period == "year" else "%Y-%m-%d"


async def checkin_trends(
    store: CheckInStore,
    user_id: UUID,
    period: str = DEFAULT_PERIOD,
    *,
    now: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """
    Per-bucket counts and averages for check-ins scheduled since the start
    of `period`, oldest bucket first. Averages are None for buckets without
    a rated (or progress-scored) check-in.
    """
    start = period_start(period, now)
    fmt = bucket_format(period)
    checkins = await store.find(CheckInQuery(user_id=user_id, scheduled_from=start))

    buckets: dict[str, list[CheckIn]] = {}
    for ci in checkins:
        buckets.setdefault(ci.scheduled_date.strftime(fmt), []).append(ci)

    return [
        {
            "bucket": key,
            "total": len(items),
            "completed": sum(1 for c in items if c.status == COMPLETED),
            "missed": sum(1 for c in items if c.status == MISSED),
            "average_rating": _mean(c.progress_assessment.get("rating") for c in items),
            "average_progress": _mean(c.progress_assessment.get("overallProgress") for c in items),
        }
        for key, items in sorted(buckets.items())
    ]
