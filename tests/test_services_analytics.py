"""
Tests for check-in analytics.
"""
import pytest
from datetime import datetime, timedelta, timezone

from checkin_engine.domain.checkin import PENDING
from checkin_engine.services.analytics import bucket_format, checkin_analytics, checkin_trends, period_start, summarize

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestPeriodStart:
    """Test period_start."""

    @pytest.mark.parametrize("period,days", [("week", 7), ("month", 30), ("quarter", 90), ("year", 365)])
    def test_known_periods(self, period, days):
        assert period_start(period, NOW) == NOW - timedelta(days=days)

    def test_unknown_period_uses_month(self):
        assert period_start("decade", NOW) == NOW - timedelta(days=30)


class TestSummarize:
    """Test summarize."""

    def test_empty(self):
        assert summarize([]) == {
            "total": 0, "completed": 0, "missed": 0, "pending": 0, "completion_rate": 0,
            "average_rating": 0.0, "average_progress": 0.0, "average_mood": 0.0,
        }

    def test_counts_and_averages(self, make_checkin):
        a = make_checkin(NOW - timedelta(days=3))
        a.complete({"rating": 8, "overallProgress": 40, "mood": "good"}, now=NOW)
        b = make_checkin(NOW - timedelta(days=2))
        b.complete({"rating": 6, "overallProgress": 60, "mood": "excellent"}, now=NOW)
        c = make_checkin(NOW - timedelta(days=1))
        c.miss(now=NOW)
        d = make_checkin(NOW, status=PENDING)

        result = summarize([a, b, c, d])

        assert result["total"] == 4
        assert result["completed"] == 2
        assert result["missed"] == 1
        assert result["pending"] == 1
        assert result["completion_rate"] == 50
        assert result["average_rating"] == 7.0
        assert result["average_progress"] == 50.0
        assert result["average_mood"] == 4.5

    def test_ignores_non_numeric_values(self, make_checkin):
        a = make_checkin(NOW)
        a.complete({"rating": "great", "mood": "ecstatic"}, now=NOW)

        result = summarize([a])
        assert result["average_rating"] == 0.0
        assert result["average_mood"] == 0.0


class TestCheckinAnalytics:
    """Test checkin_analytics over a store."""

    @pytest.mark.asyncio
    async def test_period_window(self, store, make_checkin, test_user_id):
        await store.add(make_checkin(NOW - timedelta(days=3)))
        await store.add(make_checkin(NOW - timedelta(days=10)))

        week = await checkin_analytics(store, test_user_id, "week", now=NOW)
        month = await checkin_analytics(store, test_user_id, "month", now=NOW)

        assert week["total"] == 1
        assert week["period"] == "week"
        assert week["since"] == (NOW - timedelta(days=7)).isoformat()
        assert month["total"] == 2


class TestCheckinTrends:
    """Test checkin_trends buckets."""

    def test_bucket_format(self):
        assert bucket_format("year") == "%Y-%m"
        assert bucket_format("week") == "%Y-%m-%d"

    @pytest.mark.asyncio
    async def test_daily_buckets(self, store, make_checkin, test_user_id):
        a = make_checkin(NOW - timedelta(days=2, hours=1))
        a.complete({"rating": 8, "overallProgress": 50}, now=NOW)
        b = make_checkin(NOW - timedelta(days=2, hours=2))
        b.complete({"rating": 6}, now=NOW)
        c = make_checkin(NOW - timedelta(days=1))
        c.miss(now=NOW)
        for ci in (c, a, b):
            await store.add(ci)

        trends = await checkin_trends(store, test_user_id, "week", now=NOW)

        assert trends == [
            {"bucket": "2024-02-28", "total": 2, "completed": 2, "missed": 0,
             "average_rating": 7.0, "average_progress": 50.0},
            {"bucket": "2024-02-29", "total": 1, "completed": 0, "missed": 1,
             "average_rating": None, "average_progress": None},
        ]

    @pytest.mark.asyncio
    async def test_year_is_bucketed_by_month(self, store, make_checkin, test_user_id):
        await store.add(make_checkin(datetime(2024, 1, 5, tzinfo=timezone.utc)))
        await store.add(make_checkin(datetime(2024, 1, 20, tzinfo=timezone.utc)))
        await store.add(make_checkin(datetime(2023, 11, 2, tzinfo=timezone.utc)))
        await store.add(make_checkin(datetime(2022, 11, 2, tzinfo=timezone.utc)))

        trends = await checkin_trends(store, test_user_id, "year", now=NOW)

        assert [(t["bucket"], t["total"]) for t in trends] == [("2023-11", 1), ("2024-01", 2)]

    @pytest.mark.asyncio
    async def test_empty(self, store, test_user_id):
        assert await checkin_trends(store, test_user_id, "month", now=NOW) == []
