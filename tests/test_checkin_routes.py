"""
Tests for the /api/checkins routes over the in-memory engine.
"""
import uuid
import pytest
from datetime import datetime, timedelta, timezone

from checkin_engine.domain.checkin import COMPLETED, MISSED


def iso(dt):
    return dt.isoformat()


@pytest.fixture
def tomorrow():
    return (datetime.now(timezone.utc) + timedelta(days=1)).replace(microsecond=0)


class TestCreateRoutes:
    """Test check-in creation endpoints."""

    @pytest.mark.asyncio
    async def test_create_checkin(self, client, goal, store, tomorrow):
        response = await client.post("/api/checkins", json={
            "goal_id": str(goal.id),
            "frequency": "daily",
            "scheduled_date": iso(tomorrow),
            "reminder_settings": {"advance_time": 30, "methods": ["email", "push"]},
        })

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Check-in for Run a marathon"
        assert data["status"] == "scheduled"
        assert data["frequency"] == "daily"
        assert data["reminder_settings"] == {"enabled": True, "advance_time": 30, "methods": ["email", "push"]}
        assert datetime.fromisoformat(data["next_scheduled_date"]) == tomorrow + timedelta(days=1)
        assert uuid.UUID(data["id"]) in store.rows

    @pytest.mark.asyncio
    async def test_create_with_every_method_switched_off(self, client, goal, store):
        response = await client.post("/api/checkins", json={
            "goal_id": str(goal.id),
            "reminder_settings": {"methods": []},
        })

        assert response.status_code == 201
        assert response.json()["reminder_settings"]["methods"] == []
        assert store.rows[uuid.UUID(response.json()["id"])].reminder_settings.methods == ()

    @pytest.mark.asyncio
    async def test_create_unknown_goal(self, client):
        response = await client.post("/api/checkins", json={"goal_id": str(uuid.uuid4())})

        assert response.status_code == 404
        assert response.json()["error_code"] == "GOAL_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_create_invalid_frequency(self, client, goal):
        response = await client.post("/api/checkins", json={"goal_id": str(goal.id), "frequency": "hourly"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_create_advance_time_out_of_range(self, client, goal):
        response = await client.post("/api/checkins", json={
            "goal_id": str(goal.id),
            "reminder_settings": {"advance_time": 2000},
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_create_recurring_series(self, client, goal, store):
        response = await client.post("/api/checkins/recurring", json={
            "goal_id": str(goal.id),
            "frequency": "weekly",
            "start_date": "2030-01-07T09:00:00Z",
            "end_date": "2030-02-04T09:00:00Z",
        })

        assert response.status_code == 201
        data = response.json()
        assert len(data) == 5
        assert data[0]["title"] == "Run a marathon - weekly Check-in"
        assert len(store.rows) == 5

    @pytest.mark.asyncio
    async def test_create_series_end_before_start(self, client, goal):
        response = await client.post("/api/checkins/recurring", json={
            "goal_id": str(goal.id),
            "frequency": "daily",
            "start_date": "2030-02-01T09:00:00Z",
            "end_date": "2030-01-01T09:00:00Z",
        })

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"


class TestTransitionRoutes:
    """Test complete / miss / reschedule endpoints."""

    @pytest.mark.asyncio
    async def test_complete(self, client, store, make_checkin, channels):
        ci = make_checkin(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc), frequency="weekly")
        await store.add(ci)

        response = await client.post(f"/api/checkins/{ci.id}/complete", json={
            "progress_assessment": {"overallProgress": 30, "rating": 7, "mood": "good", "energy": "high"},
            "responses": [{"question": "What went well?", "answer": "Long run"}],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["checkin"]["status"] == COMPLETED
        assert data["checkin"]["next_scheduled_date"].startswith("2024-01-08T09:00:00")
        assert data["checkin"]["progress_assessment"] == {
            "overallProgress": 30, "rating": 7, "mood": "good", "energy": "high",
        }
        assert [n["status"] for n in data["notifications"]] == ["sent"]
        assert store.rows[ci.id].status == COMPLETED

    @pytest.mark.asyncio
    async def test_complete_twice_conflicts(self, client, store, make_checkin):
        ci = make_checkin(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
        await store.add(ci)
        await client.post(f"/api/checkins/{ci.id}/complete", json={})

        response = await client.post(f"/api/checkins/{ci.id}/complete", json={})

        assert response.status_code == 409
        assert response.json()["error_code"] == "ALREADY_COMPLETED"

    @pytest.mark.asyncio
    async def test_complete_unknown(self, client):
        response = await client.post(f"/api/checkins/{uuid.uuid4()}/complete", json={})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_other_users_checkin_is_hidden(self, client, store, goal, another_user_id):
        from checkin_engine.domain.checkin import CheckIn

        theirs = CheckIn(user_id=another_user_id, goal_id=goal.id, title="x",
                         scheduled_date=datetime(2024, 1, 1, tzinfo=timezone.utc))
        await store.add(theirs)

        assert (await client.get(f"/api/checkins/{theirs.id}")).status_code == 404
        assert (await client.post(f"/api/checkins/{theirs.id}/miss")).status_code == 404

    @pytest.mark.asyncio
    async def test_miss_then_reschedule(self, client, store, make_checkin):
        ci = make_checkin(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
        await store.add(ci)

        missed = await client.post(f"/api/checkins/{ci.id}/miss")
        assert missed.json()["status"] == MISSED

        moved = await client.post(f"/api/checkins/{ci.id}/reschedule", json={"scheduled_date": "2024-01-02T18:00:00Z"})
        assert moved.status_code == 200
        assert moved.json()["status"] == "scheduled"
        assert moved.json()["scheduled_date"].startswith("2024-01-02T18:00:00")

    @pytest.mark.asyncio
    async def test_reschedule_completed(self, client, store, make_checkin):
        ci = make_checkin(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
        ci.complete(now=datetime(2024, 1, 1, 9, 5, tzinfo=timezone.utc))
        await store.add(ci)

        response = await client.post(f"/api/checkins/{ci.id}/reschedule", json={"scheduled_date": "2024-01-05T09:00:00Z"})

        assert response.status_code == 409
        assert response.json()["error_code"] == "COMPLETED_CHECKIN"


class TestQueryRoutes:
    """Test upcoming / overdue / range / analytics endpoints."""

    @pytest.mark.asyncio
    async def test_upcoming_and_overdue(self, client, store, make_checkin):
        now = datetime.now(timezone.utc)
        soon = make_checkin(now + timedelta(hours=2))
        late = make_checkin(now - timedelta(hours=2))
        await store.add(soon)
        await store.add(late)

        upcoming = (await client.get("/api/checkins/upcoming", params={"limit": 5})).json()
        overdue = (await client.get("/api/checkins/overdue")).json()

        assert [c["id"] for c in upcoming] == [str(soon.id)]
        assert [c["id"] for c in overdue] == [str(late.id)]

    @pytest.mark.asyncio
    async def test_range(self, client, store, make_checkin):
        inside = make_checkin(datetime(2024, 1, 15, tzinfo=timezone.utc))
        outside = make_checkin(datetime(2024, 3, 1, tzinfo=timezone.utc))
        await store.add(inside)
        await store.add(outside)

        response = await client.get("/api/checkins/range", params={
            "start": "2024-01-01T00:00:00Z", "end": "2024-01-31T23:59:59Z",
        })

        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == [str(inside.id)]

    @pytest.mark.asyncio
    async def test_range_inverted(self, client):
        response = await client.get("/api/checkins/range", params={
            "start": "2024-02-01T00:00:00Z", "end": "2024-01-01T00:00:00Z",
        })
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_analytics(self, client, store, make_checkin):
        ci = make_checkin(datetime.now(timezone.utc) - timedelta(days=1))
        ci.complete({"rating": 9}, now=datetime.now(timezone.utc))
        await store.add(ci)

        response = await client.get("/api/checkins/analytics", params={"period": "week"})

        assert response.status_code == 200
        data = response.json()
        assert data["period"] == "week"
        assert data["completed"] == 1
        assert data["completion_rate"] == 100
        assert data["average_rating"] == 9.0

    @pytest.mark.asyncio
    async def test_trends(self, client, store, make_checkin):
        when = datetime.now(timezone.utc) - timedelta(days=1)
        ci = make_checkin(when)
        ci.complete({"rating": 8, "overallProgress": 40}, now=datetime.now(timezone.utc))
        await store.add(ci)

        response = await client.get("/api/checkins/trends", params={"period": "week"})

        assert response.status_code == 200
        assert response.json() == [{
            "bucket": when.strftime("%Y-%m-%d"), "total": 1, "completed": 1, "missed": 0,
            "average_rating": 8.0, "average_progress": 40.0,
        }]

    @pytest.mark.asyncio
    async def test_assessment_questions(self, client, store, make_checkin):
        ci = make_checkin(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
        await store.add(ci)

        response = await client.get(f"/api/checkins/{ci.id}/questions")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 4
        assert data[0]["type"] == "rating"
        assert data[1] == {"question": "What challenges did you face this period?", "type": "text", "options": None}

    @pytest.mark.asyncio
    async def test_assessment_questions_unknown_checkin(self, client):
        response = await client.get(f"/api/checkins/{uuid.uuid4()}/questions")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_analytics_invalid_period(self, client):
        response = await client.get("/api/checkins/analytics", params={"period": "decade"})
        assert response.status_code == 422
