"""
Tests for JobOrchestrator: registry, status, manual triggers, overlap
handling and clean stop.
"""
import asyncio
import pytest
from datetime import datetime, timezone

from checkin_engine.core.errors import JobNotFound
from checkin_engine.services.jobs import JobOrchestrator

NOW = datetime(2024, 1, 10, 8, 15, tzinfo=timezone.utc)  # a Wednesday


async def ok_job():
    return {"processed": 3}


async def broken_job():
    raise RuntimeError("boom")


class TestRegistry:
    """Test register / remove / stop_job / start_job."""

    def test_register_and_status(self):
        orch = JobOrchestrator()
        orch.register("checkin-reminders", "0 * * * *", ok_job, description="hourly")

        [status] = orch.status(now=NOW)
        assert status.name == "checkin-reminders"
        assert status.schedule == "0 * * * *"
        assert status.description == "hourly"
        assert status.scheduled is True
        assert status.running is False
        assert status.next_run_time == datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)
        assert status.runs == 0

    def test_named_weekday(self):
        orch = JobOrchestrator()
        orch.register("weekly-summaries", "0 9 * * mon", ok_job)

        status = orch.job_status("weekly-summaries", now=NOW)
        assert status.next_run_time == datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    def test_register_replaces_existing(self):
        orch = JobOrchestrator()
        orch.register("cleanup", "0 2 * * *", ok_job)
        orch.register("cleanup", "30 3 * * *", ok_job)

        assert orch.job_names() == ["cleanup"]
        assert orch.job_status("cleanup").schedule == "30 3 * * *"

    def test_stop_and_start_job(self):
        orch = JobOrchestrator()
        orch.register("cleanup", "0 2 * * *", ok_job)

        orch.stop_job("cleanup")
        status = orch.job_status("cleanup", now=NOW)
        assert status.scheduled is False
        assert status.next_run_time is None

        orch.start_job("cleanup")
        assert orch.job_status("cleanup", now=NOW).next_run_time == datetime(2024, 1, 11, 2, 0, tzinfo=timezone.utc)

    def test_remove(self):
        orch = JobOrchestrator()
        orch.register("cleanup", "0 2 * * *", ok_job)
        orch.remove("cleanup")

        assert orch.job_names() == []
        with pytest.raises(JobNotFound):
            orch.job_status("cleanup")

    def test_invalid_crontab(self):
        with pytest.raises(ValueError):
            JobOrchestrator().register("bad", "every hour", ok_job)


class TestTrigger:
    """Test manual triggers."""

    @pytest.mark.asyncio
    async def test_trigger_returns_result(self):
        orch = JobOrchestrator()
        orch.register("cleanup", "0 2 * * *", ok_job)

        result = await orch.trigger("cleanup")

        assert result == {"processed": 3}
        status = orch.job_status("cleanup")
        assert status.runs == 1
        assert status.last_result == {"processed": 3}
        assert status.last_error is None
        assert status.last_finished_at >= status.last_started_at

    @pytest.mark.asyncio
    async def test_trigger_unknown(self):
        with pytest.raises(JobNotFound):
            await JobOrchestrator().trigger("nope")

    @pytest.mark.asyncio
    async def test_trigger_error_is_recorded_and_raised(self):
        orch = JobOrchestrator()
        orch.register("broken", "0 2 * * *", broken_job)

        with pytest.raises(RuntimeError, match="boom"):
            await orch.trigger("broken")
        assert orch.job_status("broken").last_error == "boom"

    @pytest.mark.asyncio
    async def test_scheduled_run_error_is_recorded_not_raised(self):
        orch = JobOrchestrator()
        orch.register("broken", "0 2 * * *", broken_job)

        await orch._scheduled_run("broken")

        status = orch.job_status("broken")
        assert status.runs == 1
        assert status.last_error == "boom"


class TestOverlap:
    """A tick that finds the same job still running is skipped."""

    @pytest.mark.asyncio
    async def test_overlapping_tick_skipped(self):
        release = asyncio.Event()
        calls = []

        async def slow_job():
            calls.append(1)
            await release.wait()
            return "done"

        orch = JobOrchestrator()
        orch.register("slow", "0 * * * *", slow_job)

        first = asyncio.create_task(orch._scheduled_run("slow"))
        await asyncio.sleep(0)
        assert orch.job_status("slow").running is True

        await orch._scheduled_run("slow")
        release.set()
        await first

        status = orch.job_status("slow")
        assert calls == [1]
        assert status.skipped == 1
        assert status.runs == 1

    @pytest.mark.asyncio
    async def test_replaced_job_does_not_overlap_old_run(self):
        release = asyncio.Event()
        active = 0
        peak = 0

        async def slow_job():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await release.wait()
            active -= 1
            return "done"

        orch = JobOrchestrator()
        orch.register("slow", "0 * * * *", slow_job)
        first = asyncio.create_task(orch._scheduled_run("slow"))
        await asyncio.sleep(0)

        orch.register("slow", "30 * * * *", slow_job)
        assert orch.job_status("slow").running is True
        await orch._scheduled_run("slow")

        release.set()
        await first

        assert peak == 1
        assert orch.job_status("slow").skipped == 1

    @pytest.mark.asyncio
    async def test_manual_trigger_waits_for_running_job(self):
        release = asyncio.Event()
        order = []

        async def slow_job():
            order.append("start")
            await release.wait()
            order.append("end")
            return len(order)

        orch = JobOrchestrator()
        orch.register("slow", "0 * * * *", slow_job)

        first = asyncio.create_task(orch._scheduled_run("slow"))
        await asyncio.sleep(0)
        manual = asyncio.create_task(orch.trigger("slow"))
        await asyncio.sleep(0)
        assert order == ["start"]

        release.set()
        await first
        await manual

        assert order == ["start", "end", "start", "end"]
        assert orch.job_status("slow").runs == 2


class TestLifecycle:
    """Test start / stop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        orch = JobOrchestrator()
        orch.register("cleanup", "0 2 * * *", ok_job)

        orch.start()
        assert orch.is_running is True
        orch.start()

        await orch.stop()
        assert orch.is_running is False

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self):
        await JobOrchestrator().stop()

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_run(self):
        release = asyncio.Event()

        async def slow_job():
            await release.wait()
            return "finished"

        orch = JobOrchestrator()
        orch.register("slow", "0 * * * *", slow_job)
        orch.start()

        run = asyncio.create_task(orch._scheduled_run("slow"))
        await asyncio.sleep(0)
        stopping = asyncio.create_task(orch.stop())
        await asyncio.sleep(0)
        assert not stopping.done()

        release.set()
        await stopping
        await run

        status = orch.job_status("slow")
        assert status.last_result == "finished"
        assert orch.is_running is False
