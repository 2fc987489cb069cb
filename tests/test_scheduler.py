import asyncio

import pytest

from proactive_bot.scheduler import DeliveryScheduler


@pytest.fixture
async def scheduler():
    scheduler = DeliveryScheduler()
    scheduler.start(asyncio.get_running_loop())
    yield scheduler
    scheduler.shutdown()


class TestDeliveryScheduler:

    async def test_job_runs_coroutine_on_loop(self, scheduler):
        fired = asyncio.Event()
        received = []

        async def deliver(text):
            received.append(text)
            fired.set()

        scheduler.schedule_in_minutes(0.001, deliver, "wake up")

        await asyncio.wait_for(fired.wait(), timeout=5)
        assert received == ["wake up"]

    async def test_pending_job_is_listed(self, scheduler):
        async def deliver():
            pass

        job = scheduler.schedule_in_minutes(30, deliver)

        assert scheduler.jobs() == [job]

    def test_schedule_before_start_fails(self):
        with pytest.raises(RuntimeError):
            DeliveryScheduler().schedule_in_minutes(1, lambda: None)
