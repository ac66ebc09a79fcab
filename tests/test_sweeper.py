from __future__ import annotations

import pytest

from stackflow.sweeper import SWEEP_JOB_ID, SignInSweeper


class RecordingApp:
    def __init__(self, *, fail: bool = False) -> None:
        self.calls = 0
        self.fail = fail

    async def sweep_expired(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("store unavailable")
        return []


@pytest.mark.asyncio
async def test_start_schedules_single_interval_job() -> None:
    sweeper = SignInSweeper(RecordingApp(), interval_seconds=30)

    sweeper.start()
    try:
        job = sweeper.scheduler.get_job(SWEEP_JOB_ID)
        assert job is not None
        assert job.max_instances == 1
        assert job.trigger.interval.total_seconds() == 30
    finally:
        sweeper.shutdown()

    assert not sweeper.scheduler.running


@pytest.mark.asyncio
async def test_run_sweeps_and_survives_failures() -> None:
    app = RecordingApp(fail=True)
    sweeper = SignInSweeper(app, interval_seconds=30)

    await sweeper._run()

    assert app.calls == 1
