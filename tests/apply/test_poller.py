"""Tests for the completion poller."""

import pytest

from clusterspine.apply.poller import CompletionPoller
from clusterspine.core.errors import TimeoutError
from clusterspine.core.models import BuildJob, JobState


class ScriptedJob:
    """Returns the scripted states in order, repeating the last one."""

    def __init__(self, *states: JobState):
        self.states = list(states)
        self.fetches = 0

    async def __call__(self, job_id: str) -> BuildJob:
        self.fetches += 1
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        return BuildJob(id=job_id, state=state, result_image_id="img" if state is JobState.SUCCEEDED else None)


class TestCompletionPoller:
    """Poll until terminal or budget exhausted."""

    @pytest.mark.asyncio
    async def test_five_running_then_succeeded(self, clock):
        """Success after exactly five simulated intervals."""
        fetch = ScriptedJob(*([JobState.RUNNING] * 5), JobState.SUCCEEDED)
        poller = CompletionPoller(clock, interval=2.0, max_attempts=1800)

        job = await poller.wait("job-1", fetch)

        assert job.state is JobState.SUCCEEDED
        assert clock.sleeps == [2.0] * 5
        assert fetch.fetches == 6

    @pytest.mark.asyncio
    async def test_always_running_times_out(self, clock):
        """TimeoutError after exactly max_attempts fetches, with no sleep after the last one."""
        fetch = ScriptedJob(JobState.RUNNING)
        poller = CompletionPoller(clock, interval=1.0, max_attempts=7)

        with pytest.raises(TimeoutError) as exc_info:
            await poller.wait("job-1", fetch)

        assert fetch.fetches == 7
        assert clock.sleeps == [1.0] * 6
        assert exc_info.value.attempts == 7
        assert exc_info.value.context.job_id == "job-1"

    @pytest.mark.asyncio
    async def test_failed_is_returned_not_raised(self, clock):
        fetch = ScriptedJob(JobState.PENDING, JobState.FAILED)
        job = await CompletionPoller(clock).wait("job-1", fetch)
        assert job.state is JobState.FAILED
        assert len(clock.sleeps) == 1

    @pytest.mark.asyncio
    async def test_terminal_on_first_fetch_never_sleeps(self, clock):
        job = await CompletionPoller(clock).wait("job-1", ScriptedJob(JobState.SUCCEEDED))
        assert job.result_image_id == "img"
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_progress_callback_observes_non_terminal_states(self, clock):
        seen = []
        poller = CompletionPoller(
            clock,
            max_attempts=10,
            on_progress=lambda job_id, attempt, total, state: seen.append((attempt, state)),
        )
        await poller.wait("job-1", ScriptedJob(JobState.PENDING, JobState.RUNNING, JobState.SUCCEEDED))
        assert seen == [(1, JobState.PENDING), (2, JobState.RUNNING)]

    def test_invalid_budget(self, clock):
        with pytest.raises(ValueError):
            CompletionPoller(clock, max_attempts=0)
        with pytest.raises(ValueError):
            CompletionPoller(clock, interval=-1)
