"""Tests for the bounded polling primitive."""

import pytest

from sensei.errors import DataIntegrityError
from sensei.utils.retry import poll


class Recorder:
    def __init__(self):
        self.sleeps = []
        self.events = []

    async def sleep(self, seconds):
        self.sleeps.append(seconds)


def scripted(values):
    calls = {"count": 0}

    async def probe():
        value = values[min(calls["count"], len(values) - 1)]
        calls["count"] += 1
        if isinstance(value, Exception):
            raise value
        return value

    return probe, calls


@pytest.mark.asyncio
async def test_poll_returns_after_exactly_k_attempts():
    recorder = Recorder()
    probe, calls = scripted([False, False, True])

    result = await poll(
        probe,
        label="probe",
        max_attempts=5,
        interval=2.5,
        on_event=recorder.events.append,
        sleep=recorder.sleep,
    )

    assert result.satisfied
    assert result.attempts == 3
    assert calls["count"] == 3
    assert recorder.sleeps == [2.5, 2.5]
    assert [e.outcome for e in recorder.events] == ["pending", "pending", "satisfied"]


@pytest.mark.asyncio
async def test_poll_exhausts_after_exactly_max_attempts():
    recorder = Recorder()
    probe, calls = scripted([False])

    result = await poll(
        probe, label="probe", max_attempts=4, interval=1.0, sleep=recorder.sleep
    )

    assert not result.satisfied
    assert result.attempts == 4
    assert calls["count"] == 4
    # no sleep after the final attempt
    assert len(recorder.sleeps) == 3


@pytest.mark.asyncio
async def test_poll_errors_consume_attempts():
    recorder = Recorder()
    probe, calls = scripted([RuntimeError("500"), ConnectionError("reset"), "open", "closed"])

    result = await poll(
        probe,
        label="order",
        max_attempts=10,
        interval=0,
        is_done=lambda v: v == "closed",
        on_event=recorder.events.append,
        sleep=recorder.sleep,
    )

    assert result.satisfied
    assert result.value == "closed"
    assert result.attempts == 4
    assert [e.outcome for e in recorder.events] == ["error", "error", "pending", "satisfied"]
    assert recorder.events[0].detail == "500"


@pytest.mark.asyncio
async def test_poll_fatal_error_propagates_immediately():
    recorder = Recorder()
    probe, calls = scripted([DataIntegrityError("negative price")])

    with pytest.raises(DataIntegrityError):
        await poll(probe, label="order", max_attempts=5, interval=0, sleep=recorder.sleep)

    assert calls["count"] == 1
    assert recorder.sleeps == []


@pytest.mark.asyncio
async def test_poll_unbounded_until_satisfied():
    recorder = Recorder()
    probe, calls = scripted([0] * 49 + [1])

    result = await poll(
        probe, label="balance", max_attempts=None, interval=60, sleep=recorder.sleep
    )

    assert result.satisfied
    assert result.attempts == 50
    assert len(recorder.sleeps) == 49
