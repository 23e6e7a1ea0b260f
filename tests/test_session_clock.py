import os
import sys
import asyncio
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from errors import InvalidState
from session_clock import SessionClock, format_elapsed


@pytest.mark.asyncio
async def test_paused_ticks_are_not_counted():
    clock = SessionClock(interval=3600)
    clock.start()
    clock.tick()
    clock.tick()
    clock.pause()
    clock.tick()
    assert clock.elapsed() == 2
    assert clock.paused
    clock.resume()
    clock.tick()
    assert clock.elapsed() == 3
    await clock.stop()
    clock.tick()
    assert clock.elapsed() == 3
    assert clock.stopped


@pytest.mark.asyncio
async def test_background_task_advances_elapsed():
    async with SessionClock(interval=0.01) as clock:
        clock.start()
        await asyncio.sleep(0.2)
        assert clock.elapsed() > 0
    assert clock.stopped
    assert not clock.running


@pytest.mark.asyncio
async def test_pause_keeps_task_alive():
    clock = SessionClock(interval=0.01)
    clock.start()
    clock.pause()
    task = clock._task
    await asyncio.sleep(0.05)
    assert clock.elapsed() == 0
    assert not task.done()
    await clock.stop()
    assert task.cancelled()


@pytest.mark.asyncio
async def test_task_cancelled_when_block_raises():
    with pytest.raises(RuntimeError):
        async with SessionClock(interval=0.01) as clock:
            clock.start()
            task = clock._task
            raise RuntimeError("view crashed")
    assert task.done()


@pytest.mark.asyncio
async def test_invalid_transitions():
    clock = SessionClock(interval=3600)
    with pytest.raises(InvalidState):
        clock.pause()
    clock.start()
    with pytest.raises(InvalidState):
        clock.start()
    clock.close()
    with pytest.raises(InvalidState):
        clock.resume()


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        SessionClock(interval=0)


def test_format_elapsed():
    assert format_elapsed(0) == "00:00"
    assert format_elapsed(75) == "01:15"
    assert format_elapsed(3600) == "60:00"
