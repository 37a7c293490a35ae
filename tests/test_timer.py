"""
Tests for the fixed-rate asyncio timer.
"""

import asyncio

import pytest

from status_sweeper.polling.timer import PeriodicTimer


@pytest.mark.asyncio
async def test_fires_immediately_and_repeats():
    calls = []

    async def tick():
        calls.append(asyncio.get_running_loop().time())

    timer = PeriodicTimer("test", tick)
    timer.start(0.01)
    await asyncio.sleep(0.055)
    await timer.stop()

    assert len(calls) >= 3
    assert not timer.is_running()


@pytest.mark.asyncio
async def test_delayed_start_skips_first_tick():
    calls = []

    async def tick():
        calls.append(1)

    timer = PeriodicTimer("test", tick)
    timer.start(0.5, fire_immediately=False)
    await asyncio.sleep(0.05)
    await timer.stop()

    assert calls == []


@pytest.mark.asyncio
async def test_no_ticks_after_stop():
    calls = []

    async def tick():
        calls.append(1)

    timer = PeriodicTimer("test", tick)
    timer.start(0.01)
    await asyncio.sleep(0.03)
    await timer.stop()
    count = len(calls)
    await asyncio.sleep(0.05)

    assert len(calls) == count


@pytest.mark.asyncio
async def test_slow_tick_does_not_delay_next_tick():
    started = []
    release = asyncio.Event()

    async def tick():
        started.append(1)
        await release.wait()

    timer = PeriodicTimer("test", tick)
    timer.start(0.01)
    await asyncio.sleep(0.055)

    assert len(started) >= 3

    await timer.stop()
    assert timer._tick_tasks == set()


@pytest.mark.asyncio
async def test_failing_tick_keeps_timer_alive():
    calls = []

    async def tick():
        calls.append(1)
        raise RuntimeError("boom")

    timer = PeriodicTimer("test", tick)
    timer.start(0.01)
    await asyncio.sleep(0.035)

    assert timer.is_running()
    assert len(calls) >= 2
    await timer.stop()


@pytest.mark.asyncio
async def test_restart_changes_interval():
    calls = []

    async def tick():
        calls.append(1)

    timer = PeriodicTimer("test", tick)
    timer.start(10)
    await asyncio.sleep(0)

    timer.restart(0.01)
    await asyncio.sleep(0.045)
    await timer.stop()

    assert timer.interval_seconds == 0.01
    assert len(calls) >= 3


@pytest.mark.asyncio
async def test_restart_is_noop_when_not_running():
    async def tick():
        pass

    timer = PeriodicTimer("test", tick)
    timer.restart(0.01)

    assert not timer.is_running()
    assert timer.interval_seconds is None
