import asyncio

import pytest

from exam_prep_cbt.services.countdown import CountdownController, CountdownState, format_remaining

from conftest import START_MS


class ExpiryRecorder:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1


@pytest.mark.parametrize("seconds, text", [(0, "00:00"), (59, "00:59"), (3600, "60:00"), (-3, "00:00")])
def test_format_remaining(seconds, text):
    assert format_remaining(seconds) == text


def test_idle_countdown_reports_no_time_and_can_be_cancelled():
    countdown = CountdownController(ExpiryRecorder())
    assert countdown.state is CountdownState.IDLE
    assert countdown.remaining() == 0
    countdown.cancel()
    assert countdown.state is CountdownState.CANCELLED


@pytest.mark.asyncio
async def test_remaining_is_derived_from_start_timestamp(clock):
    countdown = CountdownController(ExpiryRecorder(), clock=clock, interval=60)
    countdown.start(START_MS, 60)
    try:
        assert countdown.remaining() == 60
        clock.advance(10.5)
        assert countdown.remaining() == 50
        clock.advance(100)
        assert countdown.remaining() == 0
    finally:
        countdown.cancel()


@pytest.mark.asyncio
async def test_expires_once_even_when_ticked_again(clock):
    on_expire = ExpiryRecorder()
    countdown = CountdownController(on_expire, clock=clock, interval=60)
    countdown.start(START_MS, 60)

    clock.advance(59)
    assert await countdown.tick() == 1
    assert on_expire.calls == 0

    clock.advance(1)
    assert await countdown.tick() == 0
    assert countdown.state is CountdownState.EXPIRED
    assert on_expire.calls == 1

    await countdown.tick()
    await asyncio.gather(countdown.tick(), countdown.tick())
    assert on_expire.calls == 1
    assert countdown.remaining() == 0


@pytest.mark.asyncio
async def test_background_ticker_fires_expiry(clock):
    on_expire = ExpiryRecorder()
    countdown = CountdownController(on_expire, clock=clock, interval=0.01)
    countdown.start(START_MS, 1)
    clock.advance(1)

    for _ in range(100):
        if on_expire.calls:
            break
        await asyncio.sleep(0.01)

    assert on_expire.calls == 1
    assert countdown.state is CountdownState.EXPIRED
    await asyncio.sleep(0.05)
    assert on_expire.calls == 1


@pytest.mark.asyncio
async def test_start_twice_is_ignored(clock):
    countdown = CountdownController(ExpiryRecorder(), clock=clock, interval=60)
    countdown.start(START_MS, 60)
    countdown.start(START_MS + 30_000, 600)
    try:
        assert countdown.session_clock.duration_seconds == 60
        assert countdown.session_clock.start_timestamp == START_MS
    finally:
        countdown.cancel()


@pytest.mark.asyncio
async def test_cancel_stops_ticking_without_expiry(clock):
    on_expire = ExpiryRecorder()
    countdown = CountdownController(on_expire, clock=clock, interval=0.01)
    countdown.start(START_MS, 1)
    countdown.cancel()
    assert countdown.state is CountdownState.CANCELLED

    clock.advance(5)
    await asyncio.sleep(0.05)
    assert await countdown.tick() == 0
    assert on_expire.calls == 0


@pytest.mark.asyncio
async def test_warning_under_ten_minutes(clock):
    countdown = CountdownController(ExpiryRecorder(), clock=clock, interval=60)
    countdown.start(START_MS, 30 * 60)
    try:
        assert not countdown.is_warning()
        clock.advance(20 * 60 + 1)
        assert countdown.is_warning()
    finally:
        countdown.cancel()
