"""Tests for NowPlayingTracker: poll lifecycle, station switching and failure policy."""
import asyncio
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from auntiebar.models import NowNextInfo, NowPlayingSnapshot, ProgrammeSlot, TrackerState
from auntiebar.now_playing import NowPlayingTracker

SNAP_A = NowPlayingSnapshot(artist="Radiohead", title="Creep", programme_title="Breakfast")
SNAP_B = NowPlayingSnapshot(artist="Björk", title="Hyperballad")
NOW_NEXT_A = NowNextInfo(current=ProgrammeSlot(
    title="Breakfast",
    start_time=datetime(2024, 6, 1, 7, tzinfo=timezone.utc),
    end_time=datetime(2024, 6, 1, 10, tzinfo=timezone.utc),
))


class FakeSource:
    """In-loop test double; counters are plain attributes since everything runs on one event loop.

    fail makes both fetches raise (a failed request); off_air makes them return None
    (the request worked but there is nothing to report).
    """

    def __init__(self, snapshots=None, now_next=None, delay=0.0):
        self.snapshots = snapshots or {}
        self.now_next = now_next or {}
        self.delay = delay
        self.fail = False
        self.off_air = False
        self.raise_error = False
        self.fetch_calls = []
        self.now_next_calls = []

    async def fetch_snapshot(self, service_id):
        self.fetch_calls.append(service_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raise_error:
            raise RuntimeError("boom")
        if self.fail:
            raise ConnectionError("rms down")
        return None if self.off_air else self.snapshots.get(service_id)

    async def fetch_now_next(self, service_id):
        self.now_next_calls.append(service_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError("rms down")
        return None if self.off_air else self.now_next.get(service_id)


@pytest_asyncio.fixture
async def make_tracker():
    trackers = []

    def _make(source, **kwargs):
        kwargs.setdefault("interval_seconds", 0.1)
        kwargs.setdefault("preserve_on_failure", True)
        tracker = NowPlayingTracker(source, **kwargs)
        trackers.append(tracker)
        return tracker

    yield _make
    for tracker in trackers:
        await tracker.aclose()


@pytest.fixture
def source():
    return FakeSource(snapshots={"a": SNAP_A, "b": SNAP_B}, now_next={"a": NOW_NEXT_A})


@pytest.mark.asyncio
async def test_idle_initially(make_tracker, source):
    tracker = make_tracker(source)
    assert tracker.state == TrackerState()
    assert tracker.current_snapshot is None
    assert tracker.current_now_next is None


@pytest.mark.asyncio
async def test_start_fetches_immediately(make_tracker, source):
    tracker = make_tracker(source)
    tracker.on_station_started("a")
    state = await tracker.wait_for_update(timeout=1)
    assert source.fetch_calls == ["a"]
    assert source.now_next_calls == ["a"]
    assert state.service_id == "a"
    assert tracker.current_snapshot == SNAP_A
    assert tracker.current_now_next == NOW_NEXT_A
    assert state.updated_at is not None
    assert state.stale_since is None


@pytest.mark.asyncio
async def test_polls_again_after_interval(make_tracker, source):
    tracker = make_tracker(source, interval_seconds=0.1)
    tracker.on_station_started("a")
    await tracker.wait_for_update(timeout=1)
    await asyncio.sleep(0.15)
    assert source.fetch_calls == ["a", "a"]


@pytest.mark.asyncio
async def test_stop_before_interval_prevents_next_tick(make_tracker, source):
    tracker = make_tracker(source, interval_seconds=0.1)
    tracker.on_station_started("a")
    await tracker.wait_for_update(timeout=1)
    tracker.on_station_stopped()
    assert tracker.state == TrackerState()
    await asyncio.sleep(0.25)
    assert source.fetch_calls == ["a"]
    assert tracker.current_snapshot is None
    assert tracker.current_now_next is None


@pytest.mark.asyncio
async def test_switch_station_publishes_new_station_only(make_tracker):
    source = FakeSource(snapshots={"a": SNAP_A, "b": SNAP_B}, delay=0.05)
    tracker = make_tracker(source, interval_seconds=10)
    seen = []
    tracker.subscribe(seen.append)
    tracker.on_station_started("a")
    tracker.on_station_started("b")
    await asyncio.sleep(0.2)
    assert tracker.service_id == "b"
    assert tracker.current_snapshot == SNAP_B
    assert source.fetch_calls.count("a") <= 1
    assert source.fetch_calls.count("b") == 1
    assert all(s.snapshot != SNAP_A for s in seen)


@pytest.mark.asyncio
async def test_switch_mid_fetch_discards_old_result(make_tracker):
    source = FakeSource(snapshots={"a": SNAP_A, "b": SNAP_B}, delay=0.05)
    tracker = make_tracker(source, interval_seconds=10)
    tracker.on_station_started("a")
    await asyncio.sleep(0.01)
    assert source.fetch_calls == ["a"]
    tracker.on_station_started("b")
    await asyncio.sleep(0.15)
    assert tracker.current_snapshot == SNAP_B
    assert source.fetch_calls == ["a", "b"]


@pytest.mark.asyncio
async def test_publish_from_old_generation_is_dropped(make_tracker, source):
    tracker = make_tracker(source, interval_seconds=10)
    tracker.on_station_started("a")
    await tracker.wait_for_update(timeout=1)
    old = tracker.generation
    tracker.on_station_started("b")
    await tracker.wait_for_update(timeout=1)
    assert tracker._publish(old, "a", SNAP_A, None) is False
    assert tracker.current_snapshot == SNAP_B


@pytest.mark.asyncio
async def test_stop_while_fetch_in_flight(make_tracker):
    source = FakeSource(snapshots={"a": SNAP_A}, delay=0.05)
    tracker = make_tracker(source, interval_seconds=10)
    tracker.on_station_started("a")
    await asyncio.sleep(0.01)
    tracker.on_station_stopped()
    await asyncio.sleep(0.1)
    assert tracker.state == TrackerState()


@pytest.mark.asyncio
async def test_failed_tick_keeps_last_good_and_marks_stale(make_tracker, source):
    tracker = make_tracker(source, interval_seconds=0.05, preserve_on_failure=True)
    tracker.on_station_started("a")
    await tracker.wait_for_update(timeout=1)
    source.fail = True
    state = await tracker.wait_for_update(timeout=1)
    assert state.snapshot == SNAP_A
    assert state.now_next == NOW_NEXT_A
    assert state.stale_since is not None
    first_stale = state.stale_since
    state = await tracker.wait_for_update(timeout=1)
    assert state.stale_since == first_stale
    source.fail = False
    state = await tracker.wait_for_update(timeout=1)
    assert state.snapshot == SNAP_A
    assert state.stale_since is None


@pytest.mark.asyncio
async def test_failed_tick_overwrites_when_not_preserving(make_tracker, source):
    tracker = make_tracker(source, interval_seconds=0.05, preserve_on_failure=False)
    tracker.on_station_started("a")
    await tracker.wait_for_update(timeout=1)
    source.fail = True
    state = await tracker.wait_for_update(timeout=1)
    assert state.service_id == "a"
    assert state.snapshot is None
    assert state.now_next is None
    assert state.stale_since is None


@pytest.mark.asyncio
async def test_no_previous_value_stays_absent(make_tracker, source):
    source.fail = True
    tracker = make_tracker(source, interval_seconds=10)
    tracker.on_station_started("a")
    state = await tracker.wait_for_update(timeout=1)
    assert state.snapshot is None
    assert state.stale_since is None


@pytest.mark.asyncio
async def test_values_do_not_carry_over_between_stations(make_tracker, source):
    tracker = make_tracker(source, interval_seconds=10)
    tracker.on_station_started("a")
    await tracker.wait_for_update(timeout=1)
    tracker.on_station_started("c")
    state = await tracker.wait_for_update(timeout=1)
    assert state.service_id == "c"
    assert state.snapshot is None
    assert state.now_next is None


@pytest.mark.asyncio
async def test_source_exception_never_escapes(make_tracker, source):
    source.raise_error = True
    tracker = make_tracker(source, interval_seconds=10)
    tracker.on_station_started("a")
    state = await tracker.wait_for_update(timeout=1)
    assert state.snapshot is None
    assert state.now_next == NOW_NEXT_A


@pytest.mark.asyncio
async def test_slow_tick_times_out(make_tracker):
    source = FakeSource(snapshots={"a": SNAP_A}, delay=1.0)
    tracker = make_tracker(source, interval_seconds=10, tick_timeout=0.05)
    tracker.on_station_started("a")
    state = await tracker.wait_for_update(timeout=1)
    assert state.service_id == "a"
    assert state.snapshot is None


@pytest.mark.asyncio
async def test_listeners_notified_and_errors_ignored(make_tracker, source):
    tracker = make_tracker(source, interval_seconds=10)
    seen = []

    def broken(_state):
        raise ValueError("listener bug")

    tracker.subscribe(broken)
    unsubscribe = tracker.subscribe(seen.append)
    tracker.on_station_started("a")
    await tracker.wait_for_update(timeout=1)
    tracker.on_station_stopped()
    assert [s.service_id for s in seen] == ["a", "a", None]
    assert seen[1].snapshot == SNAP_A
    unsubscribe()
    tracker.on_station_started("b")
    await tracker.wait_for_update(timeout=1)
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_stop_when_idle_is_silent(make_tracker, source):
    tracker = make_tracker(source)
    seen = []
    tracker.subscribe(seen.append)
    tracker.on_station_stopped()
    assert seen == []


@pytest.mark.asyncio
async def test_on_log_hook(make_tracker, source):
    lines = []
    tracker = make_tracker(source, interval_seconds=10, on_log=lines.append)
    tracker.on_station_started("a")
    await tracker.wait_for_update(timeout=1)
    tracker.on_station_stopped()
    assert lines == ["now-playing: tracking a every 10s", "now-playing: stopped tracking a"]


@pytest.mark.asyncio
async def test_nothing_on_air_clears_even_when_preserving(make_tracker, source):
    tracker = make_tracker(source, interval_seconds=0.05, preserve_on_failure=True)
    tracker.on_station_started("a")
    await tracker.wait_for_update(timeout=1)
    source.off_air = True
    state = await tracker.wait_for_update(timeout=1)
    assert state.service_id == "a"
    assert state.snapshot is None
    assert state.now_next is None
    assert state.stale_since is None


@pytest.mark.asyncio
async def test_failure_after_off_air_has_nothing_to_keep(make_tracker, source):
    tracker = make_tracker(source, interval_seconds=0.05, preserve_on_failure=True)
    source.off_air = True
    tracker.on_station_started("a")
    await tracker.wait_for_update(timeout=1)
    source.off_air = False
    source.fail = True
    state = await tracker.wait_for_update(timeout=1)
    assert state.snapshot is None
    assert state.stale_since is None


class TestPauseResume:
    @pytest.mark.asyncio
    async def test_no_tick_while_paused(self, make_tracker, source):
        tracker = make_tracker(source, interval_seconds=0.05)
        tracker.on_station_started("a")
        await tracker.wait_for_update(timeout=1)
        tracker.on_station_paused()
        calls = len(source.fetch_calls)
        await asyncio.sleep(0.2)
        assert len(source.fetch_calls) == calls
        assert not tracker.is_polling
        assert tracker.state.paused
        assert tracker.service_id == "a"
        assert tracker.current_snapshot == SNAP_A
        assert tracker.current_now_next == NOW_NEXT_A

    @pytest.mark.asyncio
    async def test_resume_fetches_once_immediately(self, make_tracker, source):
        tracker = make_tracker(source, interval_seconds=10)
        tracker.on_station_started("a")
        await tracker.wait_for_update(timeout=1)
        tracker.on_station_paused()
        source.snapshots["a"] = SNAP_B
        tracker.on_station_resumed()
        assert not tracker.state.paused
        state = await tracker.wait_for_update(timeout=1)
        assert state.snapshot == SNAP_B
        await asyncio.sleep(0.05)
        assert source.fetch_calls == ["a", "a"]
        assert source.now_next_calls == ["a", "a"]
        assert tracker.is_polling

    @pytest.mark.asyncio
    async def test_resume_continues_polling(self, make_tracker, source):
        tracker = make_tracker(source, interval_seconds=0.1)
        tracker.on_station_started("a")
        await tracker.wait_for_update(timeout=1)
        tracker.on_station_paused()
        tracker.on_station_resumed()
        await tracker.wait_for_update(timeout=1)
        await asyncio.sleep(0.15)
        assert source.fetch_calls == ["a", "a", "a"]

    @pytest.mark.asyncio
    async def test_pause_discards_in_flight_fetch(self, make_tracker):
        source = FakeSource(snapshots={"a": SNAP_A}, delay=0.05)
        tracker = make_tracker(source, interval_seconds=10)
        tracker.on_station_started("a")
        await asyncio.sleep(0.01)
        tracker.on_station_paused()
        await asyncio.sleep(0.1)
        assert tracker.state.paused
        assert tracker.current_snapshot is None
        assert tracker.state.updated_at is None

    @pytest.mark.asyncio
    async def test_pause_and_resume_are_noops_when_idle(self, make_tracker, source):
        tracker = make_tracker(source)
        seen = []
        tracker.subscribe(seen.append)
        tracker.on_station_paused()
        tracker.on_station_resumed()
        assert seen == []
        assert tracker.state == TrackerState()
        assert source.fetch_calls == []

    @pytest.mark.asyncio
    async def test_resume_without_pause_is_noop(self, make_tracker, source):
        tracker = make_tracker(source, interval_seconds=10)
        tracker.on_station_started("a")
        await tracker.wait_for_update(timeout=1)
        generation = tracker.generation
        tracker.on_station_resumed()
        await asyncio.sleep(0.05)
        assert tracker.generation == generation
        assert source.fetch_calls == ["a"]

    @pytest.mark.asyncio
    async def test_stop_while_paused_clears(self, make_tracker, source):
        tracker = make_tracker(source, interval_seconds=10)
        tracker.on_station_started("a")
        await tracker.wait_for_update(timeout=1)
        tracker.on_station_paused()
        tracker.on_station_stopped()
        assert tracker.state == TrackerState()
        tracker.on_station_resumed()
        assert source.fetch_calls == ["a"]

    @pytest.mark.asyncio
    async def test_start_while_paused_tracks_new_station(self, make_tracker, source):
        tracker = make_tracker(source, interval_seconds=10)
        tracker.on_station_started("a")
        await tracker.wait_for_update(timeout=1)
        tracker.on_station_paused()
        tracker.on_station_started("b")
        state = await tracker.wait_for_update(timeout=1)
        assert not state.paused
        assert state.snapshot == SNAP_B

    @pytest.mark.asyncio
    async def test_pause_resume_log_lines(self, make_tracker, source):
        lines = []
        tracker = make_tracker(source, interval_seconds=10, on_log=lines.append)
        tracker.on_station_started("a")
        await tracker.wait_for_update(timeout=1)
        tracker.on_station_paused()
        tracker.on_station_paused()
        tracker.on_station_resumed()
        await tracker.wait_for_update(timeout=1)
        assert lines == [
            "now-playing: tracking a every 10s",
            "now-playing: paused a",
            "now-playing: resumed a",
        ]
