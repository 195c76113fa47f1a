"""Now-playing tracker: polls the RMS API for the station that is playing and publishes the result."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from auntiebar.config import settings
from auntiebar.models import NowNextInfo, NowPlayingSnapshot, TrackerState

log = logging.getLogger("auntiebar.now_playing")

# Marks a fetch that failed (raised or timed out), as opposed to one that found nothing.
FAILED: Any = object()


class NowPlayingSource(Protocol):
    """None means nothing to report (speech on air, empty schedule); raising means the fetch failed."""

    async def fetch_snapshot(self, service_id: str) -> NowPlayingSnapshot | None: ...

    async def fetch_now_next(self, service_id: str) -> NowNextInfo | None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NowPlayingTracker:
    """Keeps a TrackerState fresh for the active station.

    Idle until on_station_started(service_id); then fetches once straight away and again
    every interval_seconds until on_station_stopped() or another station starts. Each
    activation gets a new generation number and only results from the current generation
    are published, so a slow fetch for a previous station can never overwrite the new one.

    on_station_paused() stops polling but keeps what was published; on_station_resumed()
    fetches once straight away and carries on polling the same station.

    Failed ticks keep the last good values and mark them with stale_since when
    preserve_on_failure is set; otherwise they overwrite with None. A fetch that
    succeeds with nothing to report always clears its value.
    """

    def __init__(
        self,
        source: NowPlayingSource,
        interval_seconds: float | None = None,
        preserve_on_failure: bool | None = None,
        tick_timeout: float | None = None,
        on_log: Callable[[str], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._source = source
        self.interval_seconds = interval_seconds if interval_seconds is not None else settings.poll_interval_seconds
        self.preserve_on_failure = (
            preserve_on_failure if preserve_on_failure is not None else settings.preserve_on_failure
        )
        self.tick_timeout = tick_timeout
        self._on_log = on_log
        self._clock = clock
        self._state = TrackerState()
        self._generation = 0
        self._task: asyncio.Task | None = None
        self._stop: asyncio.Event | None = None
        self._listeners: list[Callable[[TrackerState], None]] = []
        self._updated = asyncio.Event()

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def current_snapshot(self) -> NowPlayingSnapshot | None:
        return self._state.snapshot

    @property
    def current_now_next(self) -> NowNextInfo | None:
        return self._state.now_next

    @property
    def service_id(self) -> str | None:
        return self._state.service_id

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: Callable[[TrackerState], None]) -> Callable[[], None]:
        """Call callback with the new state on every change. Returns unsubscribe fn."""
        self._listeners.append(callback)

        def unsub() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsub

    async def wait_for_update(self, timeout: float | None = None) -> TrackerState:
        """Wait until the next publish (or clear) and return the state at that point."""
        event = self._updated
        await asyncio.wait_for(event.wait(), timeout=timeout)
        return self._state

    def on_station_started(self, service_id: str) -> None:
        """Playback of service_id began. Must be called from the event loop."""
        self._cancel_poll()
        self._generation += 1
        self._set_state(TrackerState(service_id=service_id))
        self._start_poll(service_id)
        self._log(f"now-playing: tracking {service_id} every {self.interval_seconds:g}s")

    def on_station_stopped(self) -> None:
        """Playback stopped: cancel polling and clear published values."""
        was = self._state.service_id
        self._cancel_poll()
        self._generation += 1
        if was is not None:
            self._set_state(TrackerState())
            self._log(f"now-playing: stopped tracking {was}")

    def on_station_paused(self) -> None:
        """Playback paused: cancel polling, keep the published values. No-op when idle or already paused."""
        state = self._state
        if state.service_id is None or state.paused:
            return
        self._cancel_poll()
        self._generation += 1
        self._set_state(state.model_copy(update={"paused": True}))
        self._log(f"now-playing: paused {state.service_id}")

    def on_station_resumed(self) -> None:
        """Playback resumed: fetch once straight away, then poll as before. No-op unless paused."""
        state = self._state
        if state.service_id is None or not state.paused:
            return
        self._generation += 1
        self._set_state(state.model_copy(update={"paused": False}))
        self._start_poll(state.service_id)
        self._log(f"now-playing: resumed {state.service_id}")

    async def aclose(self) -> None:
        """Stop and wait for the poll task to finish (app shutdown)."""
        task = self._task
        self.on_station_stopped()
        if task and not task.done():
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _start_poll(self, service_id: str) -> None:
        stop = asyncio.Event()
        self._stop = stop
        self._task = asyncio.create_task(self._poll(service_id, self._generation, stop))

    def _cancel_poll(self) -> None:
        if self._stop is not None:
            self._stop.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._stop = None
        self._task = None

    async def _poll(self, service_id: str, generation: int, stop: asyncio.Event) -> None:
        await self._tick(service_id, generation)
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                if stop.is_set():
                    break
                await self._tick(service_id, generation)

    async def _fetch(self, service_id: str) -> tuple[Any, Any]:
        results = await asyncio.gather(
            self._source.fetch_snapshot(service_id),
            self._source.fetch_now_next(service_id),
            return_exceptions=True,
        )
        out = []
        for r in results:
            if isinstance(r, BaseException):
                if isinstance(r, asyncio.CancelledError):
                    raise r
                log.warning("now-playing fetch for %s raised: %r", service_id, r)
                r = FAILED
            out.append(r)
        return out[0], out[1]

    async def _tick(self, service_id: str, generation: int) -> None:
        try:
            snapshot, now_next = await asyncio.wait_for(self._fetch(service_id), timeout=self.tick_timeout)
        except asyncio.TimeoutError:
            log.debug("now-playing tick for %s timed out", service_id)
            snapshot, now_next = FAILED, FAILED
        self._publish(generation, service_id, snapshot, now_next)

    def _publish(self, generation: int, service_id: str, snapshot: Any, now_next: Any) -> bool:
        """Publish one tick's results. Either value may be FAILED."""
        if generation != self._generation or self._state.service_id != service_id:
            log.debug("discarding result for %s (generation %d is stale)", service_id, generation)
            return False
        prev = self._state
        now = self._clock()
        kept = False
        if snapshot is FAILED:
            snapshot = prev.snapshot if self.preserve_on_failure else None
            kept = snapshot is not None
        if now_next is FAILED:
            now_next = prev.now_next if self.preserve_on_failure else None
            kept = kept or now_next is not None
        self._set_state(TrackerState(
            service_id=service_id,
            snapshot=snapshot,
            now_next=now_next,
            updated_at=now,
            stale_since=(prev.stale_since or now) if kept else None,
        ))
        return True

    def _set_state(self, state: TrackerState) -> None:
        self._state = state
        event, self._updated = self._updated, asyncio.Event()
        event.set()
        for fn in list(self._listeners):
            try:
                fn(state)
            except Exception:
                log.warning("now-playing listener failed", exc_info=True)

    def _log(self, message: str) -> None:
        if self._on_log is not None:
            self._on_log(message)
