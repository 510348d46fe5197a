from __future__ import annotations

import asyncio
import logging
import math
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional
from urllib.parse import quote

from ..models import (
    SCRAPE_INTERVAL_METRIC,
    InstanceStatus,
    Snapshot,
    parse_instance,
    parse_snapshot,
)
from ..visibility import VisibilitySignal

logger = logging.getLogger(__name__)

FetchJSON = Callable[[str], Awaitable[Any]]
UpdateCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]

MIN_INTERVAL_MS = 1000


class PollerState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    IN_FLIGHT = "in_flight"
    SUSPENDED = "suspended"


def _noop(_: Any) -> None:
    return None


class StatusPoller:
    """Polls the MetricZ status endpoint and emits normalized snapshots.

    - Without ``server_ids``: ``GET {base_url}`` returns every instance.
    - With ``server_ids``: ``GET {base_url}/{id}`` for each id concurrently;
      one failing request fails the whole cycle.

    At most one fetch cycle runs at a time. Polling pauses while the
    visibility signal reports hidden and resumes on the original cadence
    when it becomes visible again.
    """

    def __init__(
        self,
        fetch_json: FetchJSON,
        visibility: VisibilitySignal,
        *,
        base_url: str = "/api/v1/status",
        server_ids: Iterable[str] = (),
        interval_seconds: float = 15.0,
        on_update: Optional[UpdateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        scrape_interval_metric: str = SCRAPE_INTERVAL_METRIC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than zero")
        self.base_url = base_url.rstrip("/")
        self.server_ids = list(server_ids)
        self.scrape_interval_metric = scrape_interval_metric
        self.default_interval_ms = int(interval_seconds * 1000)

        self._fetch_json = fetch_json
        self._visibility = visibility
        self._on_update: UpdateCallback = on_update or _noop
        self._on_error: ErrorCallback = on_error or _noop
        self._clock = clock

        self._interval_ms = self.default_interval_ms
        self._last_fetch_ms: Optional[float] = None
        self._active = not visibility.hidden
        self._started = False
        self._state = PollerState.IDLE

        self._timer: Optional[asyncio.TimerHandle] = None
        self._scheduled_delay_ms: Optional[float] = None
        self._request: Optional[asyncio.Task[None]] = None

        self._unsubscribe = visibility.subscribe(self._on_visibility_change)

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def last_fetch_ms(self) -> Optional[float]:
        return self._last_fetch_ms

    @property
    def active(self) -> bool:
        return self._active

    @property
    def in_flight(self) -> bool:
        return self._state is PollerState.IN_FLIGHT

    @property
    def scheduled_delay_ms(self) -> Optional[float]:
        """Delay of the pending timer, or ``None`` when nothing is scheduled."""
        return self._scheduled_delay_ms

    def start(self) -> None:
        """Start polling. Requires a running event loop."""
        if self._state in (PollerState.SCHEDULED, PollerState.IN_FLIGHT):
            return
        self._started = True
        self._fetch_data()

    def stop(self) -> None:
        """Stop polling and abort any in-flight request."""
        self._started = False
        self._clear_timer()
        self._abort_request()
        self._set_state(PollerState.IDLE)

    async def close(self) -> None:
        """Stop, wait for the aborted cycle to unwind, and drop the visibility subscription."""
        task = self._request
        self.stop()
        self._unsubscribe()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def fetch_once(self) -> Snapshot:
        """Fetch and normalize one snapshot without touching the schedule."""
        if self.server_ids:
            results = await asyncio.gather(
                *(self._fetch_instance(server_id) for server_id in self.server_ids)
            )
            return dict(zip(self.server_ids, results))
        return parse_snapshot(await self._fetch_json(self.base_url))

    async def _fetch_instance(self, server_id: str) -> InstanceStatus:
        url = f"{self.base_url}/{quote(server_id, safe='')}"
        return parse_instance(await self._fetch_json(url))

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _set_state(self, state: PollerState) -> None:
        if state is not self._state:
            logger.debug("Poller state %s -> %s", self._state.value, state.value)
            self._state = state

    def _clear_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._scheduled_delay_ms = None

    def _abort_request(self) -> None:
        task, self._request = self._request, None
        if task is not None and not task.done():
            task.cancel()

    def _schedule_next(self, delay_ms: float) -> None:
        if self._request is not None:
            # The live cycle reschedules itself when it settles.
            return
        self._clear_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay_ms / 1000.0, self._on_timer)
        self._scheduled_delay_ms = delay_ms
        self._set_state(PollerState.SCHEDULED)

    def _on_timer(self) -> None:
        self._timer = None
        self._scheduled_delay_ms = None
        self._fetch_data()

    def _fetch_data(self) -> None:
        if self._state is PollerState.IN_FLIGHT:
            return
        self._clear_timer()
        # A leftover task here would be a stale cycle; it must not report.
        self._abort_request()
        self._set_state(PollerState.IN_FLIGHT)
        loop = asyncio.get_running_loop()
        self._request = loop.create_task(self._run_cycle(), name="metricz-status-poll")

    async def _run_cycle(self) -> None:
        token = asyncio.current_task()
        cancelled = False
        try:
            snapshot = await self.fetch_once()
            self._last_fetch_ms = self._now_ms()
            self._adjust_interval(snapshot)
            self._emit(self._on_update, snapshot)
        except asyncio.CancelledError:
            cancelled = True
            logger.debug("Status poll aborted")
            raise
        except Exception as exc:
            logger.warning("Status poll failed: %s", exc)
            self._emit(self._on_error, exc)
        finally:
            # Only the current cycle may touch the schedule; stop() and hide
            # already detached an aborted one.
            if self._request is token:
                self._request = None
                self._finish_cycle(reschedule=not cancelled)

    def _finish_cycle(self, reschedule: bool) -> None:
        if reschedule and self._active:
            self._schedule_next(self._interval_ms)
        elif self._started and not self._active:
            self._set_state(PollerState.SUSPENDED)
        else:
            self._set_state(PollerState.IDLE)

    def _emit(self, callback: Callable[[Any], None], payload: Any) -> None:
        try:
            callback(payload)
        except Exception:
            logger.exception("Status poller callback %r raised", callback)

    def _adjust_interval(self, snapshot: Snapshot) -> None:
        for instance_id, status in snapshot.items():
            seconds = status.values.get(self.scrape_interval_metric)
            if seconds is None or not math.isfinite(seconds) or seconds <= 0:
                continue
            scaled = seconds * 1000
            if not math.isfinite(scaled):
                continue
            interval_ms = max(MIN_INTERVAL_MS, math.floor(scaled))
            if interval_ms != self._interval_ms:
                logger.info(
                    "Polling interval %d ms -> %d ms (advertised by %s)",
                    self._interval_ms,
                    interval_ms,
                    instance_id,
                )
                self._interval_ms = interval_ms
            return

    def _on_visibility_change(self) -> None:
        if self._visibility.hidden:
            self._active = False
            self._clear_timer()
            self._abort_request()
            if self._started:
                self._set_state(PollerState.SUSPENDED)
            return

        self._active = True
        if not self._started:
            return
        if self._request is not None:
            return

        if self._last_fetch_ms is None:
            self._fetch_data()
            return
        elapsed = self._now_ms() - self._last_fetch_ms
        if elapsed >= self._interval_ms:
            self._fetch_data()
        else:
            self._schedule_next(self._interval_ms - elapsed)
