"""Driver-device location handling.

``LocationThrottle`` keeps the most accurate fix of each window and releases
exactly one fix per window. ``DriverLocationReporter`` pushes released
fixes to the API, best effort. ``acquire_best_fix`` is the map picker's
"best of N within a timeout" acquisition.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Optional
from uuid import UUID

import httpx
import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class LocationFix:
    lat: float
    lng: float
    accuracy_m: float
    timestamp: float = field(default_factory=time.monotonic)

    def better_than(self, other: Optional["LocationFix"]) -> bool:
        """Smaller accuracy radius wins; ties go to the newer fix"""
        if other is None:
            return True
        if self.accuracy_m != other.accuracy_m:
            return self.accuracy_m < other.accuracy_m
        return self.timestamp >= other.timestamp


class GeolocationUnavailable(Exception):
    """No fix arrived before the acquisition timeout"""


class LocationThrottle:
    """Best-accuracy-wins sampling window.

    The first sample opens a window of ``interval`` seconds. Samples inside
    the window only compete for "best". The first sample at or after the
    window end closes it: the window's best fix is released and the new
    sample opens the next window.
    """

    def __init__(self, interval: float = 15.0):
        self.interval = interval
        self._window_start: Optional[float] = None
        self._best: Optional[LocationFix] = None
        self._retry = False

    @property
    def pending(self) -> Optional[LocationFix]:
        return self._best

    def offer(self, fix: LocationFix) -> Optional[LocationFix]:
        if self._window_start is None:
            self._window_start = fix.timestamp
            self._best = fix
            return None

        if self._retry:
            # Previous push failed: retry now with the best fix we hold
            self._retry = False
            if fix.better_than(self._best):
                self._best = fix
            return self._release()

        if fix.timestamp - self._window_start < self.interval:
            if fix.better_than(self._best):
                self._best = fix
            return None

        released = self._best
        self._window_start = fix.timestamp
        self._best = fix
        return released

    def flush(self) -> Optional[LocationFix]:
        """Release whatever the open window holds and close it"""
        released = self._best
        self._window_start = None
        self._best = None
        self._retry = False
        return released

    def requeue(self, fix: LocationFix) -> None:
        """Put back a fix whose push failed; the next sample retries it"""
        if fix.better_than(self._best):
            self._best = fix
        if self._window_start is None:
            self._window_start = fix.timestamp
        self._retry = True

    def _release(self) -> Optional[LocationFix]:
        released = self._best
        self._window_start = None
        self._best = None
        return released


PushFn = Callable[[LocationFix], Awaitable[None]]


class DriverLocationReporter:
    """Feeds device samples through the throttle and pushes released fixes"""

    def __init__(self, push: PushFn, interval: float = 15.0):
        self._push = push
        self.throttle = LocationThrottle(interval)
        self.writes = 0
        self.failures = 0

    async def offer(self, fix: LocationFix) -> bool:
        """Returns ``True`` when this sample triggered a successful push"""
        released = self.throttle.offer(fix)
        if released is None:
            return False
        return await self._send(released)

    async def flush(self) -> bool:
        released = self.throttle.flush()
        if released is None:
            return False
        return await self._send(released)

    async def _send(self, fix: LocationFix) -> bool:
        try:
            await self._push(fix)
        except Exception as e:
            # Best effort: keep the fix and retry on the next sample
            self.failures += 1
            self.throttle.requeue(fix)
            logger.warning("Location push failed", error=str(e))
            return False
        self.writes += 1
        return True


class HttpLocationPusher:
    """Push function for ``DriverLocationReporter`` backed by the REST API"""

    def __init__(self, client: httpx.AsyncClient, order_id: UUID, token: str):
        self._client = client
        self._url = f"/orders/{order_id}/driver-location"
        self._headers = {"Authorization": f"Bearer {token}"}

    async def __call__(self, fix: LocationFix) -> None:
        response = await self._client.put(
            self._url,
            json={"lat": fix.lat, "lng": fix.lng, "accuracy_m": fix.accuracy_m},
            headers=self._headers,
        )
        response.raise_for_status()


async def acquire_best_fix(
    watch: AsyncIterator[LocationFix],
    single_shot: Optional[Awaitable[LocationFix]] = None,
    timeout: float = 8.0,
) -> LocationFix:
    """Race a continuous watch against a single-shot request and a timer.

    The watch runs in the background keeping the most accurate fix. The
    result is committed on the first of: single-shot success, or timeout.
    Either way the best fix seen so far wins, so a better watch fix that
    arrived quickly beats a poor single-shot one.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    best: Optional[LocationFix] = None

    async def consume() -> None:
        nonlocal best
        async for fix in watch:
            if fix.better_than(best):
                best = fix

    watcher = asyncio.create_task(consume())
    shot = asyncio.ensure_future(single_shot) if single_shot is not None else None
    pending = {watcher} if shot is None else {watcher, shot}
    try:
        while pending:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            done, _ = await asyncio.wait(
                pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            if not done:
                break
            pending -= done

            if watcher in done and watcher.exception() is not None:
                logger.info("Location watch failed", error=str(watcher.exception()))

            if shot is not None and shot in done:
                if shot.exception() is None:
                    fix = shot.result()
                    if fix.better_than(best):
                        best = fix
                    break
                logger.info("Single-shot geolocation failed", error=str(shot.exception()))
    finally:
        for task in (watcher, shot):
            if task is not None and not task.done():
                task.cancel()

    if best is None:
        raise GeolocationUnavailable("No location fix before timeout")
    return best
