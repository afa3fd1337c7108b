"""
knotulus_api.ratelimit.limiter

In-memory fixed-window rate limiter.

Responsibilities:
- Count requests per (caller key, endpoint) in 60-second fixed windows.
- Admit or reject against the policy quota for the caller's role.
- Evict expired windows so abandoned keys do not accumulate.

Windows start at the first request for a key and reset once `now > reset_at`.
All counter access goes through one asyncio.Lock; the map is not shared across
processes and does not survive restarts.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from knotulus_api.observability.logging import get_logger
from knotulus_api.policy import SecurityPolicy

log = get_logger(__name__)

WINDOW_SECONDS = 60.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60.0


@dataclass(slots=True)
class RateWindow:
    count: int
    reset_at: float


@dataclass(frozen=True, slots=True)
class Admission:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int = 0

    def headers(self) -> dict[str, str]:
        reset = datetime.fromtimestamp(self.reset_at, tz=UTC)
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": reset.isoformat().replace("+00:00", "Z"),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class RateLimiter:
    def __init__(
        self,
        policy: SecurityPolicy,
        *,
        window_seconds: float = WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._policy = policy
        self._window = window_seconds
        self._clock = clock
        self._windows: dict[tuple[str, str], RateWindow] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    async def admit(
        self, key: str, endpoint: str, role: str, *, now: float | None = None
    ) -> Admission:
        limit = self._policy.quota(role, endpoint)
        async with self._lock:
            now = self._clock() if now is None else now
            window = self._windows.get((key, endpoint))
            if window is None:
                window = RateWindow(count=0, reset_at=now + self._window)
                self._windows[(key, endpoint)] = window
            elif now > window.reset_at:
                window.count = 0
                window.reset_at = now + self._window

            if window.count >= limit:
                retry_after = max(1, math.ceil(window.reset_at - now))
                log.warning(
                    "rate_limited",
                    key=key,
                    endpoint=endpoint,
                    limit=limit,
                    retry_after=retry_after,
                )
                return Admission(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    reset_at=window.reset_at,
                    retry_after_seconds=retry_after,
                )

            window.count += 1
            return Admission(
                allowed=True,
                limit=limit,
                remaining=max(0, limit - window.count),
                reset_at=window.reset_at,
            )

    async def peek(
        self, key: str, endpoint: str, role: str, *, now: float | None = None
    ) -> Admission:
        """
        Current standing of `key` on `endpoint` without counting a request.
        """

        limit = self._policy.quota(role, endpoint)
        async with self._lock:
            now = self._clock() if now is None else now
            window = self._windows.get((key, endpoint))
            if window is None or now > window.reset_at:
                return Admission(
                    allowed=True, limit=limit, remaining=limit, reset_at=now + self._window
                )
            if window.count >= limit:
                return Admission(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    reset_at=window.reset_at,
                    retry_after_seconds=max(1, math.ceil(window.reset_at - now)),
                )
            return Admission(
                allowed=True,
                limit=limit,
                remaining=limit - window.count,
                reset_at=window.reset_at,
            )

    async def sweep(self, *, now: float | None = None) -> int:
        async with self._lock:
            now = self._clock() if now is None else now
            expired = [k for k, w in self._windows.items() if now > w.reset_at]
            for k in expired:
                del self._windows[k]
        if expired:
            log.debug("rate_limit_sweep", evicted=len(expired), active=len(self._windows))
        return len(expired)

    async def run_sweeper(self, interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> None:
        # Runs until cancelled (app shutdown).
        while True:
            await asyncio.sleep(interval)
            await self.sweep()


# --- Module Notes -----------------------------------------------------------
# For horizontal scaling, swap the dict for an external atomic counter
# (e.g. Redis INCR + EXPIRE keyed by "ratelimit:{key}:{endpoint}").
