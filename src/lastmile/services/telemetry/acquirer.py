"""Tiered position acquisition with last-known-good caching."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Protocol

from ...config import settings
from ...errors import PositionError, PositionErrorKind
from ...models.domain import PositionSample, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AccuracyTier:
    name: str
    high_accuracy: bool
    timeout_seconds: float
    max_age_seconds: float


def fast_tier() -> AccuracyTier:
    return AccuracyTier(
        name="fast",
        high_accuracy=False,
        timeout_seconds=settings.fast_tier_timeout_seconds,
        max_age_seconds=settings.fast_tier_max_age_seconds,
    )


def slow_tier() -> AccuracyTier:
    return AccuracyTier(
        name="slow",
        high_accuracy=False,
        timeout_seconds=settings.slow_tier_timeout_seconds,
        max_age_seconds=settings.slow_tier_max_age_seconds,
    )


class PositionProvider(Protocol):
    """Device positioning capability.

    Implementations may return a cached fix no older than ``tier.max_age_seconds``
    and raise ``PositionError`` for permission or hardware failures. Timeouts
    are enforced by the acquirer.
    """

    async def get_current_position(self, tier: AccuracyTier) -> PositionSample: ...


class PositionAcquirer:
    """Two-tier acquisition: fast tier, then cached sample, then slow tier.

    No retries beyond the slow tier; the caller re-invokes on its next tick.
    """

    def __init__(
        self,
        provider: PositionProvider,
        *,
        fast: AccuracyTier | None = None,
        slow: AccuracyTier | None = None,
        stale_max_age_seconds: float | None = None,
    ) -> None:
        self.provider = provider
        self.fast = fast or fast_tier()
        self.slow = slow or slow_tier()
        self.stale_max_age_seconds = (
            stale_max_age_seconds if stale_max_age_seconds is not None else settings.stale_sample_max_age_seconds
        )
        self.last_good: PositionSample | None = None
        self._inflight: set[asyncio.Task] = set()

    async def acquire(self) -> PositionSample:
        try:
            sample = await self._attempt(self.fast)
        except PositionError as first_error:
            logger.warning(f"Fast-tier position attempt failed: {first_error.message}")
            cached = self._usable_cached()
            if cached is not None:
                logger.info("Using cached position sample")
                return cached
            try:
                sample = await self._attempt(self.slow)
            except PositionError as fallback_error:
                logger.error(f"Slow-tier position attempt also failed: {fallback_error.message}")
                raise
        self.last_good = sample
        return sample

    def cancel(self) -> None:
        """Abort any in-flight provider call."""
        for task in list(self._inflight):
            task.cancel()

    def _usable_cached(self, now: datetime | None = None) -> PositionSample | None:
        if self.last_good is None:
            return None
        if self.last_good.age_seconds(now or utcnow()) > self.stale_max_age_seconds:
            return None
        return self.last_good

    async def _attempt(self, tier: AccuracyTier) -> PositionSample:
        task = asyncio.ensure_future(self.provider.get_current_position(tier))
        self._inflight.add(task)
        try:
            return await asyncio.wait_for(task, timeout=tier.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise PositionError(PositionErrorKind.TIMEOUT) from e
        finally:
            self._inflight.discard(task)


class ReplayPositionProvider:
    """Replays a recorded track, one fix per call; useful for simulations and demos."""

    def __init__(self, track: Iterable[tuple[float, float]], accuracy_m: float = 25.0, loop: bool = False) -> None:
        self._track = list(track)
        if not self._track:
            raise ValueError("Replay track must contain at least one point.")
        self.accuracy_m = accuracy_m
        self.loop = loop
        self._index = 0

    async def get_current_position(self, tier: AccuracyTier) -> PositionSample:
        if self._index >= len(self._track):
            if not self.loop:
                raise PositionError(PositionErrorKind.UNAVAILABLE, "Replay track exhausted.")
            self._index = 0
        latitude, longitude = self._track[self._index]
        self._index += 1
        return PositionSample(latitude=latitude, longitude=longitude, accuracy_m=self.accuracy_m)
