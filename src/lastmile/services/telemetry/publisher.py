"""Periodic location sharing for an agent.

Best effort, at most once per tick: a failed publish is logged and surfaced
through ``error``, and the next tick simply supersedes it. There is no retry
queue and no backoff.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol

import httpx

from ...config import settings
from ...errors import PositionError, PublishError
from ...models.domain import PositionSample, utcnow
from .acquirer import PositionAcquirer

logger = logging.getLogger(__name__)


class LocationSink(Protocol):
    async def publish(self, sample: PositionSample, subject_id: str | None) -> None: ...


class HttpLocationSink:
    """Posts samples to the tracking backend's location endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        agent_id: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.backend_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("Tracking backend base URL is not configured.")
        self.agent_id = agent_id
        self.timeout = timeout if timeout is not None else settings.publish_timeout_seconds
        self._transport = transport

    async def publish(self, sample: PositionSample, subject_id: str | None) -> None:
        payload = {
            "latitude": sample.latitude,
            "longitude": sample.longitude,
            "subjectId": subject_id,
            "agentId": self.agent_id,
            "accuracyMeters": sample.accuracy_m,
            "capturedAt": sample.captured_at.isoformat(),
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}/agents/location", json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise PublishError(f"Failed to update location: {e}") from e


class SharingState(str, Enum):
    STOPPED = "STOPPED"
    SHARING = "SHARING"


class TelemetryPublisher:
    """Drives a PositionAcquirer on an interval and pushes each sample to a sink.

    Ticks are not serialized: a slow cycle may still be running when the next
    one starts. Samples carry ``captured_at`` so consumers keep the newest.
    """

    def __init__(
        self,
        acquirer: PositionAcquirer,
        sink: LocationSink,
        *,
        subject_id: str | None = None,
        interval_seconds: float | None = None,
        on_sample: Callable[[PositionSample], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self.acquirer = acquirer
        self.sink = sink
        self.subject_id = subject_id
        self.interval_seconds = interval_seconds if interval_seconds is not None else settings.telemetry_interval_seconds
        self.on_sample = on_sample
        self.on_error = on_error

        self.state = SharingState.STOPPED
        self.last_sample: PositionSample | None = None
        self.last_published_at: datetime | None = None
        self.error: str | None = None

        self._timer: asyncio.Task | None = None
        self._cycles: set[asyncio.Task] = set()

    @property
    def is_sharing(self) -> bool:
        return self.state is SharingState.SHARING

    async def start(self) -> bool:
        if self.is_sharing:
            return False
        self.state = SharingState.SHARING
        self.error = None
        # First tick of the timer runs immediately.
        self._timer = asyncio.create_task(self._run_timer(), name=f"telemetry-timer-{self.subject_id}")
        logger.info(f"Location sharing started for {self.subject_id} every {self.interval_seconds}s")
        return True

    async def stop(self) -> bool:
        if not self.is_sharing:
            return False
        self.state = SharingState.STOPPED
        self.acquirer.cancel()
        pending = [task for task in (self._timer, *self._cycles) if task is not None]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._timer = None
        self._cycles.clear()
        logger.info(f"Location sharing stopped for {self.subject_id}")
        return True

    async def toggle(self) -> bool:
        """Flip sharing on or off; returns the new ``is_sharing``."""
        if self.is_sharing:
            await self.stop()
        else:
            await self.start()
        return self.is_sharing

    async def publish_now(self) -> PositionSample | None:
        """Run one acquisition+publish cycle and return the sample, if any."""
        try:
            sample = await self.acquirer.acquire()
        except PositionError as e:
            self._record_error(e, e.message)
            return None

        self.last_sample = sample
        if self.on_sample is not None:
            self.on_sample(sample)

        try:
            await self.sink.publish(sample, self.subject_id)
        except PublishError as e:
            logger.error(f"Failed to send location for {self.subject_id}: {e}")
            self._record_error(e, "Failed to update location")
            return sample

        self.last_published_at = utcnow()
        self.error = None
        return sample

    def _record_error(self, exc: Exception, message: str) -> None:
        self.error = message
        if self.on_error is not None:
            self.on_error(exc)

    async def _run_timer(self) -> None:
        while True:
            task = asyncio.create_task(self._cycle())
            self._cycles.add(task)
            task.add_done_callback(self._cycles.discard)
            await asyncio.sleep(self.interval_seconds)

    async def _cycle(self) -> None:
        try:
            await self.publish_now()
        except asyncio.CancelledError:
            raise
        except Exception:
            # Keep the timer alive whatever a sink or callback does.
            logger.exception(f"Unexpected error in location cycle for {self.subject_id}")
            self.error = "Unexpected location sharing error"
