"""Live agent-position tracking for one subject (parcel or batch)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterable, AsyncIterator, Callable, Protocol

import httpx
from pydantic import ValidationError

from ...config import settings
from ...models.domain import PositionSample, utcnow
from ...schemas.location import LocationMessage
from .broadcast import LocationHub

logger = logging.getLogger(__name__)

SampleListener = Callable[[PositionSample], None]


class ChannelSubscription(AsyncIterable[Any], Protocol):
    def unsubscribe(self) -> None: ...


class LocationChannel(Protocol):
    def subscribe(self, subject_id: str) -> ChannelSubscription: ...


class SnapshotSource(Protocol):
    async def fetch(self, subject_id: str) -> Any | None: ...


class HttpSnapshotSource:
    """Reads the last-known position from the tracking backend."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.backend_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("Tracking backend base URL is not configured.")
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, subject_id: str) -> dict | None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(f"{self.base_url}/tracking/{subject_id}/location")
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()


def normalize_payload(payload: Any, received_at=None) -> PositionSample | None:
    """Coerce a channel payload into a PositionSample; ``None`` if it is unusable."""

    if isinstance(payload, PositionSample):
        return payload
    try:
        message = LocationMessage.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Failed to parse location payload: {e.errors(include_url=False)}")
        return None
    return message.to_sample(received_at=received_at or utcnow())


class TelemetrySubscriber:
    """Snapshot first, then the real-time channel; newest ``captured_at`` wins.

    One subscriber per tracked subject serves any number of local consumers,
    either callbacks (``add_listener``) or async iterators (``samples``).
    """

    def __init__(
        self,
        subject_id: str,
        channel: LocationChannel,
        snapshot_source: SnapshotSource | None = None,
    ) -> None:
        self.subject_id = subject_id
        self.channel = channel
        self.snapshot_source = snapshot_source
        self.latest: PositionSample | None = None
        self.connected = False
        self._listeners: list[SampleListener] = []
        self._fanout = LocationHub()
        self._subscription: ChannelSubscription | None = None
        self._task: asyncio.Task | None = None

    def add_listener(self, listener: SampleListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SampleListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def samples(self) -> AsyncIterator[PositionSample]:
        subscription = self._fanout.subscribe(self.subject_id)
        try:
            async for sample in subscription:
                yield sample
        finally:
            subscription.unsubscribe()

    async def start(self) -> None:
        if self._task is not None:
            return
        if self.snapshot_source is not None:
            try:
                snapshot = await self.snapshot_source.fetch(self.subject_id)
            except httpx.HTTPError as e:
                logger.warning(f"Snapshot fetch failed for {self.subject_id}: {e}")
                snapshot = None
            if snapshot is not None:
                self.ingest(snapshot)
        self._subscription = self.channel.subscribe(self.subject_id)
        self.connected = True
        self._task = asyncio.create_task(self._consume(self._subscription), name=f"telemetry-sub-{self.subject_id}")
        logger.info(f"Subscribed to agent location for {self.subject_id}")

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        self.connected = False
        self._fanout.clear()

    def ingest(self, payload: Any) -> PositionSample | None:
        """Normalise and deliver one payload; returns the sample if it was accepted."""
        sample = normalize_payload(payload)
        if sample is None:
            return None
        if self.latest is not None and sample.captured_at < self.latest.captured_at:
            logger.debug(f"Dropping out-of-order sample for {self.subject_id}")
            return None
        self.latest = sample
        for listener in list(self._listeners):
            try:
                listener(sample)
            except Exception:
                logger.exception("Location listener failed")
        self._fanout.publish(self.subject_id, sample)
        return sample

    async def _consume(self, subscription: ChannelSubscription) -> None:
        async for payload in subscription:
            self.ingest(payload)
