import asyncio
from datetime import timedelta

import pytest

from src.lastmile.errors import PositionError, PositionErrorKind
from src.lastmile.models.domain import PositionSample, utcnow
from src.lastmile.services.telemetry.acquirer import AccuracyTier, PositionAcquirer, ReplayPositionProvider

HANG = object()

FAST = AccuracyTier(name="fast", high_accuracy=False, timeout_seconds=0.05, max_age_seconds=120)
SLOW = AccuracyTier(name="slow", high_accuracy=False, timeout_seconds=0.2, max_age_seconds=300)


class ScriptedProvider:
    """Returns, raises or hangs according to a script, one entry per call."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls: list[str] = []

    async def get_current_position(self, tier):
        self.calls.append(tier.name)
        step = self.script.pop(0)
        if step is HANG:
            await asyncio.sleep(3600)
        if isinstance(step, Exception):
            raise step
        return step


def _sample(lat=13.0, lon=80.27, age_seconds: float = 0.0) -> PositionSample:
    return PositionSample(latitude=lat, longitude=lon, accuracy_m=20.0, captured_at=utcnow() - timedelta(seconds=age_seconds))


def _acquirer(provider, stale_max_age_seconds=120.0) -> PositionAcquirer:
    return PositionAcquirer(provider, fast=FAST, slow=SLOW, stale_max_age_seconds=stale_max_age_seconds)


def test_fast_tier_success_is_cached_as_last_good():
    sample = _sample()
    provider = ScriptedProvider(sample)
    acquirer = _acquirer(provider)

    result = asyncio.run(acquirer.acquire())

    assert result == sample
    assert acquirer.last_good == sample
    assert provider.calls == ["fast"]


def test_fast_timeout_with_fresh_cache_returns_cached_without_slow_tier():
    cached = _sample(age_seconds=30)
    provider = ScriptedProvider(HANG)
    acquirer = _acquirer(provider)
    acquirer.last_good = cached

    result = asyncio.run(acquirer.acquire())

    assert result is cached
    assert provider.calls == ["fast"]


def test_stale_cache_falls_through_to_slow_tier():
    fresh = _sample(lat=13.1)
    provider = ScriptedProvider(HANG, fresh)
    acquirer = _acquirer(provider)
    acquirer.last_good = _sample(age_seconds=600)

    result = asyncio.run(acquirer.acquire())

    assert result == fresh
    assert acquirer.last_good == fresh
    assert provider.calls == ["fast", "slow"]


def test_both_tiers_failing_raises_last_error():
    provider = ScriptedProvider(
        PositionError(PositionErrorKind.UNAVAILABLE),
        PositionError(PositionErrorKind.PERMISSION_DENIED),
    )
    acquirer = _acquirer(provider)

    with pytest.raises(PositionError) as excinfo:
        asyncio.run(acquirer.acquire())

    assert excinfo.value.kind is PositionErrorKind.PERMISSION_DENIED
    assert "permission denied" in excinfo.value.message.lower()
    assert provider.calls == ["fast", "slow"]


def test_slow_tier_timeout_maps_to_timeout_error():
    provider = ScriptedProvider(HANG, HANG)
    acquirer = _acquirer(provider)

    with pytest.raises(PositionError) as excinfo:
        asyncio.run(acquirer.acquire())

    assert excinfo.value.kind is PositionErrorKind.TIMEOUT


def test_cancel_aborts_inflight_provider_call():
    provider = ScriptedProvider(HANG)
    acquirer = PositionAcquirer(
        provider,
        fast=AccuracyTier(name="fast", high_accuracy=False, timeout_seconds=60, max_age_seconds=0),
        slow=SLOW,
    )

    async def scenario():
        task = asyncio.create_task(acquirer.acquire())
        await asyncio.sleep(0.01)
        acquirer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert provider.calls == ["fast"]


def test_replay_provider_walks_the_track_then_reports_unavailable():
    provider = ReplayPositionProvider([(13.0, 80.0), (13.1, 80.1)])

    async def scenario():
        first = await provider.get_current_position(FAST)
        second = await provider.get_current_position(FAST)
        with pytest.raises(PositionError) as excinfo:
            await provider.get_current_position(FAST)
        return first, second, excinfo.value

    first, second, error = asyncio.run(scenario())

    assert (first.latitude, first.longitude) == (13.0, 80.0)
    assert (second.latitude, second.longitude) == (13.1, 80.1)
    assert error.kind is PositionErrorKind.UNAVAILABLE
