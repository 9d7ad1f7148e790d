import asyncio

import httpx
import pytest

from src.lastmile.models.domain import Coordinates, CoordinateSource, Stop, StopKind
from src.lastmile.services.geocoding import (
    CoordinateResolver,
    Geocoder,
    city_centroid,
    synthetic_offset,
    synthetic_slot,
)


class DummyGeocoder:
    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    async def geocode(self, address, city=None, pincode=None):
        self.calls.append(address)
        return self.answers.get(address)


def _nominatim(counter: list, results):
    def handler(request: httpx.Request) -> httpx.Response:
        counter.append(dict(request.url.params))
        return httpx.Response(200, json=results)

    return httpx.MockTransport(handler)


def test_build_query_joins_parts_and_country():
    assert Geocoder.build_query("12 Anna Salai", "Chennai", "600002") == "12 Anna Salai, Chennai, 600002, India"
    assert Geocoder.build_query(None, "  ", None) is None


def test_geocode_parses_first_result_and_caches_it():
    requests = []
    geocoder = Geocoder(
        base_url="http://nominatim.test",
        transport=_nominatim(requests, [{"lat": "13.0604", "lon": "80.2496"}, {"lat": "0", "lon": "0"}]),
    )

    async def scenario():
        first = await geocoder.geocode("12 Anna Salai", "Chennai")
        second = await geocoder.geocode("12 Anna Salai", "Chennai")
        return first, second

    first, second = asyncio.run(scenario())

    assert first == Coordinates(13.0604, 80.2496)
    assert second == first
    assert len(requests) == 1
    assert requests[0]["format"] == "json"
    assert requests[0]["limit"] == "1"
    assert requests[0]["countrycodes"] == "in"


def test_empty_result_is_cached_as_miss():
    requests = []
    geocoder = Geocoder(base_url="http://nominatim.test", transport=_nominatim(requests, []))

    async def scenario():
        return [await geocoder.geocode("Nowhere Lane"), await geocoder.geocode("Nowhere Lane")]

    assert asyncio.run(scenario()) == [None, None]
    assert len(requests) == 1


def test_transport_errors_are_not_cached():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json=[{"lat": "13.1", "lon": "80.2"}])

    geocoder = Geocoder(base_url="http://nominatim.test", transport=httpx.MockTransport(handler))

    async def scenario():
        return [await geocoder.geocode("Mount Road"), await geocoder.geocode("Mount Road")]

    assert asyncio.run(scenario()) == [None, Coordinates(13.1, 80.2)]
    assert len(attempts) == 2


def test_synthetic_offset_alternates_around_anchor():
    anchor = Coordinates(13.0, 80.0)

    first = synthetic_offset(anchor, 0)
    second = synthetic_offset(anchor, 1)

    assert first.latitude == pytest.approx(12.985)
    assert first.longitude == pytest.approx(80.01)
    assert second.latitude == pytest.approx(12.995)
    assert second.longitude == pytest.approx(79.99)


def test_city_centroid_falls_back_to_default_hub():
    assert city_centroid("Bengaluru ") == Coordinates(12.9716, 77.5946)
    assert city_centroid("Atlantis") == Coordinates(13.0827, 80.2707)
    assert city_centroid(None) == Coordinates(13.0827, 80.2707)


def test_resolver_prefers_reported_then_geocoded_then_synthetic():
    geocoder = DummyGeocoder({"Known Street": Coordinates(13.05, 80.22)})
    resolver = CoordinateResolver(geocoder)
    hub = Coordinates(13.0, 80.0)
    stops = [
        Stop(id="R", kind=StopKind.DELIVERY, latitude=13.2, longitude=80.3),
        Stop(id="G", kind=StopKind.DELIVERY, address="Known Street", city="Chennai"),
        Stop(id="S", kind=StopKind.DELIVERY, address="Unknown Street", city="Chennai"),
    ]

    resolved = asyncio.run(resolver.resolve(stops, hub=hub))

    assert [stop.id for stop in resolved] == ["R", "G", "S"]
    assert resolved[0] is stops[0]
    assert resolved[1].coordinate_source is CoordinateSource.GEOCODED
    assert resolved[1].as_tuple() == (13.05, 80.22)
    assert resolved[2].coordinate_source is CoordinateSource.SYNTHETIC
    assert resolved[2].as_tuple() == synthetic_offset(hub, synthetic_slot("S")).as_tuple()
    assert geocoder.calls == ["Known Street", "Unknown Street"]
    assert all(stop.has_coordinates for stop in resolved)


def test_resolver_uses_city_centroid_without_hub():
    resolver = CoordinateResolver(DummyGeocoder())

    (placed,) = asyncio.run(resolver.resolve([Stop(id="S", kind=StopKind.PICKUP, city="Mumbai")]))

    assert placed.as_tuple() == synthetic_offset(Coordinates(19.0760, 72.8777), synthetic_slot("S")).as_tuple()


def test_synthetic_placement_is_stable_when_other_stops_drop_out():
    resolver = CoordinateResolver(DummyGeocoder())
    hub = Coordinates(13.0, 80.0)
    stops = [
        Stop(id="GRP-1-D1", kind=StopKind.DELIVERY, address="Lost Lane"),
        Stop(id="GRP-1-D2", kind=StopKind.DELIVERY, address="Hidden Road"),
        Stop(id="GRP-1-D3", kind=StopKind.DELIVERY, address="Vague Street"),
    ]

    before = {stop.id: stop.as_tuple() for stop in asyncio.run(resolver.resolve(stops, hub=hub))}
    after = {stop.id: stop.as_tuple() for stop in asyncio.run(resolver.resolve(stops[1:], hub=hub))}

    assert after["GRP-1-D2"] == before["GRP-1-D2"]
    assert after["GRP-1-D3"] == before["GRP-1-D3"]


def test_synthetic_slot_is_deterministic():
    assert synthetic_slot("GRP-1-D1") == synthetic_slot("GRP-1-D1")
    assert 0 <= synthetic_slot("anything") < 4
