import asyncio

import httpx
import pytest

from src.lastmile.services.routing.osrm_client import (
    RoadRouteFetcher,
    check_health,
    decode_polyline,
    parse_route_response,
    straight_line_route,
)

PRIMARY = "http://primary.test"
FALLBACK = "http://fallback.test"

A = (13.00, 80.27)
B = (13.01, 80.28)


def _route_body(coordinates=None, distance=2543.0, duration=412.0) -> dict:
    return {
        "code": "Ok",
        "routes": [
            {
                "distance": distance,
                "duration": duration,
                "geometry": {
                    "type": "LineString",
                    "coordinates": coordinates if coordinates is not None else [[80.27, 13.00], [80.275, 13.005], [80.28, 13.01]],
                },
            }
        ],
    }


def _fetcher(handler, timeout=0.05) -> RoadRouteFetcher:
    return RoadRouteFetcher(endpoints=[PRIMARY, FALLBACK], timeout=timeout, transport=httpx.MockTransport(handler))


def test_primary_timeout_falls_back_to_second_endpoint():
    calls = []

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.host)
        if request.url.host == "primary.test":
            await asyncio.sleep(5)
        return httpx.Response(200, json=_route_body())

    route = asyncio.run(_fetcher(handler).fetch(A, B))

    assert calls == ["primary.test", "fallback.test"]
    assert route is not None
    assert route.source_endpoint == FALLBACK
    assert route.polyline[0] == (13.00, 80.27)
    assert route.polyline[-1] == (13.01, 80.28)
    assert route.distance_km == 2.54
    assert route.duration_minutes == 7
    assert route.duration_text == "7 mins"
    assert route.is_fallback is False


def test_request_uses_lon_lat_order_and_geojson_geometry():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=_route_body())

    asyncio.run(_fetcher(handler).fetch(A, B))

    assert seen["path"] == "/route/v1/driving/80.27,13.0;80.28,13.01"
    assert seen["params"] == {"overview": "full", "geometries": "geojson"}


def test_all_endpoints_failing_returns_none():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.host)
        if request.url.host == "primary.test":
            return httpx.Response(502, text="bad gateway")
        raise httpx.ConnectError("connection refused", request=request)

    assert asyncio.run(_fetcher(handler).fetch(A, B)) is None
    assert calls == ["primary.test", "fallback.test"]


def test_empty_geometry_is_not_a_valid_answer():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "primary.test":
            return httpx.Response(200, json=_route_body(coordinates=[]))
        return httpx.Response(200, json={"code": "NoRoute", "message": "Impossible route", "routes": []})

    assert asyncio.run(_fetcher(handler).fetch(A, B)) is None


def test_parse_accepts_encoded_polyline_geometry():
    body = _route_body()
    body["routes"][0]["geometry"] = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"

    route = parse_route_response(body)

    assert route.polyline == ((38.5, -120.2), (40.7, -120.95), (43.252, -126.453))


def test_decode_polyline_reference_example():
    assert decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@") == [
        (38.5, -120.2),
        (40.7, -120.95),
        (43.252, -126.453),
    ]


def test_long_durations_are_formatted_in_hours():
    route = parse_route_response(_route_body(duration=75 * 60))

    assert route.duration_minutes == 75
    assert route.duration_text == "1h 15m"


def test_straight_line_route_is_marked_as_fallback():
    route = straight_line_route(A, B)

    assert route.is_fallback is True
    assert route.polyline == (A, B)
    assert route.distance_km == pytest.approx(1.55, abs=0.01)
    assert route.duration_minutes >= 1


def test_fetcher_requires_an_endpoint():
    with pytest.raises(ValueError):
        RoadRouteFetcher(endpoints=[])


def test_check_health_reports_reachable_endpoint():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=_route_body()))

    assert asyncio.run(check_health(PRIMARY, transport=transport)) is True
