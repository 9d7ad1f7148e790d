import asyncio

from src.lastmile.models.domain import Coordinates, PositionSample, RoadRoute, Stop, StopKind
from src.lastmile.services.geocoding import CoordinateResolver
from src.lastmile.services.tracking.session import AgentSession


class SteppingAcquirer:
    def __init__(self, *positions):
        self.positions = list(positions)

    async def acquire(self):
        lat, lon = self.positions.pop(0) if len(self.positions) > 1 else self.positions[0]
        return PositionSample(latitude=lat, longitude=lon)

    def cancel(self):
        pass


class NullSink:
    def __init__(self):
        self.published = []

    async def publish(self, sample, subject_id):
        self.published.append(subject_id)


class NoGeocoder:
    async def geocode(self, address, city=None, pincode=None):
        return None


class RecordingRoutes:
    def __init__(self):
        self.requests = []

    async def fetch(self, a, b):
        self.requests.append((a, b))
        return RoadRoute(polyline=(a, b), distance_km=1.0, duration_minutes=3, duration_text="3 mins")


STOPS = [
    Stop(id="D2", kind=StopKind.DELIVERY, latitude=13.08, longitude=80.30),
    Stop(id="D1", kind=StopKind.DELIVERY, latitude=13.01, longitude=80.271),
]


def _session(acquirer, routes=None, interval=10):
    return AgentSession(
        "agent-2",
        "GRP-1",
        acquirer,
        NullSink(),
        hub=Coordinates(13.0, 80.27),
        resolver=CoordinateResolver(NoGeocoder()),
        road_routes=routes,
        interval_seconds=interval,
    )


def test_session_plans_from_first_fix_and_fetches_road_route():
    routes = RecordingRoutes()
    session = _session(SteppingAcquirer((13.0, 80.27)), routes=routes)

    async def scenario():
        await session.set_stops(STOPS)
        assert session.plan is None
        await session.start()
        await asyncio.sleep(0.05)
        await session.stop()

    asyncio.run(scenario())

    assert [stop.id for stop in session.plan.ordered_pending_stops] == ["D1", "D2"]
    assert session.plan.agent_id == "agent-2"
    assert routes.requests == [((13.0, 80.27), (13.01, 80.271))]
    assert session.road_route.duration_text == "3 mins"
    assert session.publisher.sink.published == ["GRP-1"]


def test_completing_a_stop_advances_the_plan():
    session = _session(SteppingAcquirer((13.0, 80.27)))

    async def scenario():
        await session.start()
        await asyncio.sleep(0.02)
        await session.set_stops(STOPS)
        first = session.plan.next_stop.id
        await session.set_stops([STOPS[0], Stop(id="D1", kind=StopKind.DELIVERY, latitude=13.01, longitude=80.271, completed=True)])
        await session.stop()
        return first

    assert asyncio.run(scenario()) == "D1"
    assert session.plan.next_stop.id == "D2"
    assert session.road_route is None


def test_unlocated_stops_are_placed_before_planning():
    session = _session(SteppingAcquirer((13.0, 80.27)))

    async def scenario():
        await session.start()
        await asyncio.sleep(0.02)
        plan = await session.set_stops([Stop(id="X", kind=StopKind.DELIVERY, address="Somewhere")])
        await session.stop()
        return plan

    plan = asyncio.run(scenario())

    assert plan.next_stop.id == "X"
    assert plan.next_stop.has_coordinates
