"""Route ordering and road-route services."""

from .optimizer import RoutePlanner, optimize_route, order_stops
from .osrm_client import RoadRouteFetcher, straight_line_route

__all__ = [
    "RoutePlanner",
    "optimize_route",
    "order_stops",
    "RoadRouteFetcher",
    "straight_line_route",
]
