"""Route group exports."""

from . import health, locations, routes, stages

__all__ = ["health", "locations", "routes", "stages"]
