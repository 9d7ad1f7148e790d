"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_routing_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.osrm_client import check_health as routing_health_check
    return routing_health_check


@router.get("/health/routing", status_code=status.HTTP_200_OK)
async def health_routing() -> dict:
    """Probe each configured routing endpoint; routing is advisory so this never fails."""
    routing_health_check = _get_routing_health_check()
    results = []
    for endpoint in settings.routing_endpoints:
        try:
            healthy = await routing_health_check(endpoint)
            results.append({"endpoint": endpoint, "healthy": healthy})
        except Exception as e:
            results.append({"endpoint": endpoint, "healthy": False, "error": str(e)})
    return {
        "service": "routing",
        "healthy": any(result["healthy"] for result in results),
        "endpoints": results,
    }
