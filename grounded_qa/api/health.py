"""Aggregate health and readiness for the query service."""

from typing import Dict

from grounded_qa.services.cache import ResponseCache
from grounded_qa.services.health import HEALTHY, check_cache, check_qdrant
from grounded_qa.services.vector_db import VectorDBService

# Dependencies without which no grounded answer can be produced
REQUIRED_DEPENDENCIES = ("qdrant",)


async def _collect(vector_db: VectorDBService, cache: ResponseCache) -> Dict[str, Dict]:
    return {
        "qdrant": await check_qdrant(vector_db),
        "cache": await check_cache(cache),
    }


def _is_healthy(status: Dict) -> bool:
    return status.get("status") == HEALTHY


async def check_all_dependencies(
    vector_db: VectorDBService,
    cache: ResponseCache,
) -> Dict:
    """
    Check all service dependencies.

    A failing required dependency makes the service unhealthy; any other
    failing dependency marks it degraded.

    Args:
        vector_db: Vector database service.
        cache: Response cache.

    Returns:
        Dictionary with overall status and individual service statuses.
    """
    statuses = await _collect(vector_db, cache)

    failing = [name for name, status in statuses.items() if not _is_healthy(status)]
    if any(name in REQUIRED_DEPENDENCIES for name in failing):
        overall_status = "unhealthy"
    elif failing:
        overall_status = "degraded"
    else:
        overall_status = HEALTHY

    return {"status": overall_status, "services": statuses}


async def check_readiness(
    vector_db: VectorDBService,
    cache: ResponseCache,
) -> Dict:
    """
    Check service readiness.

    Args:
        vector_db: Vector database service.
        cache: Response cache.

    Returns:
        Per-dependency flags and whether every required one is up.
    """
    statuses = await _collect(vector_db, cache)
    flags = {name: _is_healthy(status) for name, status in statuses.items()}
    return {"ready": all(flags[name] for name in REQUIRED_DEPENDENCIES), **flags}
