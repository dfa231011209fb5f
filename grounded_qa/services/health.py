"""Connectivity probes for the vector index and the response cache."""

import time
from typing import Any, Awaitable, Callable, Dict, Tuple

from grounded_qa.services.cache import RedisResponseCache, ResponseCache
from grounded_qa.services.vector_db import VectorDBService

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


async def _probe(call: Callable[[], Awaitable[Any]], **labels: Any) -> Tuple[Dict[str, Any], Any]:
    """
    Time one round trip to a dependency.

    Args:
        call: Coroutine function performing the round trip.
        labels: Extra fields copied into the status.

    Returns:
        Tuple of (status dictionary, value returned by call or None).
    """
    start_time = time.time()
    try:
        value = await call()
    except Exception as e:
        return {"status": UNHEALTHY, **labels, "error": str(e), "latency_ms": 0}, None

    latency_ms = round((time.time() - start_time) * 1000, 2)
    return {"status": HEALTHY, **labels, "latency_ms": latency_ms}, value


def _not_connected(**labels: Any) -> Dict[str, Any]:
    return {"status": UNHEALTHY, **labels, "error": "Not connected", "latency_ms": 0}


async def check_qdrant(vector_db: VectorDBService) -> Dict[str, Any]:
    """
    Check that the Qdrant collection listing answers.

    Args:
        vector_db: VectorDBService instance.

    Returns:
        Health status dictionary with the number of collections.
    """
    if not vector_db.client:
        return _not_connected()

    status, collections = await _probe(vector_db.client.get_collections)
    if collections is not None:
        status["collections"] = len(collections.collections)
    return status


async def check_cache(cache: ResponseCache) -> Dict[str, Any]:
    """
    Check the response cache backend.

    The in-process backend has nothing to reach and is always healthy;
    Redis is pinged.

    Args:
        cache: Response cache in use.

    Returns:
        Health status dictionary naming the backend.
    """
    if not isinstance(cache, RedisResponseCache):
        return {"status": HEALTHY, "backend": "memory", "latency_ms": 0}
    if not cache.client:
        return _not_connected(backend="redis")

    status, _ = await _probe(cache.client.ping, backend="redis")
    return status
