"""
Infrastructure endpoints that sit outside the chat API.
"""

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _database_ok() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except Exception:
        logger.exception("Health check: database unreachable")
        return False
    return True


def _cache_ok() -> bool:
    try:
        cache.set("health_check", "ok", timeout=1)
        return cache.get("health_check") == "ok"
    except Exception:
        logger.warning("Health check: cache unreachable", exc_info=True)
        return False


def _channel_layer_ok() -> bool:
    layer = get_channel_layer()
    if layer is None:
        return False
    try:
        async_to_sync(layer.group_send)("health_check", {"type": "health.ping"})
    except Exception:
        logger.warning("Health check: channel layer unreachable", exc_info=True)
        return False
    return True


def health_check(request):
    """
    Report the state of each backing service.

    Only the database decides the status code (200 or 503). Cache and
    channel layer outages show up as "disconnected" but leave the service
    healthy, since pushes are best effort and the cache ignores errors.
    """
    database = _database_ok()
    body = {
        "status": "healthy" if database else "unhealthy",
        "database": "connected" if database else "disconnected",
        "cache": "connected" if _cache_ok() else "disconnected",
        "channel_layer": "connected" if _channel_layer_ok() else "disconnected",
    }
    return JsonResponse(body, status=200 if database else 503)
