"""
ASGI entry point for the chat backend.

Serves both protocols from one process:
- HTTP requests go to Django (REST API, admin, health check)
- WebSocket connections go to the chat push consumer

WebSocket clients authenticate with an access token passed as ``?token=``
or as the second value of a ``jwt`` subprotocol. Unauthenticated sockets
are closed by the consumer with code 4001.

Usage:
    uvicorn config.asgi:application --host 0.0.0.0 --port 8000
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Initialize Django before importing anything that touches models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from chat.middleware import JWTAuthMiddleware  # noqa: E402
from chat.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        # Origin check, then JWT lookup, then path routing to the consumer
        "websocket": AllowedHostsOriginValidator(
            JWTAuthMiddleware(URLRouter(websocket_urlpatterns))
        ),
    }
)
