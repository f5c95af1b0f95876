"""
WSGI entry point for the chat backend.

Serves the REST API and admin only. WebSocket push needs the ASGI
application in config/asgi.py.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
