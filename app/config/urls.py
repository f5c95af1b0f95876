"""
Root URLconf.

    /                 ReDoc rendered from /schema/
    /admin/           Django admin
    /health/          liveness probe for containers and load balancers
    /api/v1/auth/     accounts, JWT pair and refresh, user search
    /api/v1/chat/     conversations, participants, messages (chat.urls)

WebSocket routes are not here; config.asgi routes /ws/chat/ through
chat.routing.
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Conversations and scheduled delivery"
