"""
Chat application configuration.

ChatConfig is the composition root for the real-time side of the app:
ready() builds the FanoutService and the DeliveryReconciler once per
process. Use get_fanout() / get_reconciler() instead of constructing new
instances so that the live send path and the reconciler share one fan-out.
"""

from django.apps import AppConfig, apps
from django.conf import settings


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"

    fanout = None
    reconciler = None

    def ready(self):
        from chat.delivery import DeliveryReconciler
        from chat.fanout import FanoutService

        self.fanout = FanoutService()
        self.reconciler = DeliveryReconciler(
            fanout=self.fanout,
            interval_seconds=settings.CHAT_DELIVERY_INTERVAL_SECONDS,
            warmup_seconds=settings.CHAT_DELIVERY_WARMUP_SECONDS,
            max_attempts=settings.CHAT_DELIVERY_MAX_ATTEMPTS,
        )


def get_fanout():
    """Process-wide FanoutService."""
    return apps.get_app_config("chat").fanout


def get_reconciler():
    """Process-wide DeliveryReconciler."""
    return apps.get_app_config("chat").reconciler
