"""
Celery tasks for chat app.

This module defines async tasks for:
- Scheduled message delivery (periodic, via django_celery_beat)

The periodic schedule is stored in the database: migration
0002_delivery_periodic_task registers deliver_scheduled_messages with the
interval CHAT_DELIVERY_INTERVAL_SECONDS held when migrations ran. Later
changes to that setting reach only the in-process loop; edit the stored
schedule in the admin to change beat. When a worker starts, one extra pass
is queued after the warm-up delay so messages that fell due while no
worker was running are delivered without waiting for beat.

Related files:
    - delivery.py: DeliveryReconciler
    - apps.py: Builds the reconciler used here

Usage:
    from chat.tasks import deliver_scheduled_messages

    deliver_scheduled_messages.delay()
"""

import logging

from celery import shared_task
from celery.signals import worker_ready
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task(ignore_result=False)
def deliver_scheduled_messages() -> dict[str, int]:
    """
    Run one delivery reconciler tick.

    Returns:
        TickResult counts (due, delivered, skipped, failed)
    """
    from chat.apps import get_reconciler

    result = get_reconciler().run_tick()
    return result.as_dict()


@worker_ready.connect
def queue_warmup_delivery(sender=None, **kwargs):
    """Queue a delivery pass shortly after a worker comes up."""
    deliver_scheduled_messages.apply_async(
        countdown=settings.CHAT_DELIVERY_WARMUP_SECONDS,
    )
    logger.info(
        f"Queued warm-up delivery pass in {settings.CHAT_DELIVERY_WARMUP_SECONDS}s"
    )
