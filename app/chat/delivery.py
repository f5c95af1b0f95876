"""
Scheduled message delivery.

DeliveryReconciler periodically promotes pending messages whose delivery
time has passed. Promotion is a conditional UPDATE that clears
scheduled_for only while it is still set, so a message is promoted (and
pushed) at most once even when several ticks, processes or restarts race
on it. The conversation's latest message is updated in the same
transaction; pushes go out after commit through the same FanoutService the
live send path uses.

Hosting:
    - Celery beat runs chat.tasks.deliver_scheduled_messages every
      interval; that task calls run_tick() on the app's reconciler.
    - start()/stop() run the same tick loop in a background thread, used by
      the run_delivery_reconciler management command.

Failure handling:
    Every per-message failure is logged and recorded on the row
    (delivery_attempts, last_delivery_error). The message stays pending and
    the next tick retries it. With max_attempts > 0 a message that has
    failed that many times is left out of further ticks.

Usage:
    from chat.apps import get_reconciler

    result = get_reconciler().run_tick()
    logger.info(f"Delivered {result.delivered} of {result.due} due messages")
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from django.db import close_old_connections, transaction
from django.db.models import F
from django.utils import timezone

from chat.constants import DELIVERY_CONFIG, MESSAGE_CONFIG
from chat.models import Message
from chat.services import ConversationService

if TYPE_CHECKING:
    from datetime import datetime

    from chat.fanout import FanoutService

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    """Counts from one reconciler pass."""

    due: int = 0
    delivered: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class DeliveryReconciler:
    """
    Promotes due scheduled messages and pushes them.

    Args:
        fanout: Push service shared with the live send path
        interval_seconds: Time between ticks in the thread loop
        warmup_seconds: Delay before the first tick after start()
        max_attempts: Failed attempts after which a message is no longer
            retried (0 = retry forever)
    """

    def __init__(
        self,
        fanout: FanoutService,
        interval_seconds: float = DELIVERY_CONFIG.INTERVAL_SECONDS,
        warmup_seconds: float = DELIVERY_CONFIG.WARMUP_SECONDS,
        max_attempts: int = DELIVERY_CONFIG.MAX_ATTEMPTS,
    ):
        self.fanout = fanout
        self.interval_seconds = interval_seconds
        self.warmup_seconds = warmup_seconds
        self.max_attempts = max_attempts
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def due_ids(self, now: datetime) -> list[int]:
        """Ids of due messages still eligible for delivery, oldest first."""
        queryset = Message.objects.due(now)
        if self.max_attempts > 0:
            queryset = queryset.filter(delivery_attempts__lt=self.max_attempts)
        return list(queryset.order_by("scheduled_for", "id").values_list("id", flat=True))

    def run_tick(self, now: datetime | None = None) -> TickResult:
        """
        Deliver every message due at now.

        Each message is processed to completion before the next. A failure
        on one message never stops the tick.

        Args:
            now: Reference time (defaults to timezone.now())

        Returns:
            TickResult with due/delivered/skipped/failed counts
        """
        now = now or timezone.now()
        result = TickResult()

        ids = self.due_ids(now)
        result.due = len(ids)

        for message_id in ids:
            try:
                message = self.promote(message_id, now)
            except Exception as exc:
                result.failed += 1
                logger.exception(
                    f"Delivery of scheduled message {message_id} failed",
                    extra={"message_id": message_id},
                )
                self._record_failure(message_id, exc)
                continue

            if message is None:
                result.skipped += 1
                continue

            result.delivered += 1
            try:
                self.fanout.publish_message(message)
            except Exception as exc:
                # Already committed as delivered; the push is lost
                logger.warning(
                    f"Fan-out of scheduled message {message_id} failed: {exc}",
                    extra={"message_id": message_id, "error": str(exc)},
                )

        if result.due:
            logger.info(
                f"Delivery tick: {result.delivered} delivered, "
                f"{result.skipped} skipped, {result.failed} failed of {result.due} due",
                extra=result.as_dict(),
            )
        return result

    def promote(self, message_id: int, now: datetime) -> Message | None:
        """
        Deliver one due message if nobody has delivered it yet.

        Returns:
            The delivered Message, or None when another worker already
            promoted it

        Raises:
            NotFoundError: The conversation is missing or soft-deleted;
                the promotion is rolled back
        """
        with transaction.atomic():
            promoted = Message.objects.filter(
                pk=message_id,
                scheduled_for__isnull=False,
                scheduled_for__lte=now,
            ).update(scheduled_for=None, updated_at=now)
            if not promoted:
                logger.debug(f"Scheduled message {message_id} already delivered")
                return None

            message = Message.objects.select_related("sender__profile").get(pk=message_id)
            ConversationService.record_delivery(message, now)

        logger.info(
            f"Delivered scheduled message {message_id} "
            f"to conversation {message.conversation_id}",
            extra={"message_id": message_id, "conversation_id": message.conversation_id},
        )
        return message

    def _record_failure(self, message_id: int, exc: Exception) -> None:
        """Count a failed attempt on the row and dead-letter it at the limit."""
        error = f"{exc.__class__.__name__}: {exc}"[: MESSAGE_CONFIG.MAX_DELIVERY_ERROR_LENGTH]
        try:
            Message.objects.filter(pk=message_id).update(
                delivery_attempts=F("delivery_attempts") + 1,
                last_delivery_error=error,
            )
            attempts = (
                Message.objects.filter(pk=message_id)
                .values_list("delivery_attempts", flat=True)
                .first()
            )
        except Exception:
            logger.exception(f"Could not record delivery failure for message {message_id}")
            return

        if self.max_attempts > 0 and attempts == self.max_attempts:
            logger.error(
                f"Scheduled message {message_id} reached {attempts} failed delivery "
                f"attempts and will not be retried",
                extra={"message_id": message_id, "attempts": attempts, "error": error},
            )

    # -------------------------------------------------------------------------
    # Background thread
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the tick loop in a daemon thread."""
        if self.is_running:
            logger.warning("Delivery reconciler already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="chat-delivery-reconciler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            f"Delivery reconciler started (interval={self.interval_seconds}s, "
            f"warmup={self.warmup_seconds}s)"
        )

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to exit and wait for the current tick to finish."""
        if not self.is_running:
            return

        self._stop_event.set()
        self._thread.join(timeout)
        self._thread = None
        logger.info("Delivery reconciler stopped")

    def _run(self) -> None:
        if self._stop_event.wait(self.warmup_seconds):
            return

        while not self._stop_event.is_set():
            close_old_connections()
            try:
                self.run_tick()
            except Exception:
                # Store unavailable for the due query itself; try next tick
                logger.exception("Delivery tick failed")
            finally:
                close_old_connections()

            if self._stop_event.wait(self.interval_seconds):
                break
