"""
Run the scheduled message reconciler in the foreground.

Alternative to Celery beat for deployments without a worker: starts the
app's DeliveryReconciler thread and blocks until interrupted.

Usage:
    python manage.py run_delivery_reconciler
    python manage.py run_delivery_reconciler --once
"""

import threading

from django.core.management.base import BaseCommand

from chat.apps import get_reconciler


class Command(BaseCommand):
    help = "Deliver scheduled chat messages on a fixed interval"

    def add_arguments(self, parser):
        parser.add_argument(
            "--once",
            action="store_true",
            help="Run a single tick and exit",
        )

    def handle(self, *args, **options):
        reconciler = get_reconciler()

        if options["once"]:
            result = reconciler.run_tick()
            self.stdout.write(
                self.style.SUCCESS(
                    f"Delivered {result.delivered} of {result.due} due messages "
                    f"({result.skipped} skipped, {result.failed} failed)"
                )
            )
            return

        reconciler.start()
        self.stdout.write(
            f"Delivery reconciler running every {reconciler.interval_seconds}s. "
            "Press Ctrl+C to stop."
        )
        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            pass
        finally:
            reconciler.stop(timeout=reconciler.interval_seconds)
            self.stdout.write(self.style.SUCCESS("Delivery reconciler stopped"))
