"""
Add the Celery Beat schedule for scheduled message delivery.

The interval is taken from CHAT_DELIVERY_INTERVAL_SECONDS when the
migration runs. Afterwards the stored schedule is what beat uses; change
it from the admin.
"""

from django.conf import settings
from django.db import migrations

from chat.constants import DELIVERY_CONFIG


def create_periodic_task(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=settings.CHAT_DELIVERY_INTERVAL_SECONDS,
        period="seconds",
    )

    PeriodicTask.objects.get_or_create(
        name=DELIVERY_CONFIG.PERIODIC_TASK_NAME,
        defaults={
            "task": DELIVERY_CONFIG.TASK_PATH,
            "interval": schedule,
            "enabled": True,
            "description": (
                "Promotes scheduled messages whose delivery time has passed "
                "and pushes them to connected participants."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the delivery periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name=DELIVERY_CONFIG.PERIODIC_TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("chat", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
