"""
Celery app. Besides the delivery task it runs beat against the database
schedule from django_celery_beat, so the delivery interval is editable
in the admin.

    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# Reads the CELERY_* settings
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
