"""
Project-wide pytest setup.

Tests run without Redis or a worker: the channel layer and cache live in
memory, Celery runs tasks inline, throttles are off and passwords hash
with MD5. Fixtures belong in each app's tests/conftest.py.
"""

import os
from pathlib import Path

import django
import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Test modules that talk over the channel layer, then ones that only need the database.
E2E_MODULES = {"test_consumers.py", "test_fanout.py"}
UNIT_MODULES = {
    "test_models.py",
    "test_managers.py",
    "test_events.py",
    "test_translation.py",
    "test_exceptions.py",
}
CATEGORY_MARKERS = {"unit", "integration", "e2e"}


def pytest_configure():
    django.setup()

    from django.conf import settings

    from config.celery import app as celery_app

    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}
    settings.CACHES = {"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}}
    settings.SESSION_ENGINE = "django.contrib.sessions.backends.db"

    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = True


def pytest_collection_modifyitems(items):
    """
    Tag each test unit, integration or e2e by the module it lives in,
    unless it already carries one of those markers. Anything not listed
    counts as integration since most tests here touch the database.
    """
    for item in items:
        if CATEGORY_MARKERS & {marker.name for marker in item.iter_markers()}:
            continue

        module = Path(str(item.fspath)).name
        if module in E2E_MODULES:
            item.add_marker(pytest.mark.e2e)
        elif module in UNIT_MODULES:
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
