"""
DRF exception handler for the application error hierarchy.

Registered as REST_FRAMEWORK["EXCEPTION_HANDLER"]. It extends DRF's
default handler with two mappings:

- BaseApplicationError subclasses → their own status_code and to_dict()
- Transient database failures (OperationalError, InterfaceError) →
  HTTP 503 with error_code STORE_UNAVAILABLE

Anything else falls through to DRF, which returns None for unknown
exceptions and lets Django produce a 500.
"""

from __future__ import annotations

import logging

from django.db import InterfaceError, OperationalError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError, TransientStoreError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    Convert application and store errors into JSON responses.

    Args:
        exc: The raised exception
        context: DRF context dict (view, request, args, kwargs)

    Returns:
        Response or None (None lets Django handle the exception)
    """
    if isinstance(exc, (OperationalError, InterfaceError)):
        view = context.get("view")
        logger.error(
            f"Store unavailable while handling {view.__class__.__name__ if view else 'request'}: {exc}",
            extra={"error": str(exc)},
        )
        exc = TransientStoreError("Message store is temporarily unavailable")

    if isinstance(exc, BaseApplicationError):
        return Response(exc.to_dict(), status=exc.status_code)

    return exception_handler(exc, context)
