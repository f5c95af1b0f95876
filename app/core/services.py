"""
Service layer building blocks.

Services hold the business rules; views translate HTTP in and out, models
hold data. A service method reports an expected failure (bad input, a rule
the caller broke) by returning ServiceResult.failure with an error code,
and lets anything unexpected raise.

    from core.services import BaseService, ServiceResult

    class ConversationService(BaseService):
        @classmethod
        def rename(cls, conversation, user, title) -> ServiceResult[Conversation]:
            if not title.strip():
                return ServiceResult.failure("Title is empty", error_code="TITLE_REQUIRED")
            with cls.atomic():
                ...
            return ServiceResult.success(conversation)

    result = ConversationService.rename(conversation, request.user, title)
    if not result:
        return Response(result.to_response(), status=400)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call.

    Truthy on success. On failure error is meant for humans, error_code
    for clients, and errors optionally maps field names to messages.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        return cls(success=False, error=error, error_code=error_code, errors=errors)

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Failure built from a caught exception.

        Application errors contribute their own message and error_code;
        other exceptions fall back to str(exc) and the upper-cased class name.
        """
        message = getattr(exc, "message", None) or str(exc)
        code = error_code or getattr(exc, "error_code", None) or exc.__class__.__name__.upper()
        return cls(success=False, error=message, error_code=code)

    def to_response(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}

        body: dict[str, Any] = {"success": False, "error": self.error}
        if self.error_code:
            body["error_code"] = self.error_code
        if self.errors:
            body["errors"] = self.errors
        return body

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Stateless base for services; subclasses expose classmethods only.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named <module>.<ServiceClass>."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """Run the block in one database transaction."""
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Log a caught exception with its traceback and turn it into a failure.

            try:
                translated = provider(text, code)
            except ExternalServiceError as e:
                return cls.handle_exception(e, "translation provider", logging.WARNING)
        """
        cls.get_logger().log(log_level, f"{context}: {exc}" if context else str(exc), exc_info=True)
        return ServiceResult.from_exception(exc)

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        VALIDATION_ERROR failure naming every argument that is None or
        blank, or None when all are present.
        """
        missing = {
            name: ["This field is required."]
            for name, value in kwargs.items()
            if value is None or (isinstance(value, str) and not value.strip())
        }
        if not missing:
            return None
        return ServiceResult.failure(
            "Required fields missing", error_code="VALIDATION_ERROR", errors=missing
        )
