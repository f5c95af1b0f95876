"""
Application exceptions.

Expected failures travel as ServiceResult.failure (core.services). These
classes are for failures that have to unwind: the reconciler raises
NotFoundError inside a transaction to undo a promotion, and
TransientStoreError propagates out of views to core.exception_handler,
which answers 503.

    BaseApplicationError
        ValidationError          400  VALIDATION_ERROR
        NotFoundError            404  NOT_FOUND
        PermissionDeniedError    403  PERMISSION_DENIED
        TransientStoreError      503  STORE_UNAVAILABLE
        ExternalServiceError     502  EXTERNAL_SERVICE_ERROR
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Error with a client-facing code and HTTP status.

    str() renders as "[CODE] message" so log lines and stored delivery
    errors carry the code.
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, error_code={self.error_code!r}, details={self.details!r})"


class ValidationError(BaseApplicationError):
    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Missing resource. Soft-deleted conversations are reported as missing too."""

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class PermissionDeniedError(BaseApplicationError):
    default_error_code: str = "PERMISSION_DENIED"
    status_code: int = 403


class TransientStoreError(BaseApplicationError):
    """
    The database could not be reached.

    A live send reports it as 503 and does not retry. The reconciler logs
    it and leaves the message pending for the next tick.
    """

    default_error_code: str = "STORE_UNAVAILABLE"
    status_code: int = 503


class ExternalServiceError(BaseApplicationError):
    """A translation provider or the push transport failed."""

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    status_code: int = 502
