"""
Abstract model mixins. List them before BaseModel in the bases.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteMixin(models.Model):
    """
    Mark rows deleted instead of removing them.

    Related rows (messages, participants) stay in place. The default
    manager still returns deleted rows; callers filter on is_deleted where
    a deleted row must count as missing.
    """

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this record has been soft deleted",
    )
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp when this record was soft deleted",
    )

    class Meta:
        abstract = True

    def _set_deleted(self, deleted: bool) -> None:
        self.is_deleted = deleted
        self.deleted_at = timezone.now() if deleted else None
        self.save(update_fields=["is_deleted", "deleted_at", "updated_at"])

    def soft_delete(self) -> None:
        """Idempotent; a repeat call keeps the first deleted_at."""
        if not self.is_deleted:
            self._set_deleted(True)

    def restore(self) -> None:
        if self.is_deleted:
            self._set_deleted(False)
