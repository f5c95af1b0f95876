"""
Abstract base for every persisted model.

created_at is written once on insert. A scheduled message therefore keeps
its submission time after it is delivered.
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    created_at/updated_at timestamps.

    QuerySet.update() bypasses auto_now, so bulk updates that care about
    updated_at must set it themselves.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"
