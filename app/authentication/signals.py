"""
Every user gets a Profile row as soon as the user row exists, so chat
serializers can rely on user.profile for display names and avatars.
"""

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def ensure_profile(sender, instance, created, **kwargs):
    if not created:
        return

    from authentication.models import Profile

    _, made = Profile.objects.get_or_create(user=instance)
    if made:
        logger.debug(f"Blank profile attached to user {instance.pk}")
