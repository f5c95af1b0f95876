"""
Manager for the email-keyed User model.

Display data (name, username, avatar) belongs to Profile, which the
post_save signal creates; profile keys handed to create_user are ignored.
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    PROFILE_FIELDS = ("name", "username", "picture_url")

    def create_user(self, email, password=None, **extra_fields):
        """
        Save a user with a normalized email.

        Without a password the account gets an unusable one and can only
        authenticate with tokens minted elsewhere.
        """
        if not email:
            raise ValueError("An email address is required")

        for field_name in self.PROFILE_FIELDS:
            extra_fields.pop(field_name, None)
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)

        user = self.model(email=self.normalize_email(email), **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Staff superuser; staff see every pending scheduled message."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        for flag in ("is_staff", "is_superuser"):
            if extra_fields[flag] is not True:
                raise ValueError(f"A superuser needs {flag}=True")
        return self.create_user(email, password, **extra_fields)
