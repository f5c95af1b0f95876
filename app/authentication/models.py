"""
Authentication models.

This module defines the user directory models:
- User: Custom user model with email-based authentication (slim, auth-focused)
- Profile: Display identity shown next to messages (OneToOne with User)

It also holds the field validators used at registration. Each validator
raises django.core.exceptions.ValidationError with a single message, so
the registration service can report the first failing rule.

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: AuthService.register and AuthService.search_users
    - signals.py: Auto-create profile on user creation

Security:
    - User passwords hashed with Django's configured hasher
    - Username uniqueness is case-insensitive at the database level
"""

import re

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Lower

from authentication.managers import UserManager
from core.models import BaseModel

DEFAULT_PICTURE_URL = (
    "https://icon-library.com/images/anonymous-avatar-icon/anonymous-avatar-icon-25.jpg"
)

MIN_NAME_LENGTH = 5
MIN_PASSWORD_LENGTH = 8

NAME_FORBIDDEN_CHARS = re.compile(r"[^a-zA-Z0-9_\s]")
USERNAME_FORBIDDEN_CHARS = re.compile(r"[^a-zA-Z0-9_]")
PASSWORD_SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


def _validate_handle(value, label, forbidden):
    if not value or not value.strip():
        raise ValidationError(f"{label} cannot be empty")
    if len(value) < MIN_NAME_LENGTH:
        raise ValidationError(f"{label} must be at least {MIN_NAME_LENGTH} characters long")
    if forbidden.search(value):
        raise ValidationError(f"{label} can only contain letters, numbers, and underscore")
    if value.endswith("_"):
        raise ValidationError(f"{label} cannot end with an underscore")


def validate_display_name(value):
    """Validate a display name: 5+ chars, letters/digits/underscore/spaces."""
    _validate_handle(value, "Name", NAME_FORBIDDEN_CHARS)


def validate_username(value):
    """Validate a username: 5+ chars, letters/digits/underscore, no spaces."""
    _validate_handle(value, "Username", USERNAME_FORBIDDEN_CHARS)


def validate_registration_email(value):
    """Validate that an email is present and looks like an address."""
    if not value or not value.strip():
        raise ValidationError("Email cannot be empty")
    if "@" not in value or "." not in value:
        raise ValidationError("Email must contain @ and .")


def validate_password_strength(value):
    """
    Validate password complexity.

    Requires at least 8 characters with one uppercase letter, one
    lowercase letter, one digit and one special character. Rules are
    checked in that order and the first failure is raised.
    """
    if not value:
        raise ValidationError("Password is required")
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if not re.search(r"[A-Z]", value):
        raise ValidationError("Password must include at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValidationError("Password must include at least one lowercase letter")
    if not re.search(r"[0-9]", value):
        raise ValidationError("Password must include at least one digit")
    if not PASSWORD_SPECIAL_CHARS.search(value):
        raise ValidationError("Password must include at least one special character")


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    This is a slim user model focused on authentication only.
    Display data (name, username, picture) is stored in the Profile model.

    Fields:
        email: Primary identifier, unique, used for login
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email='user@example.com',
            password='Secure_pass1'
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        """Return the user's email as string representation."""
        return self.email

    def get_full_name(self):
        """
        Return the user's display name from profile.

        Returns:
            str: Name from profile, or email if no profile/name set.
        """
        try:
            return self.profile.name or self.email
        except Profile.DoesNotExist:
            return self.email

    def get_short_name(self):
        """Return the username, or the email local part if unset."""
        try:
            return self.profile.username or self.email.split("@")[0]
        except Profile.DoesNotExist:
            return self.email.split("@")[0]


class Profile(BaseModel):
    """
    Public display identity for a user.

    Fields:
        user: OneToOne link to User (also serves as primary key)
        username: Unique handle, case-insensitive
        name: Display name shown in conversations
        picture_url: Avatar URL, defaults to an anonymous avatar

    Note:
        Profile is automatically created via signals when a User is created.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        primary_key=True,
        help_text="User this profile belongs to",
    )

    username = models.CharField(
        max_length=30,
        blank=True,
        db_index=True,
        help_text="Unique username (letters, numbers, underscore)",
    )
    name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Display name",
    )
    picture_url = models.URLField(
        max_length=500,
        default=DEFAULT_PICTURE_URL,
        help_text="Avatar image URL",
    )

    class Meta:
        db_table = "authentication_profile"
        verbose_name = "profile"
        verbose_name_plural = "profiles"
        constraints = [
            models.UniqueConstraint(
                Lower("username"),
                name="unique_username_case_insensitive",
                condition=models.Q(username__gt=""),
            ),
        ]

    def __str__(self):
        """Return username or user email."""
        return self.username or str(self.user)
