"""
Authentication services.

This module provides the AuthService class for registration, token
issuance, and user search.

Related files:
    - models.py: User, Profile, registration field validators
    - signals.py: Profile auto-creation
    - views.py: RegisterView, UserSearchView

Registration rules:
    Fields are checked in the order name, username, email, password, and
    only the first failing rule is reported. A duplicate email or username
    (case-insensitive) fails with error_code USER_EXISTS.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.db.models import Q
from rest_framework_simplejwt.tokens import RefreshToken

from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from authentication.models import User


class AuthService(BaseService):
    """
    Registration and directory business logic.

    Usage:
        from authentication.services import AuthService

        result = AuthService.register(
            name="Jane Doe",
            username="jane_doe",
            email="jane@example.com",
            password="Secure_pass1!",
        )
        if result.success:
            user = result.data

        users = AuthService.search_users(request.user, "jane")
    """

    @classmethod
    def validate_registration(
        cls, name: str, username: str, email: str, password: str
    ) -> ServiceResult | None:
        """
        Run the registration field rules in order.

        Returns:
            A failure result carrying the first error message, or None
            when every field passes.
        """
        from authentication.models import (
            validate_display_name,
            validate_password_strength,
            validate_registration_email,
            validate_username,
        )

        checks = (
            ("name", validate_display_name, name),
            ("username", validate_username, username),
            ("email", validate_registration_email, email),
            ("password", validate_password_strength, password),
        )
        for field_name, validator, value in checks:
            try:
                validator(value)
            except DjangoValidationError as e:
                message = e.messages[0]
                return ServiceResult.failure(
                    message,
                    error_code="VALIDATION_ERROR",
                    errors={field_name: [message]},
                )
        return None

    @classmethod
    def register(
        cls,
        name: str,
        username: str,
        email: str,
        password: str,
        pic: str = "",
    ) -> ServiceResult[User]:
        """
        Create a user and fill in their profile.

        Args:
            name: Display name
            username: Unique handle
            email: Login email
            password: Plain-text password (hashed on save)
            pic: Optional avatar URL; the default avatar is used when blank

        Returns:
            ServiceResult with the created User
        """
        from authentication.models import DEFAULT_PICTURE_URL, Profile, User

        validation = cls.validate_registration(name, username, email, password)
        if validation is not None:
            return validation

        email = email.strip()
        if (
            User.objects.filter(email__iexact=email).exists()
            or Profile.objects.filter(username__iexact=username).exists()
        ):
            return ServiceResult.failure("User already exists", error_code="USER_EXISTS")

        try:
            with cls.atomic():
                user = User.objects.create_user(email=email, password=password)
                profile = user.profile
                profile.name = name
                profile.username = username
                profile.picture_url = pic or DEFAULT_PICTURE_URL
                profile.save(update_fields=["name", "username", "picture_url", "updated_at"])
        except IntegrityError:
            # Lost a race with a concurrent registration for the same identity
            return ServiceResult.failure("User already exists", error_code="USER_EXISTS")

        cls.get_logger().info(
            f"Registered user {user.id}",
            extra={"user_id": user.id, "username": username},
        )
        return ServiceResult.success(user)

    @staticmethod
    def issue_tokens(user: User) -> dict[str, str]:
        """Return a fresh simplejwt access/refresh pair for the user."""
        refresh = RefreshToken.for_user(user)
        return {"access": str(refresh.access_token), "refresh": str(refresh)}

    @staticmethod
    def search_users(user: User, query: str | None) -> QuerySet[User]:
        """
        Find other users by name, username, or email.

        Matching is a case-insensitive substring match. A blank query
        returns every other active user. The caller is never included.
        """
        from authentication.models import User

        users = User.objects.filter(is_active=True).exclude(pk=user.pk)
        query = (query or "").strip()
        if query:
            users = users.filter(
                Q(profile__name__icontains=query)
                | Q(profile__username__icontains=query)
                | Q(email__icontains=query)
            )
        return users.select_related("profile").order_by("id")
