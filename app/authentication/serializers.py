"""
Serializers for authentication models.

This module provides DRF serializers for:
- User model (read operations, the public user card embedded in chat payloads)
- Registration (input only; rules are enforced by AuthService.register)
- Login (simplejwt token pair plus the user card)
- Profile updates (display name and picture)

Related files:
    - models.py: User and Profile models, field validators
    - views.py: Views that use these serializers
    - services.py: AuthService for registration logic

Security:
    - Password fields are write-only
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from authentication.models import Profile, User, validate_display_name


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for User model (read operations).

    Used for /api/v1/auth/me/, user search results, and as the nested
    sender/participant representation in chat responses and events.
    """

    name = serializers.SerializerMethodField()
    username = serializers.CharField(source="profile.username", read_only=True)
    pic = serializers.URLField(source="profile.picture_url", read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "name",
            "username",
            "pic",
            "is_staff",
        ]
        read_only_fields = fields

    def get_name(self, obj):
        """Return the user's display name from profile."""
        return obj.get_full_name()


class RegisterSerializer(serializers.Serializer):
    """
    Input serializer for registration.

    Every field is optional at this layer so that AuthService.register
    can report the first failing rule with its own message.
    """

    name = serializers.CharField(required=False, allow_blank=True, default="")
    username = serializers.CharField(required=False, allow_blank=True, default="")
    email = serializers.CharField(required=False, allow_blank=True, default="")
    password = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        write_only=True,
        trim_whitespace=False,
    )
    pic = serializers.URLField(required=False, allow_blank=True, default="")


class AuthTokensSerializer(serializers.Serializer):
    """Response serializer for register and login."""

    user = UserSerializer(read_only=True)
    access = serializers.CharField(read_only=True)
    refresh = serializers.CharField(read_only=True)


class LoginSerializer(TokenObtainPairSerializer):
    """
    Email/password login returning a JWT pair and the user card.

    Wrong credentials produce a 401 with "Invalid Email or Password".
    """

    default_error_messages = {
        "no_active_account": "Invalid Email or Password",
    }

    def validate(self, attrs):
        data = super().validate(attrs)
        data["user"] = UserSerializer(self.user).data
        return data


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Serializer for updating the current user's display name or picture.

    Username is fixed at registration and cannot be changed here.
    """

    pic = serializers.URLField(source="picture_url", required=False)

    class Meta:
        model = Profile
        fields = ["name", "pic"]
        extra_kwargs = {"name": {"required": False}}

    def validate_name(self, value):
        try:
            validate_display_name(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(e.messages[0]) from e
        return value.strip()
