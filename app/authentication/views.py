"""
Authentication views.

This module provides API views for:
- Registration (returns the user card plus a JWT pair)
- Login (simplejwt token pair plus the user card)
- Current user retrieval and profile updates
- User search for starting conversations

Related files:
    - serializers.py: Request/response serialization
    - services.py: Business logic (AuthService)
    - urls.py: URL routing

Note:
    Token refresh is simplejwt's TokenRefreshView, wired in urls.py.
"""

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from authentication.serializers import (
    AuthTokensSerializer,
    LoginSerializer,
    ProfileUpdateSerializer,
    RegisterSerializer,
    UserSerializer,
)
from authentication.services import AuthService


class RegisterView(APIView):
    """
    API view for account registration.

    URL: /api/v1/auth/register/

    Validation failures return 400 with the first failing rule's message.
    Duplicate email or username returns 400 with error_code USER_EXISTS.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        summary="Register a new account",
        tags=["Auth"],
        request=RegisterSerializer,
        responses={201: AuthTokensSerializer},
    )
    def post(self, request):
        """
        Register a user.

        Request body:
            {
                "name": "Jane Doe",
                "username": "jane_doe",
                "email": "jane@example.com",
                "password": "Secure_pass1!",
                "pic": "https://..."          // Optional
            }

        Returns:
            The user card with access and refresh tokens
        """
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.register(**serializer.validated_data)
        if not result:
            return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)

        user = result.data
        payload = {"user": UserSerializer(user).data, **AuthService.issue_tokens(user)}
        return Response(payload, status=status.HTTP_201_CREATED)


@extend_schema(summary="Log in with email and password", tags=["Auth"])
class LoginView(TokenObtainPairView):
    """simplejwt login that also returns the user card."""

    serializer_class = LoginSerializer


class CurrentUserView(APIView):
    """
    API view for the authenticated user.

    GET: Retrieve the current user's card
    PATCH: Update display name or picture

    URL: /api/v1/auth/me/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Get current user", tags=["Auth"], responses={200: UserSerializer})
    def get(self, request):
        return Response(UserSerializer(request.user).data)

    @extend_schema(
        summary="Update display name or picture",
        tags=["Auth"],
        request=ProfileUpdateSerializer,
        responses={200: UserSerializer},
    )
    def patch(self, request):
        serializer = ProfileUpdateSerializer(
            request.user.profile, data=request.data, partial=True
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(UserSerializer(request.user).data)


@extend_schema(
    summary="Search users",
    description="Case-insensitive match on name, username, or email. Excludes the caller.",
    tags=["Auth"],
    parameters=[OpenApiParameter("search", str, description="Search term")],
)
class UserSearchView(generics.ListAPIView):
    """
    API view for finding users to chat with.

    URL: /api/v1/auth/users/?search=<term>
    """

    permission_classes = [IsAuthenticated]
    serializer_class = UserSerializer
    pagination_class = None

    def get_queryset(self):
        return AuthService.search_users(
            self.request.user, self.request.query_params.get("search")
        )
