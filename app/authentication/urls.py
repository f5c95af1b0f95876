"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/register/        - Create an account (POST)
    /api/v1/auth/token/           - Log in, obtain JWT pair (POST)
    /api/v1/auth/token/refresh/   - Refresh access token (POST)
    /api/v1/auth/me/              - Current user (GET/PATCH)
    /api/v1/auth/users/           - Search users (GET ?search=)
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from authentication.views import (
    CurrentUserView,
    LoginView,
    RegisterView,
    UserSearchView,
)

app_name = "authentication"

urlpatterns = [
    path("register/", RegisterView.as_view(), name="register"),
    path("token/", LoginView.as_view(), name="token-obtain"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("me/", CurrentUserView.as_view(), name="me"),
    path("users/", UserSearchView.as_view(), name="user-search"),
]
