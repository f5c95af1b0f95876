"""
Fixtures for the authentication tests: a user with a profile, clients with
and without a bearer token, and a registration payload that passes every
validator.
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    return UserFactory(name="Test Person", username="test_person")


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """Client sending the fixture user's access token on every request."""
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {AccessToken.for_user(user)}")
    return client


@pytest.fixture
def registration_data():
    return {
        "name": "Jane Doe",
        "username": "jane_doe",
        "email": "jane@example.com",
        "password": "Secure_pass1!",
    }
