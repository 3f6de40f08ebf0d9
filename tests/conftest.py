from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from payment_element.core.config import Settings
from payment_element.main import create_app
from stripe_fixtures import WEBHOOK_SECRET


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_PUBLISHABLE_KEY="pk_test_123",
    )


@pytest.fixture
def signed_settings():
    return Settings(
        _env_file=None,
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_PUBLISHABLE_KEY="pk_test_123",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
    )


@pytest.fixture
def stripe_client():
    return MagicMock(name="StripeClient")


@pytest.fixture
def client(settings, stripe_client):
    return TestClient(create_app(settings, stripe_client=stripe_client))


@pytest.fixture
def signed_client(signed_settings, stripe_client):
    return TestClient(create_app(signed_settings, stripe_client=stripe_client))
