"""Shared pytest fixtures for gateway tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from helpers import TEST_PASSWORD, FakeMessagingClient, make_settings  # noqa: E402
from whatsgate.api.factory import create_app  # noqa: E402
from whatsgate.whatsapp.models import Ready  # noqa: E402


@pytest.fixture
def fake_client():
    return FakeMessagingClient()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings, fake_client):
    return create_app(settings, client=fake_client)


@pytest.fixture
def client(app):
    """TestClient with the lifespan running (gateway started)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def gateway(app):
    return app.state.gateway


@pytest.fixture
def token(client):
    response = client.post("/api/auth", json={"contrasena": TEST_PASSWORD})
    assert response.status_code == 200
    return response.json()["token"]


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def ready(gateway):
    """Mark the messaging connection ready."""
    gateway.connection.apply(Ready())
    return gateway
