"""
API Test Fixtures for Dynamic QR Service

Runs the FastAPI app in-process; each client gets a fresh factory and
in-memory repository through the application lifespan.
"""

import pytest
from typing import Optional
from fastapi.testclient import TestClient

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.dynamic_qr_service import main as dynamic_qr_main
from tests.contracts.dynamic_qr.data_contract import DynamicQRTestDataFactory

API_PREFIX = "/api/v1/dynamic-qr"


@pytest.fixture
def factory():
    """Provide test data factory"""
    return DynamicQRTestDataFactory()


@pytest.fixture
def code_id(factory):
    return factory.make_code_id()


@pytest.fixture
def client():
    """Provide a test client with the lifespan running"""
    with TestClient(dynamic_qr_main.app) as test_client:
        yield test_client


@pytest.fixture
def create_version(client, code_id):
    """POST a content version and return its JSON"""

    def _create(redirect_url: str, is_active: bool = False, target_code_id: Optional[str] = None):
        response = client.post(
            f"{API_PREFIX}/{target_code_id or code_id}/versions",
            json={"content": {"title": redirect_url}, "redirect_url": redirect_url, "is_active": is_active},
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create


@pytest.fixture
def drain_analytics(client):
    """Wait for background analytics writes on the client's event loop"""

    def _drain():
        client.portal.call(dynamic_qr_main.factory.analytics_recorder.drain)

    return _drain
