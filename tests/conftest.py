"""
Shared fixtures for the endpoint test suite.
Every app is built around an InMemoryStore so tests run fast and offline.
"""

import pytest
from fastapi.testclient import TestClient

from medvoice.app import create_app
from medvoice.infrastructure.store import InMemoryStore
from medvoice.settings import Settings
from medvoice.webhook.patient_resolver import MedicalIdGenerator
from medvoice.webhook.setup import build_services

# Seeds generated IDs at MED123
FIXED_CLOCK = 1_700_000_123.0


@pytest.fixture
def store():
    """A store with one bot and one fully populated patient."""
    s = InMemoryStore()
    s.add_bot(
        uid="bot_abc123",
        name="Sarah Medical Assistant",
        prompt="You are Sarah, a friendly clinic assistant.",
    )
    s.add_patient(
        medical_id="MED001",
        name="John Doe",
        phone="+15551234567",
        date_of_birth="1980-04-12",
        allergies="Penicillin",
        current_medications="Lisinopril 10mg",
        medical_history="Hypertension",
    )
    return s


@pytest.fixture
def build_client(store):
    """Factory: build_client(**settings) -> (TestClient, WebhookServices)."""

    def _build(**overrides):
        services = build_services(
            Settings(**overrides),
            store=store,
            id_generator=MedicalIdGenerator(clock=lambda: FIXED_CLOCK),
        )
        client = TestClient(create_app(services), raise_server_exceptions=False)
        return client, services

    return _build


@pytest.fixture
def test_client(build_client):
    """Client with no secrets configured (open mode)."""
    client, _ = build_client()
    return client
