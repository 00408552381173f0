"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient

from b2b_console.main import app
from b2b_console.store import InMemoryStore
from b2b_console.models import SelectionState
from b2b_console.api.dependencies import (
    get_catalog_gateway,
    get_pricing_gateway,
    get_remote_client,
    get_store_dependency,
)

from fakes import FakeCatalog, FakePricing


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def pricing() -> FakePricing:
    return FakePricing()


@pytest.fixture
def mock_store():
    """Create a fresh in-memory store."""
    return InMemoryStore(cache_ttl=60)


@pytest.fixture
def priced_selection() -> SelectionState:
    """Selection eligible for pricing: C1 / S1 / P1, quantity 2."""
    return SelectionState(category_id="C1", subcategory_id="S1", provider_id="P1", quantity=2)


@pytest.fixture
def sample_items():
    """Two quotation lines: 3 x 100 and 1 x 250."""
    return [
        {"service": "Deep cleaning", "quantity": 3, "rate": "100"},
        {"service": "Pest control", "quantity": 1, "rate": "250"},
    ]


@pytest.fixture
def client(mock_store, catalog, pricing):
    """FastAPI test client wired to in-memory collaborators."""
    app.dependency_overrides[get_store_dependency] = lambda: mock_store
    app.dependency_overrides[get_catalog_gateway] = lambda: catalog
    app.dependency_overrides[get_pricing_gateway] = lambda: pricing
    app.dependency_overrides[get_remote_client] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
