"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient

from suitability_backend.config import Settings
from suitability_backend.database import MemStorage, seed_sample_data
from suitability_backend.main import create_app
from suitability_backend.services.analysis import PlaceholderAnalysisProvider


@pytest.fixture
def settings():
    return Settings(seed_sample_data=False, portfolio_redirect_url="https://portfolios.example.com/login")


@pytest.fixture
def empty_store():
    return MemStorage()


@pytest.fixture
def store():
    store = MemStorage()
    seed_sample_data(store)
    return store


@pytest.fixture
def demo_user(store):
    return store.get_user_by_username("john.smith")


@pytest.fixture
def app(store, settings):
    return create_app(store=store, settings=settings, analysis_provider=PlaceholderAnalysisProvider())


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
