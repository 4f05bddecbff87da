"""Fixtures for API route tests."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from coursereg.api.app import create_app
from coursereg.api.dependencies import get_engine
from coursereg.engine import RegistrationEngine


@pytest.fixture
def app(engine: RegistrationEngine) -> FastAPI:
    """The application wired to the test engine."""
    app = create_app(db_path=":memory:")

    def override_get_engine():
        yield engine

    app.dependency_overrides[get_engine] = override_get_engine
    return app


@pytest.fixture
def client(app: FastAPI):
    """Create a test client."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
