"""Pytest fixtures and configuration."""

import pytest
from fastapi.testclient import TestClient

from dbstudio.ids import SequentialIds
from dbstudio.main import app


@pytest.fixture
def ids():
    """Deterministic id factory: table_1, col_2, ..."""
    return SequentialIds()


@pytest.fixture
def client():
    """Test client for the FastAPI app."""
    return TestClient(app)
