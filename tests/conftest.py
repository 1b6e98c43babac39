"""Shared fixtures for the Market22 webhook receiver test suite."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from market22_webhooks.app import create_app


@pytest.fixture(scope="module")
def app():
    """A fresh FastAPI app with the webhook routes registered."""
    return create_app()


@pytest.fixture
def client(app):
    """TestClient from the sender's perspective (no auth besides signatures)."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
