"""Pytest configuration and shared fixtures."""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set testing mode BEFORE importing the app so the scheduler stays off
os.environ["TESTING"] = "true"

from compliance_escalation.config import settings

settings.testing = True

from compliance_escalation.container import reset_service
from compliance_escalation.main import app


@pytest.fixture(autouse=True)
def fresh_service():
    """Give every test its own in-memory stores."""
    reset_service()
    yield
    reset_service()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
