"""Tests for health check endpoints."""

import pytest


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    @pytest.mark.asyncio
    async def test_returns_healthy(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        # Scheduler is disabled under tests
        assert data["scheduler"] == "stopped"
        assert data["chains"] == 3
        assert data["active_chains"] == 3

    @pytest.mark.asyncio
    async def test_reports_deactivated_chains(self, client):
        await client.delete("/api/escalation/chains/chain-2")

        data = (await client.get("/health")).json()

        assert data["chains"] == 3
        assert data["active_chains"] == 2


class TestLivenessProbe:
    """Tests for /health/live endpoint."""

    @pytest.mark.asyncio
    async def test_returns_alive(self, client):
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}


class TestRoot:
    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "Compliance Escalation API"
