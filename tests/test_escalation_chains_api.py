"""Tests for the escalation chain administration API."""

import pytest


def chain_payload(**overrides) -> dict:
    payload = {
        "id": "chain-waivers",
        "name": "Waiver Escalation",
        "description": "Escalation for waiver expirations at the main facility",
        "applies_to_event_types": ["waiver_expiration"],
        "applies_to_facility_ids": ["facility-1"],
        "steps": [
            {
                "level": 1,
                "trigger_days_overdue": 0,
                "assignee_ids": ["user-analyst-1"],
                "channels": ["email"],
            },
            {
                "level": 2,
                "trigger_days_overdue": 2,
                "assignee_ids": ["user-manager-1", "user-manager-2"],
                "channels": ["email", "slack"],
                "notify_previous_levels": True,
            },
        ],
        "created_by": "user-admin",
    }
    payload.update(overrides)
    return payload


class TestAssignees:
    @pytest.mark.asyncio
    async def test_lists_reference_assignees(self, client):
        response = await client.get("/api/escalation/assignees")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 6
        assert data["assignees"][0]["name"] == "Sarah Chen"


class TestListAndGetChains:
    @pytest.mark.asyncio
    async def test_lists_reference_chains_in_order(self, client):
        response = await client.get("/api/escalation/chains")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 3
        assert [c["id"] for c in data["chains"]] == ["chain-1", "chain-2", "chain-3"]

    @pytest.mark.asyncio
    async def test_get_chain(self, client):
        response = await client.get("/api/escalation/chains/chain-2")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Critical Compliance Escalation"
        assert [s["trigger_days_overdue"] for s in data["steps"]] == [0, 1, 3, 5]

    @pytest.mark.asyncio
    async def test_get_unknown_chain(self, client):
        response = await client.get("/api/escalation/chains/chain-missing")

        assert response.status_code == 404


class TestCreateChain:
    @pytest.mark.asyncio
    async def test_create_chain(self, client):
        response = await client.post("/api/escalation/chains", json=chain_payload())

        assert response.status_code == 201
        data = response.json()
        assert data["id"] == "chain-waivers"
        assert data["created_at"] is not None
        assert data["steps"][1]["assignees"][1]["id"] == "user-manager-2"

        listed = await client.get("/api/escalation/chains")
        assert listed.json()["chains"][-1]["id"] == "chain-waivers"

    @pytest.mark.asyncio
    async def test_create_generates_id(self, client):
        payload = chain_payload()
        del payload["id"]

        response = await client.post("/api/escalation/chains", json=payload)

        assert response.status_code == 201
        assert response.json()["id"].startswith("chain-")

    @pytest.mark.asyncio
    async def test_duplicate_id_conflicts(self, client):
        response = await client.post(
            "/api/escalation/chains", json=chain_payload(id="chain-1")
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_invalid_chain_lists_problems(self, client):
        payload = chain_payload()
        payload["steps"][0]["trigger_days_overdue"] = 1
        payload["steps"][1]["trigger_days_overdue"] = 1
        payload["steps"][1]["channels"] = []

        response = await client.post("/api/escalation/chains", json=payload)

        assert response.status_code == 422
        problems = response.json()["detail"]["problems"]
        assert "Level 1 must trigger at 0 days overdue (got 1)" in problems
        assert "Level 2 must have at least one notification channel" in problems
        assert len(problems) == 3

        listed = await client.get("/api/escalation/chains")
        assert listed.json()["count"] == 3

    @pytest.mark.asyncio
    async def test_unknown_assignee_rejected(self, client):
        payload = chain_payload()
        payload["steps"][0]["assignee_ids"] = ["user-ghost"]

        response = await client.post("/api/escalation/chains", json=payload)

        assert response.status_code == 422
        assert response.json()["detail"]["problems"] == [
            "Level 1 references unknown assignee user-ghost"
        ]

    @pytest.mark.asyncio
    async def test_level_out_of_range_is_schema_error(self, client):
        payload = chain_payload()
        payload["steps"][1]["level"] = 5

        response = await client.post("/api/escalation/chains", json=payload)

        assert response.status_code == 422


class TestUpdateAndDeleteChain:
    @pytest.mark.asyncio
    async def test_update_keeps_creation_metadata(self, client):
        before = (await client.get("/api/escalation/chains/chain-3")).json()
        payload = chain_payload(name="Notification Due (revised)")
        del payload["id"]
        payload["applies_to_event_types"] = ["notification_due"]
        payload["created_by"] = "someone-else"

        response = await client.put("/api/escalation/chains/chain-3", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Notification Due (revised)"
        assert data["created_at"] == before["created_at"]
        assert data["created_by"] == "user-admin"
        assert data["updated_at"] != before["updated_at"]

    @pytest.mark.asyncio
    async def test_update_unknown_chain(self, client):
        payload = chain_payload()
        del payload["id"]

        response = await client.put("/api/escalation/chains/chain-missing", json=payload)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_deactivates(self, client):
        response = await client.delete("/api/escalation/chains/chain-1")

        assert response.status_code == 204
        chain = (await client.get("/api/escalation/chains/chain-1")).json()
        assert chain["is_active"] is False

        active = await client.get("/api/escalation/chains", params={"active_only": "true"})
        assert [c["id"] for c in active.json()["chains"]] == ["chain-2", "chain-3"]

    @pytest.mark.asyncio
    async def test_delete_unknown_chain(self, client):
        response = await client.delete("/api/escalation/chains/chain-missing")

        assert response.status_code == 404
