# =============================================================================
# API Tests — FastAPI Routes
# =============================================================================
#
# The application lifespan (database, seeding) is NOT run: TestClient is
# used without a `with` block, and the AgentManager / GoalCoach are
# supplied through dependency_overrides.
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from dreamplan.api.deps import get_agent_manager, get_coach
from dreamplan.main import create_app
from dreamplan.services.agent_manager import AgentManager
from dreamplan.services.coach import GoalCoach
from dreamplan.services.fallback_ring import GenerationFallbackRing
from dreamplan.services.llm import LLMResponse
from dreamplan.services.vault import CredentialVault


@pytest.fixture
def manager(store, vault, offline_http):
    store.add_record("financial", name="Financial Advisor")
    store.add_record("travel", name="Travel Planner")
    store.add_goal("goal-1")
    return asyncio.run(AgentManager.create(store, vault, offline_http))


@pytest.fixture
def llm():
    provider = MagicMock()
    provider.complete = AsyncMock(return_value=LLMResponse("Great goal!", "m0", 5, 5))
    return provider


@pytest.fixture
def client(manager, llm):
    async def no_sleep(seconds):
        return None

    coach = GoalCoach(llm=llm, ring=GenerationFallbackRing(["m0"], delay=0, sleep=no_sleep))
    app = create_app()
    app.dependency_overrides[get_agent_manager] = lambda: manager
    app.dependency_overrides[get_coach] = lambda: coach
    return TestClient(app)


def _agent_id(store, type):
    return next(r.id for r in store.agents.values() if r.type == type)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_uninitialized_services_return_503(self):
        response = TestClient(create_app()).get("/agents")
        assert response.status_code == 503


class TestAgentRegistry:
    def test_list_agents(self, client):
        body = client.get("/agents").json()
        assert body["total"] == 2
        assert {a["type"] for a in body["agents"]} == {"financial", "travel"}
        assert all(a["loaded"] for a in body["agents"])

    def test_register_agent(self, client, store):
        response = client.post("/agents", json={
            "name": "Weather Advisor", "type": "weather", "description": "Forecasts",
        })
        assert response.status_code == 201
        agent_id = response.json()["id"]

        agent = client.get(f"/agents/{agent_id}").json()
        assert agent["loaded"] is True
        assert "getWeatherForecast" in [c["name"] for c in agent["capabilities"]]

    def test_register_agent_with_capabilities(self, client, store):
        response = client.post("/agents", json={
            "name": "Rail Planner",
            "type": "travel",
            "description": "Train journeys only",
            "capabilities": [{
                "name": "searchFlights",
                "description": "Search rail connections",
                "parameters": {"origin": {"type": "string", "required": True}},
            }],
        })
        assert response.status_code == 201
        agent_id = response.json()["id"]

        stored = store.agents[agent_id].capabilities
        assert [(c.name, c.description) for c in stored] == [
            ("searchFlights", "Search rail connections"),
        ]
        assert stored[0].parameters == {"origin": {"type": "string", "required": True}}

        agent = client.get(f"/agents/{agent_id}").json()
        assert agent["loaded"] is True
        assert [c["name"] for c in agent["capabilities"]] == ["searchFlights"]

    def test_register_capability_without_name_is_422(self, client):
        response = client.post("/agents", json={
            "name": "Rail Planner", "type": "travel", "capabilities": [{"description": "x"}],
        })
        assert response.status_code == 422

    def test_register_unknown_type_is_422(self, client):
        response = client.post("/agents", json={"name": "Oracle", "type": "astrology"})
        assert response.status_code == 422

    def test_unknown_agent_is_404(self, client):
        assert client.get("/agents/missing").status_code == 404
        assert client.get("/agents/missing/tasks").status_code == 404


class TestExecuteTask:
    def test_success(self, client, store):
        response = client.post("/agents/execute-task", json={
            "goal_id": "goal-1",
            "user_id": "user-1",
            "type": "convertCurrency",
            "parameters": {"amount": 1000, "fromCurrency": "USD", "toCurrency": "EUR"},
        })
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["confidence"] == 0.95
        assert body["data"]["finalAmount"] == 833.0
        assert body["metadata"]["fallback"] is True

        financial_id = _agent_id(store, "financial")
        tasks = client.get(f"/agents/{financial_id}/tasks").json()["tasks"]
        assert [t["task_type"] for t in tasks] == ["convertCurrency"]
        agent = client.get(f"/agents/{financial_id}").json()
        assert agent["performance"]["total_executions"] == 1
        assert agent["performance"]["success_rate"] == 1.0

    def test_failure_is_200_with_error(self, client):
        response = client.post("/agents/execute-task", json={
            "goal_id": "goal-1", "user_id": "user-1", "type": "getWeatherForecast",
            "parameters": {"city": "Paris"},
        })
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["confidence"] == 0.0
        assert body["error"] == "No suitable agent found for task type: getWeatherForecast"

    def test_bad_priority_is_422(self, client):
        response = client.post("/agents/execute-task", json={
            "goal_id": "g", "user_id": "u", "type": "convertCurrency", "priority": "urgent",
        })
        assert response.status_code == 422


class TestGoalsAndMonitoring:
    def test_assign_to_goal(self, client, store):
        response = client.post("/agents/assign-to-goal", json={
            "goal_id": "goal-1", "agent_types": ["travel", "weather"],
        })
        assert response.status_code == 200
        assert response.json()["agent_ids"] == [_agent_id(store, "travel")]

    def test_assign_travel_and_financial(self, client, store):
        response = client.post("/agents/assign-to-goal", json={
            "goal_id": "goal-1", "agent_types": ["travel", "financial"],
        })
        assert response.status_code == 200
        expected = [_agent_id(store, "travel"), _agent_id(store, "financial")]
        assert response.json() == {"goal_id": "goal-1", "agent_ids": expected}
        assert store.goals["goal-1"]["assigned_agents"] == expected
        assert store.goals["goal-1"]["last_agent_update"] is not None

    def test_assign_to_missing_goal_is_404(self, client):
        response = client.post("/agents/assign-to-goal", json={
            "goal_id": "missing", "agent_types": ["travel"],
        })
        assert response.status_code == 404

    def test_setup_monitoring(self, client, store):
        response = client.post("/agents/setup-monitoring", json={
            "goal_id": "goal-1",
            "agent_id": _agent_id(store, "travel"),
            "monitor_type": "price_drop",
            "parameters": {"origin": "JFK", "destination": "LHR"},
            "threshold": 450,
            "threshold_type": "below",
        })
        assert response.status_code == 201
        assert response.json()["id"] in store.monitors

    def test_setup_monitoring_unknown_agent_is_404(self, client):
        response = client.post("/agents/setup-monitoring", json={
            "goal_id": "goal-1", "agent_id": "missing", "monitor_type": "price_drop",
        })
        assert response.status_code == 404


class TestCredentials:
    def test_add_credential_never_echoes_secret(self, client, store):
        agent_id = _agent_id(store, "financial")
        response = client.post(f"/agents/{agent_id}/credentials", json={
            "provider": "currencyapi", "key_name": "api_key", "value": "super-secret",
        })
        assert response.status_code == 201

        agent = client.get(f"/agents/{agent_id}")
        assert "super-secret" not in agent.text
        assert agent.json()["credentials"][0]["provider"] == "currencyapi"

    def test_unknown_agent_is_404(self, client):
        response = client.post("/agents/missing/credentials", json={
            "provider": "currencyapi", "key_name": "api_key", "value": "k",
        })
        assert response.status_code == 404

    def test_vault_without_secret_is_500(self, client, manager, store):
        manager.vault = CredentialVault(secret="")
        response = client.post(f"/agents/{_agent_id(store, 'financial')}/credentials", json={
            "provider": "currencyapi", "key_name": "api_key", "value": "k",
        })
        assert response.status_code == 500
        assert response.json()["detail"] == "Could not store credential"


class TestGoalCoach:
    def test_chat(self, client, llm):
        response = client.post("/chat", json={
            "message": "I want to learn to surf",
            "history": [{"role": "assistant", "content": "Hi! What's your goal?"}],
            "context": {"location": "Lisbon", "interests": ["surfing"]},
        })
        assert response.status_code == 200
        assert response.json() == {"reply": "Great goal!"}
        messages = llm.complete.call_args.args[0]
        assert messages[0]["role"] == "assistant"

    def test_chat_stream(self, client, llm):
        async def chunks():
            for part in ("Great ", "goal!"):
                yield part

        llm.stream = AsyncMock(return_value=chunks())
        response = client.post("/chat/stream", json={"message": "hi"})
        assert response.status_code == 200
        assert response.text == "Great goal!"
        assert response.headers["content-type"].startswith("text/plain")

    def test_feasibility_with_plan(self, client, llm):
        llm.complete = AsyncMock(side_effect=[
            LLMResponse('{"feasibilityScore": 64, "category": "learning"}', "m0", 5, 5),
            LLMResponse('{"monthlyMilestones": ["Stand up on the board"]}', "m0", 5, 5),
        ])
        response = client.post("/feasibility", json={
            "goal_description": "Learn to surf", "include_plan": True,
        })
        body = response.json()
        assert body["analysis"]["feasibilityScore"] == 64
        assert body["plan"] == {"monthlyMilestones": ["Stand up on the board"]}

    def test_feasibility_when_model_down(self, client, llm):
        llm.complete = AsyncMock(side_effect=RuntimeError("down"))
        body = client.post("/feasibility", json={"goal_description": "Learn to surf"}).json()
        assert body["analysis"]["feasibilityScore"] == 75
        assert body["plan"] is None
