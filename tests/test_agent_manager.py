# =============================================================================
# Unit Tests — Agent Manager
# =============================================================================
#
# Runs the real agents and the task graph against the in-memory
# FakeAgentStore from conftest.py. No database, no network.
# =============================================================================

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from dreamplan.agents.financial import FinancialAgent
from dreamplan.agents.types import (
    AgentResult,
    AgentType,
    MonitoringParams,
    PerformanceMetrics,
    StoredCredential,
    TaskParameters,
)
from dreamplan.db.seed import seed_default_agents
from dreamplan.db.store import GoalNotFoundError
from dreamplan.services.agent_manager import AgentManager, AgentNotFoundError

CONVERT = {"amount": 1000, "fromCurrency": "USD", "toCurrency": "EUR"}


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _task(task_type, parameters=None, goal_id="goal-1"):
    return TaskParameters(
        goal_id=goal_id, user_id="user-1", type=task_type, parameters=parameters or {},
    )


def _manager(store, vault, http):
    return _run(AgentManager.create(store, vault, http))


def _credential(vault, provider="currencyapi", value="secret", **overrides):
    fields = {
        "id": f"cred-{provider}",
        "provider": provider,
        "key_name": "api_key",
        "encrypted_value": vault.encrypt(value),
    }
    fields.update(overrides)
    return StoredCredential(**fields)


# ---------------------------------------------------------------------------
# Test: Initialization
# ---------------------------------------------------------------------------


class TestInitialize:
    def test_loads_active_known_agents(self, store, vault, offline_http):
        travel = store.add_record("travel")
        store.add_record("financial", is_active=False)
        manager = _manager(store, vault, offline_http)
        assert list(manager.agents) == [travel.id]

    def test_unknown_type_is_skipped(self, store, vault, offline_http):
        store.add_record("astrology")
        research = store.add_record("research")
        manager = _manager(store, vault, offline_http)
        assert list(manager.agents) == [research.id]

    def test_credentials_are_decrypted_and_injected(self, store, vault, offline_http):
        record = store.add_record("financial", credentials=[_credential(vault, value="ca-key")])
        manager = _manager(store, vault, offline_http)
        agent = manager.get_agent(record.id)
        assert agent.credential_value("currencyapi") == "ca-key"

    def test_bad_credentials_skipped_agent_still_loads(self, store, vault, offline_http):
        yesterday = datetime.now(UTC) - timedelta(days=1)
        record = store.add_record("financial", credentials=[
            _credential(vault, "currencyapi", encrypted_value="00:11:22"),
            _credential(vault, "exchangerate", expires_at=yesterday),
            _credential(vault, "rapidapi", is_active=False),
            _credential(vault, "newsapi", value="ok"),
        ])
        manager = _manager(store, vault, offline_http)
        agent = manager.get_agent(record.id)
        assert agent is not None
        assert agent.get_api_credentials("currencyapi") is None
        assert agent.get_api_credentials("exchangerate") is None
        assert agent.get_api_credentials("rapidapi") is None
        assert agent.credential_value("newsapi") == "ok"

    def test_find_agent_returns_first_of_type(self, store, vault, offline_http):
        first = store.add_record("weather")
        store.add_record("weather")
        manager = _manager(store, vault, offline_http)
        assert manager.find_agent(AgentType.WEATHER).id == first.id
        assert manager.find_agent(AgentType.TRAVEL) is None


# ---------------------------------------------------------------------------
# Test: Task Execution
# ---------------------------------------------------------------------------


class TestExecuteTask:
    def test_routes_to_matching_agent(self, store, vault, offline_http):
        store.add_record("travel")
        financial = store.add_record("financial")
        manager = _manager(store, vault, offline_http)

        result = _run(manager.execute_task(_task("convertCurrency", CONVERT)))

        assert result.success
        assert result.data["finalAmount"] == 833.0
        assert result.metadata["fallback"] is True
        assert manager.get_metrics(financial.id).total_executions == 1
        assert [run.agent_id for run in store.task_runs] == [financial.id]
        assert store.task_runs[0].success is True

    def test_no_agent_for_type(self, store, vault, offline_http):
        store.add_record("financial")
        manager = _manager(store, vault, offline_http)

        result = _run(manager.execute_task(_task("searchFlights")))

        assert result.success is False
        assert result.confidence == 0.0
        assert result.error == "No suitable agent found for task type: searchFlights"
        assert store.task_runs == []
        assert store.metric_writes == []

    def test_unknown_task_type_goes_to_research(self, store, vault, offline_http):
        research = store.add_record("research")
        manager = _manager(store, vault, offline_http)

        result = _run(manager.execute_task(_task("composeSymphony")))

        assert result.success is False
        assert result.error == "Unsupported task type: composeSymphony"
        metrics = manager.get_metrics(research.id)
        assert metrics.total_executions == 1
        assert metrics.success_rate == 0.0

    def test_invalid_parameters_become_failure(self, store, vault, offline_http):
        store.add_record("financial")
        manager = _manager(store, vault, offline_http)

        result = _run(manager.execute_task(_task("convertCurrency", {"amount": -5})))

        assert result.success is False
        assert result.data is None
        assert result.error
        assert store.task_runs[0].error == result.error

    def test_metrics_persist_failure_does_not_fail_task(self, store, vault, offline_http):
        financial = store.add_record("financial")
        manager = _manager(store, vault, offline_http)
        store.fail_metric_writes = True

        result = _run(manager.execute_task(_task("convertCurrency", CONVERT)))

        assert result.success
        assert manager.get_metrics(financial.id).total_executions == 1

    def test_concurrent_tasks_each_count_once(self, store, vault, offline_http):
        financial = store.add_record("financial")

        async def scenario():
            manager = await AgentManager.create(store, vault, offline_http)
            results = await asyncio.gather(*(
                manager.execute_task(_task("convertCurrency", CONVERT)) for _ in range(20)
            ))
            return manager, results

        manager, results = _run(scenario())
        assert all(r.success for r in results)
        assert manager.get_metrics(financial.id).total_executions == 20
        assert len(store.task_runs) == 20
        assert store.agents[financial.id].metrics.total_executions == 20


class TestMetrics:
    def test_running_average_matches_closed_form(self, store, vault, offline_http):
        record = store.add_record("financial")
        manager = _manager(store, vault, offline_http)
        agent = manager.get_agent(record.id)
        samples = [(10.0, True), (20.0, False), (60.0, True), (30.0, True)]

        async def scenario():
            for duration, success in samples:
                result = AgentResult(success=success, data=None, confidence=0.5)
                await manager.record_execution(agent, _task("convertCurrency"), result, duration)

        _run(scenario())
        metrics = manager.get_metrics(record.id)
        assert metrics.total_executions == 4
        assert metrics.average_response_time == pytest.approx(30.0)
        assert metrics.success_rate == pytest.approx(0.75)
        assert metrics.last_executed is not None

    def test_record_is_pure(self):
        base = PerformanceMetrics()
        updated = base.record(100.0, True)
        assert base.total_executions == 0
        assert updated.to_dict()["successRate"] == 1.0


# ---------------------------------------------------------------------------
# Test: Registry, Goals, Monitoring, Credentials
# ---------------------------------------------------------------------------


class TestRegisterAgent:
    def test_register_hot_loads(self, store, vault, offline_http):
        manager = _manager(store, vault, offline_http)

        agent_id = _run(manager.register_agent("Budget Buddy", "financial", "Budgets"))

        assert manager.is_loaded(agent_id)
        stored = store.agents[agent_id]
        assert [c.name for c in stored.capabilities] == [
            c.name for c in FinancialAgent.CAPABILITIES
        ]
        result = _run(manager.execute_task(_task("convertCurrency", CONVERT)))
        assert result.success

    def test_register_unknown_type(self, store, vault, offline_http):
        manager = _manager(store, vault, offline_http)
        with pytest.raises(ValueError):
            _run(manager.register_agent("Oracle", "astrology", ""))


class TestAssignAgentsToGoal:
    def test_assigns_one_agent_per_loaded_type(self, store, vault, offline_http):
        travel = store.add_record("travel")
        store.add_goal("goal-1")
        manager = _manager(store, vault, offline_http)

        assigned = _run(manager.assign_agents_to_goal(
            "goal-1", [AgentType.TRAVEL, AgentType.WEATHER],
        ))

        assert assigned == [travel.id]
        assert store.goals["goal-1"]["assigned_agents"] == [travel.id]
        assert store.goals["goal-1"]["last_agent_update"] is not None

    def test_assigns_travel_and_financial(self, store, vault, offline_http):
        travel = store.add_record("travel")
        financial = store.add_record("financial")
        store.add_goal("goal-1")
        manager = _manager(store, vault, offline_http)
        before = datetime.now(UTC)

        assigned = _run(manager.assign_agents_to_goal(
            "goal-1", [AgentType.TRAVEL, AgentType.FINANCIAL],
        ))

        assert assigned == [travel.id, financial.id]
        goal = store.goals["goal-1"]
        assert goal["assigned_agents"] == [travel.id, financial.id]
        assert goal["last_agent_update"] >= before

    def test_missing_goal(self, store, vault, offline_http):
        store.add_record("travel")
        manager = _manager(store, vault, offline_http)
        with pytest.raises(GoalNotFoundError):
            _run(manager.assign_agents_to_goal("nope", [AgentType.TRAVEL]))


class TestMonitoringAndCredentials:
    def test_setup_monitoring(self, store, vault, offline_http):
        travel = store.add_record("travel")
        manager = _manager(store, vault, offline_http)
        params = MonitoringParams(
            goal_id="goal-1", agent_id=travel.id, monitor_type="price_drop",
            parameters={"route": "JFK-LHR"}, threshold=500, threshold_type="below",
        )
        monitor_id = _run(manager.setup_monitoring(params))
        assert store.monitors[monitor_id] is params

    def test_add_credentials_encrypts_and_injects(self, store, vault, offline_http):
        financial = store.add_record("financial")
        manager = _manager(store, vault, offline_http)

        credential_id = _run(manager.add_api_credentials(
            financial.id, "currencyapi", "api_key", "live-key", monthly_limit=1000,
        ))

        stored = store.agents[financial.id].credentials[0]
        assert stored.id == credential_id
        assert stored.encrypted_value != "live-key"
        assert vault.decrypt(stored.encrypted_value) == "live-key"
        assert manager.get_agent(financial.id).credential_value("currencyapi") == "live-key"

    def test_offset_less_expiry_is_treated_as_utc(self, store, vault, offline_http):
        financial = store.add_record("financial")
        manager = _manager(store, vault, offline_http)

        _run(manager.add_api_credentials(
            financial.id, "currencyapi", "api_key", "live-key",
            expires_at=datetime(2030, 1, 1),
        ))

        stored = store.agents[financial.id].credentials[0]
        assert stored.expires_at == datetime(2030, 1, 1, tzinfo=UTC)
        assert manager.get_agent(financial.id).credential_value("currencyapi") == "live-key"

        result = _run(manager.execute_task(_task("convertCurrency", CONVERT)))
        assert result.success is True
        assert result.error is None

    def test_offset_less_past_expiry_hides_credential(self, store, vault, offline_http):
        financial = store.add_record("financial")
        manager = _manager(store, vault, offline_http)

        _run(manager.add_api_credentials(
            financial.id, "currencyapi", "api_key", "old-key",
            expires_at=datetime(2001, 1, 1),
        ))

        assert manager.get_agent(financial.id).credential_value("currencyapi") is None
        assert _run(manager.execute_task(_task("convertCurrency", CONVERT))).success is True

    def test_add_credentials_unknown_agent(self, store, vault, offline_http):
        manager = _manager(store, vault, offline_http)
        with pytest.raises(AgentNotFoundError):
            _run(manager.add_api_credentials("missing", "currencyapi", "api_key", "k"))


class TestReadModels:
    def test_status_uses_live_metrics(self, store, vault, offline_http):
        financial = store.add_record("financial")
        manager = _manager(store, vault, offline_http)
        store.fail_metric_writes = True
        _run(manager.execute_task(_task("convertCurrency", CONVERT)))

        status = _run(manager.get_agent_status(financial.id))
        assert status.metrics.total_executions == 1
        assert _run(manager.get_agent_status("missing")) is None

    def test_list_agent_tasks(self, store, vault, offline_http):
        financial = store.add_record("financial")
        manager = _manager(store, vault, offline_http)
        _run(manager.execute_task(_task("convertCurrency", CONVERT, goal_id="g-a")))
        _run(manager.execute_task(_task("convertCurrency", CONVERT, goal_id="g-b")))

        runs = _run(manager.list_agent_tasks(financial.id, limit=1))
        assert [r.goal_id for r in runs] == ["g-b"]
        with pytest.raises(AgentNotFoundError):
            _run(manager.list_agent_tasks("missing"))

    def test_get_all_agents_includes_unloaded(self, store, vault, offline_http):
        store.add_record("astrology")
        store.add_record("travel")
        manager = _manager(store, vault, offline_http)
        records = _run(manager.get_all_agents())
        assert sorted(r.type for r in records) == ["astrology", "travel"]
        assert [manager.is_loaded(r.id) for r in records] == [False, True]


class TestLifecycle:
    def test_aclose_leaves_shared_client_open(self, store, vault, offline_http):
        manager = _manager(store, vault, offline_http)
        _run(manager.aclose())
        assert not offline_http.is_closed

    def test_aclose_closes_owned_client(self, store, vault):
        manager = _manager(store, vault, None)
        _run(manager.aclose())
        assert manager._http.is_closed


def test_seed_default_agents_is_idempotent(store):
    store.add_record("travel")
    created = _run(seed_default_agents(store))
    assert len(created) == 4
    assert _run(seed_default_agents(store)) == []
    assert sorted(r.type for r in store.agents.values()) == sorted(t.value for t in AgentType)
