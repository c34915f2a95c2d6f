"""Tests for runbook configuration and execution."""

from pathlib import Path

import pytest
import pytest_asyncio
from pydantic import ValidationError

import topswap.db.engine
import topswap.runbook
from topswap.adapters import InMemoryManagedSystem
from topswap.config import Settings
from topswap.coordinator import SwapCoordinator
from topswap.db import close_db, list_swap_results
from topswap.models import SwapOutcome, TopologyClass, TopologyState
from topswap.runbook import ClassSwapConfig, RunbookConfig, run_runbook, run_runbook_file

RUNBOOK_JSON = """
{
    "application": "search-app",
    "swaps": [
        {
            "topology_class": "ingestion",
            "components": [{"kind": "crawl", "server": "app01", "store": "crawl-db"}]
        },
        {
            "topology_class": "query",
            "components": [{"kind": "query", "server": "app01", "store": "property-db"}],
            "timeout_seconds": 120,
            "poll_interval_seconds": 2
        }
    ]
}
"""


class TestRunbookConfig:
    """Tests for loading and validating runbooks."""

    def test_from_file(self, tmp_path):
        """Runbooks load from JSON files."""
        path = tmp_path / "runbook.json"
        path.write_text(RUNBOOK_JSON, encoding="utf-8")

        config = RunbookConfig.from_file(path)

        assert config.application == "search-app"
        assert [s.topology_class for s in config.swaps] == [
            TopologyClass.INGESTION,
            TopologyClass.QUERY,
        ]
        assert config.swaps[0].timeout_seconds is None
        assert config.swaps[1].timeout_seconds == 120
        assert config.swaps[1].components[0].store == "property-db"

    def test_duplicate_classes_rejected(self):
        """A class may only be swapped once per runbook."""
        with pytest.raises(ValidationError, match="only once"):
            RunbookConfig(
                application="search-app",
                swaps=[
                    ClassSwapConfig(topology_class=TopologyClass.QUERY),
                    ClassSwapConfig(topology_class=TopologyClass.QUERY),
                ],
            )

    def test_empty_runbook_rejected(self):
        """At least one swap is required."""
        with pytest.raises(ValidationError):
            RunbookConfig(application="search-app", swaps=[])

    def test_poll_interval_must_be_positive(self):
        """A zero poll interval fails validation."""
        with pytest.raises(ValidationError):
            ClassSwapConfig(topology_class=TopologyClass.QUERY, poll_interval_seconds=0)


@pytest.mark.asyncio
class TestRunRunbook:
    """Tests for running runbooks."""

    async def test_swaps_every_class(self, settings, clock):
        """Each configured class ends with one new active topology."""
        system = InMemoryManagedSystem(drain_checks=1)
        system.create_application("search-app")
        coordinator = SwapCoordinator(system, settings, sleep=clock.sleep, clock=clock)
        config = RunbookConfig.model_validate_json(RUNBOOK_JSON)

        first_run = await run_runbook(config, coordinator)
        second_run = await run_runbook(config, coordinator)

        assert [r.topology_class for r in second_run] == [
            TopologyClass.INGESTION,
            TopologyClass.QUERY,
        ]
        assert all(r.outcome == SwapOutcome.SUCCEEDED for r in second_run)
        for before, after in zip(first_run, second_run):
            assert after.previous_id == before.new_id
            assert after.previous_removed is True
        active = [t for t in system.topologies("search-app") if t.state == TopologyState.ACTIVE]
        assert sorted(t.id for t in active) == sorted(r.new_id for r in second_run)

    async def test_failure_in_one_class_is_isolated(self, settings, clock, query_components):
        """An aborted class yields a failed result while the other succeeds."""
        system = InMemoryManagedSystem()
        system.create_application("search-app")
        coordinator = SwapCoordinator(system, settings, sleep=clock.sleep, clock=clock)
        config = RunbookConfig(
            application="search-app",
            swaps=[
                ClassSwapConfig(topology_class=TopologyClass.INGESTION, components=[]),
                ClassSwapConfig(topology_class=TopologyClass.QUERY, components=query_components),
            ],
        )

        ingestion, query = await run_runbook(config, coordinator)

        assert ingestion.outcome == SwapOutcome.FAILED
        assert "no components" in ingestion.error
        assert query.outcome == SwapOutcome.SUCCEEDED

    async def test_unknown_application_fails_every_class(self, settings, clock):
        """Provisioning errors become failed results too."""
        system = InMemoryManagedSystem()
        coordinator = SwapCoordinator(system, settings, sleep=clock.sleep, clock=clock)
        config = RunbookConfig.model_validate_json(RUNBOOK_JSON)

        results = await run_runbook(config, coordinator)

        assert [r.outcome for r in results] == [SwapOutcome.FAILED, SwapOutcome.FAILED]
        assert all(r.new_id is None for r in results)

    async def test_results_are_recorded(self, settings, clock):
        """Each result is handed to the record callback."""
        system = InMemoryManagedSystem()
        system.create_application("search-app")
        coordinator = SwapCoordinator(system, settings, sleep=clock.sleep, clock=clock)
        config = RunbookConfig.model_validate_json(RUNBOOK_JSON)
        recorded = []

        async def record(result):
            recorded.append(result)

        results = await run_runbook(config, coordinator, record=record)

        assert recorded == results


def test_example_runbook_loads() -> None:
    repo_root = Path(__file__).resolve().parents[1]

    config = RunbookConfig.from_file(repo_root / "examples" / "search_runbook.json")

    assert config.application == "search-service-application"
    assert {s.topology_class for s in config.swaps} == {
        TopologyClass.INGESTION,
        TopologyClass.QUERY,
    }


class CrashingStatusSystem(InMemoryManagedSystem):
    """In-memory system whose ingestion status queries blow up."""

    async def status(self, topology):
        if topology.topology_class == TopologyClass.INGESTION:
            raise RuntimeError("boom")
        return await super().status(topology)


@pytest.mark.asyncio
class TestUnexpectedErrors:
    """Errors outside the swap taxonomy during a runbook."""

    async def test_other_classes_finish_and_are_recorded(self, settings, clock):
        """A crashing class becomes a failed result; the other class completes."""
        system = CrashingStatusSystem(drain_checks=3)
        system.create_application("search-app")
        coordinator = SwapCoordinator(system, settings, sleep=clock.sleep, clock=clock)
        config = RunbookConfig.model_validate_json(RUNBOOK_JSON)
        await run_runbook(config, coordinator)
        recorded = []

        async def record(result):
            recorded.append(result)

        ingestion, query = await run_runbook(config, coordinator, record=record)

        assert ingestion.outcome == SwapOutcome.FAILED
        assert ingestion.error == "RuntimeError: boom"
        assert query.outcome == SwapOutcome.SUCCEEDED
        assert query.previous_removed is True
        assert recorded == [ingestion, query]
        assert not coordinator.is_swapping("search-app", TopologyClass.INGESTION)
        assert not coordinator.is_swapping("search-app", TopologyClass.QUERY)


@pytest_asyncio.fixture
async def environment(monkeypatch, tmp_path):
    """Settings as the environment would provide them, with a scratch history file."""
    configured = Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'history.db'}",
        poll_interval_seconds=0.01,
        log_level="WARNING",
    )
    monkeypatch.setattr(topswap.runbook, "get_settings", lambda: configured)
    monkeypatch.setattr(topswap.db.engine, "get_settings", lambda: configured)
    topswap.db.engine._engine = None
    yield configured
    await close_db()


@pytest.mark.asyncio
class TestRunRunbookFile:
    """Tests for running a runbook file with environment settings."""

    async def test_results_are_stored_in_history(self, environment, tmp_path):
        """Every class result of every run lands in the swap history."""
        path = tmp_path / "runbook.json"
        path.write_text(RUNBOOK_JSON, encoding="utf-8")
        system = InMemoryManagedSystem()
        system.create_application("search-app")

        await run_runbook_file(path, system)
        results = await run_runbook_file(path, system)

        assert all(r.outcome == SwapOutcome.SUCCEEDED for r in results)
        records = await list_swap_results(application="search-app")
        assert len(records) == 4
        assert {r.new_id for r in records} >= {r.new_id for r in results}

    async def test_history_can_be_skipped(self, environment, tmp_path):
        """record_history=False leaves the database alone."""
        path = tmp_path / "runbook.json"
        path.write_text(RUNBOOK_JSON, encoding="utf-8")
        system = InMemoryManagedSystem()
        system.create_application("search-app")

        results = await run_runbook_file(path, system, record_history=False)

        assert len(results) == 2
        assert not (tmp_path / "history.db").exists()
