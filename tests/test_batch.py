"""Tests for the workflow batch runner."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from services.execution import BatchQueryError, ExecutionAdvancer, WorkflowBatchRunner

from conftest import NOW


@pytest.fixture
def runner(database, processor, settings):
    advancer = ExecutionAdvancer(database=database, processor=processor, settings=settings)
    return WorkflowBatchRunner(database=database, advancer=advancer, settings=settings, clock=lambda: NOW)


class TestWorkflowBatchRunner:

    @pytest.mark.asyncio
    async def test_nothing_due_is_a_noop(self, database, runner, monkeypatch):
        update = AsyncMock()
        claim = AsyncMock()
        log = AsyncMock()
        monkeypatch.setattr(database, "update_execution", update)
        monkeypatch.setattr(database, "claim_execution", claim)
        monkeypatch.setattr(database, "append_log", log)

        first = await runner.run()
        second = await runner.run()

        assert first.to_dict() == {"processed": 0, "skipped": 0, "failed": 0, "total": 0}
        assert second.to_dict() == first.to_dict()
        update.assert_not_called()
        claim.assert_not_called()
        log.assert_not_called()

    @pytest.mark.asyncio
    async def test_counts_each_outcome(self, database, seed, runner):
        active = await seed.workflow()
        await seed.nodes(active, ("n-start", "start", {}), ("n-end", "end", {}))
        paused = await seed.workflow(status="paused")
        contact = await seed.contact()

        ok = await seed.execution(active, contact.id, "n-start")
        broken = await seed.execution(active, contact.id, "n-missing")
        held = await seed.execution(paused, contact.id, "n-start")

        summary = await runner.run()

        assert summary.to_dict() == {"processed": 1, "skipped": 1, "failed": 1, "total": 3}
        assert summary.results == {ok.id: "processed", broken.id: "failed", held.id: "skipped"}

    @pytest.mark.asyncio
    async def test_only_running_and_due_executions_are_selected(self, database, seed, runner):
        workflow = await seed.workflow()
        await seed.nodes(workflow, ("n-start", "start", {}), ("n-end", "end", {}))
        contact = await seed.contact()
        for status in ("paused", "completed", "failed"):
            await seed.execution(workflow, contact.id, "n-start", status=status)
        await seed.execution(workflow, contact.id, "n-start", next_run_at=NOW + timedelta(minutes=5))

        summary = await runner.run()

        assert summary.total == 0

    @pytest.mark.asyncio
    async def test_claimed_executions_are_not_selected(self, database, seed, runner, settings):
        workflow = await seed.workflow()
        await seed.nodes(workflow, ("n-start", "start", {}), ("n-end", "end", {}))
        contact = await seed.contact()
        execution = await seed.execution(workflow, contact.id, "n-start")

        assert await database.claim_execution(execution.id, NOW, settings.workflow_claim_ttl_seconds)
        assert not await database.claim_execution(execution.id, NOW, settings.workflow_claim_ttl_seconds)

        assert (await runner.run()).total == 0

        # An abandoned claim expires
        later = NOW + timedelta(seconds=settings.workflow_claim_ttl_seconds + 1)
        assert [e.id for e in await database.get_due_executions(later, 10)] == [execution.id]

    @pytest.mark.asyncio
    async def test_one_node_per_tick(self, database, seed, runner):
        workflow = await seed.workflow()
        await seed.nodes(workflow, ("n-start", "start", {}), ("n-act", "action", {"action": "noop"}),
                         ("n-end", "end", {}))
        contact = await seed.contact()
        execution = await seed.execution(workflow, contact.id, "n-start")

        await runner.run()
        assert (await database.get_execution(execution.id)).current_node_id == "n-act"
        await runner.run()
        assert (await database.get_execution(execution.id)).current_node_id == "n-end"
        await runner.run()
        assert (await database.get_execution(execution.id)).status == "completed"

    @pytest.mark.asyncio
    async def test_workflow_filter(self, database, seed, runner):
        first = await seed.workflow()
        second = await seed.workflow()
        await seed.nodes(first, ("a-start", "start", {}))
        await seed.nodes(second, ("b-start", "start", {}))
        contact = await seed.contact()
        await seed.execution(first, contact.id, "a-start")
        await seed.execution(second, contact.id, "b-start")

        summary = await runner.run(workflow_id=second.id)

        assert summary.total == 1

    @pytest.mark.asyncio
    async def test_crashing_execution_does_not_abort_batch(self, database, seed, runner, monkeypatch):
        workflow = await seed.workflow()
        await seed.nodes(workflow, ("n-start", "start", {}))
        contact = await seed.contact()
        await seed.execution(workflow, contact.id, "n-start")
        await seed.execution(workflow, contact.id, "n-start")
        monkeypatch.setattr(database, "get_contact", AsyncMock(side_effect=RuntimeError("db gone")))

        summary = await runner.run()

        assert summary.failed == 2
        assert summary.total == 2

    @pytest.mark.asyncio
    async def test_selection_failure_raises(self, database, runner, monkeypatch):
        monkeypatch.setattr(database, "get_due_executions", AsyncMock(side_effect=RuntimeError("locked")))

        with pytest.raises(BatchQueryError, match="locked"):
            await runner.run()
