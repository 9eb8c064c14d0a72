"""
Tests for Analysis Runner Module

Tests for script2video/pipelines/analysis_runner.py
"""

import pytest

from script2video.core.constants import AnalysisSubStep, RunOutcome, StatsCategory
from script2video.core.exceptions import PipelineBusyError, PipelineStateError
from script2video.core.models import Character
from script2video.pipelines import AnalysisSubStepRunner, ExecutionLock
from script2video.store import SeedQueue, SetCharacters, update_workflow


@pytest.fixture
def runner(store, service, pipeline_config):
    return AnalysisSubStepRunner(store, service, config=pipeline_config)


async def confirm_times(runner, count):
    outcome = None
    for _ in range(count):
        outcome = await runner.confirm()
    return outcome


class TestSingleItemSteps:
    """Tests for the steps answered by one call."""

    @pytest.mark.asyncio
    async def test_start_runs_project_summary(self, runner, store):
        outcome = await runner.start()

        data = store.snapshot()
        assert outcome == RunOutcome.AWAITING_CONFIRMATION
        assert data.workflow.analysis_step == AnalysisSubStep.PROJECT_SUMMARY
        assert data.workflow.step_result_ready
        assert data.context.project_summary == "Project summary"
        assert data.usage.get("context").total_tokens == 15
        assert data.usage.get("phase1.project_summary").total_tokens == 15
        assert data.stats.get(StatsCategory.CONTEXT).success == 1

    @pytest.mark.asyncio
    async def test_failure_halts_and_blocks_confirm(self, runner, store, service):
        service.fail("project_summary", message="quota exceeded")

        outcome = await runner.start()

        data = store.snapshot()
        assert outcome == RunOutcome.HALTED
        assert data.workflow.pending_error == "quota exceeded"
        assert not data.workflow.step_result_ready
        assert data.stats.get(StatsCategory.CONTEXT).error == 1
        with pytest.raises(PipelineStateError):
            await runner.confirm()

    @pytest.mark.asyncio
    async def test_retry_single_step(self, runner, store, service):
        service.fail("project_summary")
        await runner.start()

        outcome = await runner.retry()

        assert outcome == RunOutcome.AWAITING_CONFIRMATION
        assert store.snapshot().workflow.pending_error is None
        assert service.count("project_summary") == 2

    @pytest.mark.asyncio
    async def test_confirm_before_start(self, runner):
        with pytest.raises(PipelineStateError):
            await runner.confirm()

    @pytest.mark.asyncio
    async def test_retry_without_failure(self, runner):
        await runner.start()

        with pytest.raises(PipelineStateError):
            await runner.retry()


class TestQueueSteps:
    """Tests for the steps drained from a work queue."""

    @pytest.mark.asyncio
    async def test_episode_summaries_drain(self, runner, store, service):
        await runner.start()

        outcome = await runner.confirm()

        data = store.snapshot()
        assert outcome == RunOutcome.AWAITING_CONFIRMATION
        assert data.workflow.analysis_step == AnalysisSubStep.EPISODE_SUMMARIES
        assert data.workflow.analysis_queue == []
        assert data.workflow.analysis_total == 3
        assert [ep.summary for ep in data.episodes] == [
            "Episode 1 summary", "Episode 2 summary", "Episode 3 summary"
        ]
        assert len(data.context.episode_summaries) == 3
        assert data.usage.get("phase1.episode_summaries").total_tokens == 45

    @pytest.mark.asyncio
    async def test_failed_item_halts_queue(self, runner, store, service):
        service.fail("episode_summary", "Episode 2")
        await runner.start()

        outcome = await runner.confirm()

        data = store.snapshot()
        assert outcome == RunOutcome.HALTED
        assert data.workflow.analysis_queue == [2, 3]
        assert data.workflow.pending_error == "boom"
        assert data.episodes[0].summary == "Episode 1 summary"
        assert service.count("episode_summary", "Episode 3") == 0
        with pytest.raises(PipelineStateError):
            await runner.confirm()

    @pytest.mark.asyncio
    async def test_retry_reissues_head(self, runner, store, service):
        service.fail("episode_summary", "Episode 2")
        await runner.start()
        await runner.confirm()

        outcome = await runner.retry()

        data = store.snapshot()
        stats = data.stats.get(StatsCategory.CONTEXT)
        assert outcome == RunOutcome.AWAITING_CONFIRMATION
        assert data.episodes[1].summary == "Episode 2 summary"
        assert data.episodes[2].summary == "Episode 3 summary"
        assert service.count("episode_summary", "Episode 2") == 2
        assert (stats.total, stats.success, stats.error) == (4, 4, 0)

    @pytest.mark.asyncio
    async def test_skip_drops_head(self, runner, store, service):
        service.fail("episode_summary", "Episode 2")
        await runner.start()
        await runner.confirm()

        outcome = await runner.skip()

        data = store.snapshot()
        stats = data.stats.get(StatsCategory.CONTEXT)
        assert outcome == RunOutcome.AWAITING_CONFIRMATION
        assert data.episodes[1].summary == ""
        assert data.episodes[2].summary == "Episode 3 summary"
        assert service.count("episode_summary", "Episode 2") == 1
        assert (stats.total, stats.success, stats.error) == (4, 3, 1)

    @pytest.mark.asyncio
    async def test_failed_item_not_counted_until_skipped(self, runner, store, service):
        service.fail("episode_summary", "Episode 2", times=2)
        await runner.start()
        await runner.confirm()
        await runner.retry()

        assert store.snapshot().stats.get(StatsCategory.CONTEXT).error == 0

        await runner.skip()

        stats = store.snapshot().stats.get(StatsCategory.CONTEXT)
        assert service.count("episode_summary", "Episode 2") == 2
        assert (stats.success, stats.error) == (3, 1)

    @pytest.mark.asyncio
    async def test_skip_without_failure(self, runner):
        await runner.start()
        await runner.confirm()

        with pytest.raises(PipelineStateError):
            await runner.skip()

    @pytest.mark.asyncio
    async def test_missing_item_is_dropped(self, runner, store, service):
        store.apply(
            SetCharacters([Character("char-1", "Ann", is_main=True)]),
            update_workflow(analysis_step=AnalysisSubStep.CHARACTER_DEEP_DIVE),
            SeedQueue(["Ghost", "Ann"]),
        )

        outcome = await runner.drain()

        assert outcome == RunOutcome.AWAITING_CONFIRMATION
        assert service.keys("character_deep_dive") == ["Ann"]
        assert store.snapshot().workflow.analysis_queue == []


class TestFullAnalysis:
    """Tests for walking every sub-step."""

    @pytest.mark.asyncio
    async def test_walk_to_complete(self, runner, store, service):
        await runner.start()

        outcome = await confirm_times(runner, 6)

        data = store.snapshot()
        assert outcome == RunOutcome.PHASE_COMPLETE
        assert data.workflow.analysis_step == AnalysisSubStep.COMPLETE
        assert service.keys("character_deep_dive") == ["Ann", "Bob"]
        assert service.keys("location_deep_dive") == ["Living Room", "Rooftop"]
        assert data.context.character("Ann").forms[0].visual_tags == "Ann tags"
        assert data.context.character("Extra").forms == []
        assert data.context.location("Rooftop").visuals == "Rooftop visuals"
        assert data.context.location("Street").visuals == ""
        assert data.stats.get(StatsCategory.CONTEXT).total == 10
        assert data.usage.get("context").total_tokens == 150

    @pytest.mark.asyncio
    async def test_confirm_after_complete(self, runner):
        await runner.start()
        await confirm_times(runner, 6)

        with pytest.raises(PipelineStateError):
            await runner.confirm()

    @pytest.mark.asyncio
    async def test_progress_messages(self, runner):
        updates = []
        runner.set_progress_callback(updates.append)

        await runner.start()
        await runner.confirm()

        messages = [u["message"] for u in updates]
        assert messages[0] == "Step 1/6: Analyzing Global Project Arc"
        assert messages[1] == "Step 2/6: Analyzing Episode Episode 1 (1/3)"
        assert updates[3]["current"] == 3
        assert updates[3]["total"] == 3
        assert all(u["phase"] == "analysis" for u in updates)


class TestResume:
    """Tests for resuming a stored analysis."""

    @pytest.mark.asyncio
    async def test_resume_retries_failure(self, runner, service):
        service.fail("episode_summary", "Episode 2")
        await runner.start()
        await runner.confirm()

        outcome = await runner.resume()

        assert outcome == RunOutcome.AWAITING_CONFIRMATION
        assert service.count("episode_summary", "Episode 2") == 2

    @pytest.mark.asyncio
    async def test_resume_waiting_step_is_idempotent(self, runner, service):
        await runner.start()
        calls = len(service.calls)

        assert await runner.resume() == RunOutcome.AWAITING_CONFIRMATION
        assert await runner.resume() == RunOutcome.AWAITING_CONFIRMATION
        assert len(service.calls) == calls

    @pytest.mark.asyncio
    async def test_resume_not_started(self, runner):
        with pytest.raises(PipelineStateError):
            await runner.resume()


class TestExecutionLock:
    """Tests for the shared lock."""

    @pytest.mark.asyncio
    async def test_busy_lock_rejects_commands(self, store, service, pipeline_config):
        lock = ExecutionLock()
        runner = AnalysisSubStepRunner(store, service, lock=lock, config=pipeline_config)

        with lock.hold("shots.generate"):
            with pytest.raises(PipelineBusyError):
                await runner.start()

        assert service.calls == []
        assert not lock.busy
