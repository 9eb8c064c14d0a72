"""
script2video Analysis Runner

Drives the analysis phase: six ordered sub-steps, three answered by a single
call and three drained from a work queue one item at a time. Every sub-step
waits for an explicit confirm before the next one starts.
"""

from typing import Any, List

from script2video.core.constants import (
    ANALYSIS_ORDER,
    ANALYSIS_STEP_LABELS,
    ANALYSIS_USAGE_SCOPES,
    QUEUE_STEPS,
    SINGLE_ITEM_STEPS,
    USAGE_SCOPE_CONTEXT,
    AnalysisSubStep,
    LocationType,
    Phase,
    RunOutcome,
    StatsCategory,
)
from script2video.core.exceptions import PipelineStateError
from script2video.core.logging_config import get_logger
from script2video.core.models import ProjectData
from script2video.store.patches import (
    Patch,
    PopQueueHead,
    RecordStat,
    RecordUsage,
    SeedQueue,
    SetCharacterForms,
    SetCharacters,
    SetEpisodeSummary,
    SetLocations,
    SetLocationVisuals,
    SetProjectSummary,
    update_workflow,
)
from .base_runner import BaseRunner, CallOutcome

logger = get_logger("pipelines.analysis")

# Sub-steps that do work, in order (IDLE and COMPLETE excluded)
WORK_STEPS: List[AnalysisSubStep] = ANALYSIS_ORDER[1:-1]


class AnalysisSubStepRunner(BaseRunner):
    """Runner for the analysis phase."""

    phase = Phase.ANALYSIS

    def __init__(self, store, service, lock=None, config=None):
        super().__init__("analysis", store, service, lock=lock, config=config)

    # =========================================================================
    # PUBLIC OPERATIONS
    # =========================================================================

    async def start(self) -> RunOutcome:
        """Enter PROJECT_SUMMARY and run it."""
        with self._operation("start"):
            self.store.apply(
                update_workflow(
                    analysis_step=AnalysisSubStep.PROJECT_SUMMARY,
                    analysis_queue=[],
                    analysis_total=0,
                    pending_error=None,
                    step_result_ready=False,
                )
            )
            return await self._run_step(AnalysisSubStep.PROJECT_SUMMARY)

    async def confirm(self) -> RunOutcome:
        """
        Accept the current sub-step's result and move to the next one.

        Returns:
            PHASE_COMPLETE once COMPLETE is reached, otherwise the outcome of
            running the next sub-step
        """
        with self._operation("confirm"):
            data = self._snapshot()
            workflow = data.workflow
            step = workflow.analysis_step

            if step not in WORK_STEPS:
                raise PipelineStateError(
                    f"Nothing to confirm in analysis step '{step.value}'"
                )
            if workflow.pending_error is not None:
                raise PipelineStateError(
                    "Resolve the failed item before confirming",
                    {"step": step.value, "error": workflow.pending_error},
                )
            if workflow.analysis_queue:
                raise PipelineStateError(
                    f"{len(workflow.analysis_queue)} item(s) still queued",
                    {"step": step.value},
                )
            if step in SINGLE_ITEM_STEPS and not workflow.step_result_ready:
                raise PipelineStateError(f"Step '{step.value}' has no result yet")

            next_step = ANALYSIS_ORDER[ANALYSIS_ORDER.index(step) + 1]
            logger.info(f"Confirmed {step.value}, next: {next_step.value}")

            if next_step == AnalysisSubStep.COMPLETE:
                self.store.apply(
                    update_workflow(analysis_step=next_step, step_result_ready=False)
                )
                return RunOutcome.PHASE_COMPLETE

            patches: List[Patch] = [
                update_workflow(analysis_step=next_step, step_result_ready=False)
            ]
            if next_step in QUEUE_STEPS:
                patches.append(SeedQueue(self._queue_items(next_step, data)))
            self.store.apply(*patches)
            return await self._run_step(next_step)

    async def retry(self) -> RunOutcome:
        """Re-run the failed single step, or reissue the queue head and keep draining."""
        with self._operation("retry"):
            data = self._snapshot()
            step = data.workflow.analysis_step
            if data.workflow.pending_error is None:
                raise PipelineStateError(f"No failed item to retry in '{step.value}'")

            self.store.apply(update_workflow(pending_error=None))
            return await self._run_step(step)

    async def skip(self) -> RunOutcome:
        """Drop the failed queue head and keep draining."""
        with self._operation("skip"):
            data = self._snapshot()
            step = data.workflow.analysis_step
            queue = data.workflow.analysis_queue
            if step not in QUEUE_STEPS or data.workflow.pending_error is None or not queue:
                raise PipelineStateError(f"No queued item to skip in '{step.value}'")

            head = queue[0]
            logger.warning(f"Skipping {step.value} item '{head}'")
            self.store.apply(
                RecordStat(StatsCategory.CONTEXT, success=False),
                PopQueueHead(head),
            )
            return await self._drain(step)

    async def resume(self) -> RunOutcome:
        """Continue a reloaded project: retry a failure, finish a queue or rerun an unanswered step."""
        with self._operation("resume"):
            workflow = self._snapshot().workflow
            step = workflow.analysis_step
            if step == AnalysisSubStep.COMPLETE:
                return RunOutcome.PHASE_COMPLETE
            if step not in WORK_STEPS:
                raise PipelineStateError("Analysis has not started")

            if workflow.pending_error is not None:
                self.store.apply(update_workflow(pending_error=None))
                return await self._run_step(step)
            if step in QUEUE_STEPS:
                return await self._drain(step)
            if not workflow.step_result_ready:
                return await self._run_single(step)
            return RunOutcome.AWAITING_CONFIRMATION

    async def drain(self) -> RunOutcome:
        """Process the current queue until it empties or an item fails."""
        with self._operation("drain"):
            step = self._snapshot().workflow.analysis_step
            if step not in QUEUE_STEPS:
                raise PipelineStateError(f"Step '{step.value}' has no queue")
            return await self._drain(step)

    # =========================================================================
    # STEP EXECUTION
    # =========================================================================

    async def _run_step(self, step: AnalysisSubStep) -> RunOutcome:
        if step in SINGLE_ITEM_STEPS:
            return await self._run_single(step)
        return await self._drain(step)

    async def _run_single(self, step: AnalysisSubStep) -> RunOutcome:
        data = self._snapshot()
        script = data.raw_script[:self.config.script_snippet_chars]
        context = data.context
        self._report_progress(step.value, self._step_message(step))

        if step == AnalysisSubStep.PROJECT_SUMMARY:
            outcome = await self._guarded_call(
                "project summary",
                lambda: self.service.project_summary(script, data.style_guide),
            )
            make_patch = SetProjectSummary
        elif step == AnalysisSubStep.CHARACTER_LIST:
            outcome = await self._guarded_call(
                "character list",
                lambda: self.service.character_list(script, context.project_summary),
            )
            make_patch = SetCharacters
        else:
            outcome = await self._guarded_call(
                "location list",
                lambda: self.service.location_list(script, context.project_summary),
            )
            make_patch = SetLocations

        if not outcome.success:
            self._record_failure(step, outcome)
            return RunOutcome.HALTED

        self.store.apply(
            make_patch(outcome.result.result),
            *self._success_patches(step, outcome),
            update_workflow(step_result_ready=True, pending_error=None),
        )
        return RunOutcome.AWAITING_CONFIRMATION

    async def _drain(self, step: AnalysisSubStep) -> RunOutcome:
        while True:
            data = self._snapshot()
            queue = data.workflow.analysis_queue
            if not queue:
                logger.info(f"{step.value}: queue drained")
                return RunOutcome.AWAITING_CONFIRMATION
            if data.workflow.pending_error is not None:
                return RunOutcome.HALTED

            if not await self._process_item(step, queue[0], data):
                return RunOutcome.HALTED

    async def _process_item(self, step: AnalysisSubStep, key: Any, data: ProjectData) -> bool:
        """Run one queue item. Returns False if the call failed."""
        workflow = data.workflow
        position = workflow.analysis_total - len(workflow.analysis_queue) + 1
        script = data.raw_script[:self.config.script_snippet_chars]
        context = data.context

        if step == AnalysisSubStep.EPISODE_SUMMARIES:
            episode = data.episode_by_id(key)
            if episode is None:
                return self._drop_missing(key)
            label = episode.title
            outcome = await self._call_with_progress(
                step, label, position, workflow.analysis_total,
                lambda: self.service.episode_summary(
                    episode.title, episode.content, context.project_summary
                ),
            )
            if outcome.success:
                result_patch = SetEpisodeSummary(episode.id, outcome.result.result)

        elif step == AnalysisSubStep.CHARACTER_DEEP_DIVE:
            if context.character(key) is None:
                return self._drop_missing(key)
            outcome = await self._call_with_progress(
                step, key, position, workflow.analysis_total,
                lambda: self.service.character_deep_dive(
                    key, script, context.project_summary, data.style_guide
                ),
            )
            if outcome.success:
                result_patch = SetCharacterForms(key, outcome.result.result)

        else:
            if context.location(key) is None:
                return self._drop_missing(key)
            outcome = await self._call_with_progress(
                step, key, position, workflow.analysis_total,
                lambda: self.service.location_deep_dive(key, script, data.style_guide),
            )
            if outcome.success:
                result_patch = SetLocationVisuals(key, outcome.result.result)

        if not outcome.success:
            self._record_failure(step, outcome)
            return False

        self.store.apply(
            result_patch,
            *self._success_patches(step, outcome),
            PopQueueHead(key),
        )
        return True

    async def _call_with_progress(self, step, label, current, total, call) -> CallOutcome:
        self._report_progress(
            step.value,
            f"{self._step_message(step)} {label} ({current}/{total})",
            current,
            total,
        )
        return await self._guarded_call(f"{step.value} '{label}'", call)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _queue_items(self, step: AnalysisSubStep, data: ProjectData) -> List[Any]:
        if step == AnalysisSubStep.EPISODE_SUMMARIES:
            return [episode.id for episode in data.episodes]
        if step == AnalysisSubStep.CHARACTER_DEEP_DIVE:
            return [c.name for c in data.context.characters if c.is_main]
        return [l.name for l in data.context.locations if l.type == LocationType.CORE]

    def _success_patches(self, step: AnalysisSubStep, outcome: CallOutcome) -> List[Patch]:
        return [
            RecordUsage(outcome.result.usage, (USAGE_SCOPE_CONTEXT, ANALYSIS_USAGE_SCOPES[step])),
            RecordStat(StatsCategory.CONTEXT, success=True),
        ]

    def _record_failure(self, step: AnalysisSubStep, outcome: CallOutcome) -> None:
        patches: List[Patch] = [update_workflow(pending_error=outcome.error, step_result_ready=False)]
        # Queue items are counted when skipped
        if step in SINGLE_ITEM_STEPS:
            patches.append(RecordStat(StatsCategory.CONTEXT, success=False))
        self.store.apply(*patches)

    def _drop_missing(self, key: Any) -> bool:
        logger.debug(f"Queue item '{key}' no longer exists, dropping")
        self.store.apply(PopQueueHead(key))
        return True

    @staticmethod
    def _step_message(step: AnalysisSubStep) -> str:
        number = WORK_STEPS.index(step) + 1
        return f"Step {number}/{len(WORK_STEPS)}: {ANALYSIS_STEP_LABELS[step]}"
