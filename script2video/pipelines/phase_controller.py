"""
script2video Phase Controller

Top-level state machine over the pipeline phases. It owns the three runners,
routes user commands to the runner of the active phase and performs the
phase transitions, which always need an explicit confirmation.
"""

from typing import Optional

from script2video.core.config import PipelineConfig
from script2video.core.constants import (
    AnalysisSubStep,
    EpisodeStatus,
    Phase,
    RunOutcome,
)
from script2video.core.exceptions import (
    ConfirmationRequiredError,
    PhaseTransitionError,
    PipelineBusyError,
    PipelineStateError,
)
from script2video.core.logging_config import get_logger
from script2video.llm.generation_service import GenerationService
from script2video.store.patches import update_workflow
from script2video.store.project_store import ProjectStore
from .analysis_runner import AnalysisSubStepRunner
from .base_runner import ExecutionLock, ProgressCallback
from .prompt_generator import ScenePromptGenerator
from .shot_generator import EpisodeShotGenerator

logger = get_logger("pipelines.controller")


class PhaseController:
    """
    Phase state machine composing the three runners.

    The active phase lives in the project's workflow state, so a controller
    built over a reloaded store picks up where the previous run stopped.
    """

    def __init__(
        self,
        store: ProjectStore,
        service: GenerationService,
        config: Optional[PipelineConfig] = None
    ):
        self.store = store
        self.lock = ExecutionLock()
        self.analysis = AnalysisSubStepRunner(store, service, lock=self.lock, config=config)
        self.shots = EpisodeShotGenerator(store, service, lock=self.lock, config=config)
        self.prompts = ScenePromptGenerator(store, service, lock=self.lock, config=config)
        self.last_outcome = RunOutcome.IDLE

    @property
    def phase(self) -> Phase:
        return self.store.snapshot().workflow.phase

    @property
    def busy(self) -> bool:
        return self.lock.busy

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        for runner in (self.analysis, self.shots, self.prompts):
            runner.set_progress_callback(callback)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def advance(self, confirmed: bool = False, skip_shot_generation: bool = False) -> Phase:
        """
        Move to the next phase and start its runner.

        Args:
            confirmed: Must be True; transitions are never implicit
            skip_shot_generation: From completed analysis, go straight to
                prompt generation (every episode must already have shots)

        Returns:
            The phase after the transition
        """
        if not confirmed:
            raise ConfirmationRequiredError("advance the pipeline phase")

        data = self.store.snapshot()
        current = data.workflow.phase

        if current == Phase.IDLE:
            self._enter(Phase.ANALYSIS)
            await self._run(self.analysis.start())

        elif current == Phase.ANALYSIS:
            if data.workflow.analysis_step != AnalysisSubStep.COMPLETE:
                target = Phase.PROMPT_GENERATION if skip_shot_generation else Phase.SHOT_GENERATION
                raise PhaseTransitionError(
                    current.value, target.value,
                    f"analysis is at '{data.workflow.analysis_step.value}'",
                )
            if skip_shot_generation:
                missing = [ep.id for ep in data.episodes if not ep.has_shots]
                if missing or not data.episodes:
                    raise PhaseTransitionError(
                        current.value, Phase.PROMPT_GENERATION.value,
                        f"episodes without shots: {missing}",
                    )
                ScenePromptGenerator.check_ready(data)
                self._enter(Phase.PROMPT_GENERATION)
                await self._run(self.prompts.start())
            else:
                self._enter(Phase.SHOT_GENERATION)
                await self._run(self.shots.start())

        elif current == Phase.SHOT_GENERATION:
            unsettled = [
                ep.id for ep in data.episodes
                if ep.status not in (EpisodeStatus.CONFIRMED_SHOTS, EpisodeStatus.COMPLETED)
            ]
            if unsettled:
                raise PhaseTransitionError(
                    current.value, Phase.PROMPT_GENERATION.value,
                    f"episodes without confirmed shots: {unsettled}",
                )
            ScenePromptGenerator.check_ready(data)
            self._enter(Phase.PROMPT_GENERATION)
            await self._run(self.prompts.start())

        elif current == Phase.PROMPT_GENERATION:
            unfinished = [
                ep.id for ep in data.episodes
                if ep.has_shots and ep.status != EpisodeStatus.COMPLETED
            ]
            if unfinished:
                raise PhaseTransitionError(
                    current.value, Phase.DONE.value,
                    f"episodes without confirmed prompts: {unfinished}",
                )
            self._enter(Phase.DONE)

        else:
            raise PhaseTransitionError(current.value, "next", "the pipeline is done")

        return self.phase

    def reset(self) -> None:
        """Return the workflow to IDLE; episodes and context are kept."""
        self._ensure_idle_lock("reset")
        self.store.apply(
            update_workflow(
                phase=Phase.IDLE,
                analysis_step=AnalysisSubStep.IDLE,
                current_episode_index=0,
                analysis_queue=[],
                analysis_total=0,
                pending_error=None,
                step_result_ready=False,
            )
        )
        self.last_outcome = RunOutcome.IDLE
        logger.info("Workflow reset to idle")

    async def resume(self) -> RunOutcome:
        """Re-enter the active phase's runner at the stored cursor."""
        data = self.store.snapshot()
        phase = data.workflow.phase
        cursor = data.workflow.current_episode_index

        if phase == Phase.ANALYSIS:
            if data.workflow.analysis_step == AnalysisSubStep.IDLE:
                return await self._run(self.analysis.start())
            return await self._run(self.analysis.resume())
        if phase == Phase.SHOT_GENERATION:
            if cursor < len(data.episodes) and data.episodes[cursor].status == EpisodeStatus.REVIEW_SHOTS:
                self.last_outcome = RunOutcome.AWAITING_CONFIRMATION
                return self.last_outcome
            return await self._run(self.shots.generate(cursor))
        if phase == Phase.PROMPT_GENERATION:
            ScenePromptGenerator.check_ready(data)
            return await self._run(self.prompts.generate(cursor))
        return RunOutcome.IDLE

    # =========================================================================
    # DELEGATED COMMANDS
    # =========================================================================

    async def confirm_analysis_step(self) -> RunOutcome:
        self._require(Phase.ANALYSIS, "confirm an analysis step")
        return await self._run(self.analysis.confirm())

    async def retry_analysis_item(self) -> RunOutcome:
        self._require(Phase.ANALYSIS, "retry an analysis item")
        return await self._run(self.analysis.retry())

    async def skip_analysis_item(self) -> RunOutcome:
        self._require(Phase.ANALYSIS, "skip an analysis item")
        return await self._run(self.analysis.skip())

    async def confirm_episode(self, index: Optional[int] = None) -> RunOutcome:
        return await self._run(self._episode_runner("confirm an episode").confirm(index))

    async def retry_episode(self) -> RunOutcome:
        return await self._run(self._episode_runner("retry an episode").retry())

    async def regenerate_prompts(self, index: Optional[int] = None) -> RunOutcome:
        self._require(Phase.PROMPT_GENERATION, "regenerate prompts")
        return await self._run(self.prompts.regenerate(index))

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _run(self, operation) -> RunOutcome:
        """Await a runner operation and follow any phase completion it reports."""
        outcome = await operation

        while outcome == RunOutcome.PHASE_COMPLETE:
            phase = self.phase
            if phase == Phase.SHOT_GENERATION:
                self._enter(Phase.PROMPT_GENERATION)
                try:
                    ScenePromptGenerator.check_ready(self.store.snapshot())
                except PipelineStateError as e:
                    logger.warning(f"Prompt generation waiting: {e.message}")
                    outcome = RunOutcome.IDLE
                    break
                outcome = await self.prompts.start()
            elif phase == Phase.PROMPT_GENERATION:
                self._enter(Phase.DONE)
                break
            else:
                # Completed analysis waits for an explicit advance()
                break

        self.last_outcome = outcome
        return outcome

    def _enter(self, phase: Phase) -> None:
        self._ensure_idle_lock(f"enter {phase.value}")
        self.store.apply(update_workflow(phase=phase, current_episode_index=0))
        logger.info(f"Entered phase: {phase.value}")

    def _require(self, phase: Phase, action: str) -> None:
        current = self.phase
        if current != phase:
            raise PipelineStateError(
                f"Cannot {action} during phase '{current.value}'",
                {"phase": current.value},
            )

    def _episode_runner(self, action: str):
        current = self.phase
        if current == Phase.SHOT_GENERATION:
            return self.shots
        if current == Phase.PROMPT_GENERATION:
            return self.prompts
        raise PipelineStateError(
            f"Cannot {action} during phase '{current.value}'",
            {"phase": current.value},
        )

    def _ensure_idle_lock(self, action: str) -> None:
        if self.lock.busy:
            raise PipelineBusyError(self.lock.owner, f"controller.{action}")
