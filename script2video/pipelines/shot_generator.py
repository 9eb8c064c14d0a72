"""
script2video Episode Shot Generator

Drives the shot generation phase: walks the episodes in order, generates a
shot list for each one and halts for review or on the first failure.
"""

from typing import Optional

from script2video.core.constants import (
    USAGE_SCOPE_SHOT_GEN,
    EpisodeStatus,
    Phase,
    RunOutcome,
    StatsCategory,
)
from script2video.core.exceptions import EpisodeNotFoundError, PipelineStateError
from script2video.core.logging_config import get_logger
from script2video.store.patches import (
    RecordStat,
    RecordUsage,
    ReplaceShots,
    update_episode,
    update_workflow,
)
from .base_runner import BaseRunner

logger = get_logger("pipelines.shots")

# Episodes in these states with shots already present are not regenerated
_SETTLED = (EpisodeStatus.CONFIRMED_SHOTS, EpisodeStatus.COMPLETED)


class EpisodeShotGenerator(BaseRunner):
    """Runner for the shot generation phase."""

    phase = Phase.SHOT_GENERATION

    def __init__(self, store, service, lock=None, config=None):
        super().__init__("shots", store, service, lock=lock, config=config)

    @property
    def cursor(self) -> int:
        return self._snapshot().workflow.current_episode_index

    async def start(self) -> RunOutcome:
        """Point the cursor at the first episode without shots and generate from there."""
        with self._operation("start"):
            episodes = self._snapshot().episodes
            cursor = next((i for i, ep in enumerate(episodes) if not ep.has_shots), 0)
            return await self._generate(cursor)

    async def generate(self, index: int) -> RunOutcome:
        with self._operation("generate"):
            return await self._generate(index)

    async def confirm(self, index: Optional[int] = None) -> RunOutcome:
        """
        Confirm the shots of an episode and continue with the next one.

        Args:
            index: Episode to confirm (defaults to the cursor)
        """
        with self._operation("confirm"):
            data = self._snapshot()
            index = data.workflow.current_episode_index if index is None else index
            if index < 0 or index >= len(data.episodes):
                raise EpisodeNotFoundError(index)

            episode = data.episodes[index]
            if episode.status != EpisodeStatus.REVIEW_SHOTS:
                raise PipelineStateError(
                    f"Episode {episode.id} is '{episode.status.value}', not awaiting shot review",
                    {"episode_id": episode.id},
                )

            self.store.apply(
                update_episode(index, status=EpisodeStatus.CONFIRMED_SHOTS),
                update_workflow(current_episode_index=index + 1),
            )
            logger.info(f"Shots confirmed for episode {episode.id}")
            return await self._generate(index + 1)

    async def retry(self) -> RunOutcome:
        """Regenerate the episode at the cursor after a failure."""
        with self._operation("retry"):
            data = self._snapshot()
            index = data.workflow.current_episode_index
            if index >= len(data.episodes) or data.episodes[index].status != EpisodeStatus.ERROR:
                raise PipelineStateError("No failed episode at the cursor to retry")
            return await self._generate(index)

    async def _generate(self, index: int) -> RunOutcome:
        while True:
            data = self._snapshot()
            total = len(data.episodes)

            if index >= total:
                self.store.apply(update_workflow(current_episode_index=0))
                logger.info("Shot generation complete for all episodes")
                return RunOutcome.PHASE_COMPLETE

            episode = data.episodes[index]
            if episode.has_shots and episode.status in _SETTLED:
                logger.debug(f"Episode {episode.id} already has shots, skipping")
                index += 1
                self.store.apply(update_workflow(current_episode_index=index))
                continue

            self.store.apply(
                update_episode(index, status=EpisodeStatus.GENERATING, error_msg=None),
                update_workflow(current_episode_index=index),
            )
            self._report_progress(
                "episode_shots",
                f"Generating shots for {episode.title} ({index + 1}/{total})",
                index + 1,
                total,
            )

            outcome = await self._guarded_call(
                f"shots for episode {episode.id}",
                lambda: self.service.episode_shots(
                    episode.title,
                    episode.content,
                    episode.summary,
                    data.context,
                    data.shot_guide,
                    index,
                    data.style_guide,
                ),
            )

            if not outcome.success:
                self.store.apply(
                    update_episode(index, status=EpisodeStatus.ERROR, error_msg=outcome.error),
                    RecordStat(StatsCategory.SHOT_GEN, success=False),
                )
                return RunOutcome.HALTED

            usage = outcome.result.usage
            self.store.apply(
                ReplaceShots(index, outcome.result.result),
                update_episode(
                    index,
                    status=EpisodeStatus.REVIEW_SHOTS,
                    shot_gen_usage=episode.shot_gen_usage + usage,
                ),
                RecordUsage(usage, (USAGE_SCOPE_SHOT_GEN,)),
                RecordStat(StatsCategory.SHOT_GEN, success=True),
            )
            return RunOutcome.AWAITING_CONFIRMATION
