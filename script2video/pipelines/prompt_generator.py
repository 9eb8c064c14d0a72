"""
script2video Scene Prompt Generator

Drives the prompt generation phase. Each episode's shots are grouped into
scene chunks (one service call per chunk); every successful chunk is
checkpointed before the next one starts, so a failed episode can resume
from the first incomplete chunk.
"""

import asyncio
from collections import OrderedDict
from typing import Dict, List, Optional

from script2video.core.constants import (
    DEFAULT_SCENE_KEY,
    SHOT_ID_SEPARATOR,
    USAGE_SCOPE_SORA_GEN,
    EpisodeStatus,
    Phase,
    RunOutcome,
    StatsCategory,
)
from script2video.core.exceptions import EpisodeNotFoundError, PipelineStateError
from script2video.core.ledger import TokenUsage
from script2video.core.logging_config import get_logger
from script2video.core.models import ProjectData, Shot
from script2video.store.patches import (
    ClearShotPrompts,
    MergeShotPrompts,
    RecordStat,
    RecordUsage,
    update_episode,
    update_workflow,
)
from .base_runner import BaseRunner

logger = get_logger("pipelines.prompts")


def scene_key(shot_id: str) -> str:
    """
    Scene key of a shot id: every segment but the last.

    "1-1-01" -> "1-1", "2-01" -> "2", "07" -> "default".
    """
    if SHOT_ID_SEPARATOR not in shot_id:
        return DEFAULT_SCENE_KEY
    return shot_id.rsplit(SHOT_ID_SEPARATOR, 1)[0]


def group_shots_by_scene(shots: List[Shot]) -> "OrderedDict[str, List[Shot]]":
    """Group shots by scene key, keeping first-seen key order and shot order."""
    chunks: "OrderedDict[str, List[Shot]]" = OrderedDict()
    for shot in shots:
        chunks.setdefault(scene_key(shot.id), []).append(shot)
    return chunks


class ScenePromptGenerator(BaseRunner):
    """Runner for the prompt generation phase."""

    phase = Phase.PROMPT_GENERATION

    def __init__(self, store, service, lock=None, config=None):
        super().__init__("prompts", store, service, lock=lock, config=config)

    @property
    def cursor(self) -> int:
        return self._snapshot().workflow.current_episode_index

    async def start(self) -> RunOutcome:
        """Start from the first episode; needs a prompt guide and at least one shot list."""
        with self._operation("start"):
            self.check_ready(self._snapshot())
            self.store.apply(update_workflow(current_episode_index=0))
            return await self._generate(0)

    @staticmethod
    def check_ready(data: ProjectData) -> None:
        """Raise PipelineStateError unless prompt generation can start."""
        if not data.prompt_guide.strip():
            raise PipelineStateError("A prompt guide is required before generating prompts")
        if not any(ep.has_shots for ep in data.episodes):
            raise PipelineStateError("No episode has shots to write prompts for")

    async def generate(self, index: int) -> RunOutcome:
        with self._operation("generate"):
            return await self._generate(index)

    async def confirm(self, index: Optional[int] = None) -> RunOutcome:
        """Mark an episode's prompts as final and move on to the next episode."""
        with self._operation("confirm"):
            data = self._snapshot()
            index = data.workflow.current_episode_index if index is None else index
            if index < 0 or index >= len(data.episodes):
                raise EpisodeNotFoundError(index)

            episode = data.episodes[index]
            if episode.status != EpisodeStatus.REVIEW_SORA:
                raise PipelineStateError(
                    f"Episode {episode.id} is '{episode.status.value}', not awaiting prompt review",
                    {"episode_id": episode.id},
                )

            self.store.apply(
                update_episode(index, status=EpisodeStatus.COMPLETED),
                update_workflow(current_episode_index=index + 1),
            )
            logger.info(f"Prompts confirmed for episode {episode.id}")
            return await self._generate(index + 1)

    async def retry(self) -> RunOutcome:
        """Resume the failed episode at the cursor, skipping finished chunks."""
        with self._operation("retry"):
            data = self._snapshot()
            index = data.workflow.current_episode_index
            if index >= len(data.episodes) or data.episodes[index].status != EpisodeStatus.ERROR:
                raise PipelineStateError("No failed episode at the cursor to retry")
            return await self._generate(index)

    async def regenerate(self, index: Optional[int] = None) -> RunOutcome:
        """Throw away an episode's prompts and generate every chunk again."""
        with self._operation("regenerate"):
            data = self._snapshot()
            index = data.workflow.current_episode_index if index is None else index
            if index < 0 or index >= len(data.episodes):
                raise EpisodeNotFoundError(index)

            episode = data.episodes[index]
            if episode.status == EpisodeStatus.COMPLETED:
                raise PipelineStateError(f"Episode {episode.id} is completed")

            self.store.apply(
                ClearShotPrompts(index),
                update_episode(index, status=EpisodeStatus.CONFIRMED_SHOTS, error_msg=None),
                update_workflow(current_episode_index=index),
            )
            return await self._generate(index, force=True)

    async def _generate(self, index: int, force: bool = False) -> RunOutcome:
        while True:
            data = self._snapshot()
            if index >= len(data.episodes):
                self.store.apply(update_workflow(current_episode_index=0))
                logger.info("Prompt generation complete for all episodes")
                return RunOutcome.PHASE_COMPLETE

            episode = data.episodes[index]
            if not episode.has_shots or episode.status == EpisodeStatus.COMPLETED:
                logger.debug(f"Episode {episode.id} has nothing to generate, skipping")
                index += 1
                self.store.apply(update_workflow(current_episode_index=index))
                continue

            self.store.apply(update_workflow(current_episode_index=index))
            if episode.status == EpisodeStatus.REVIEW_SORA:
                return RunOutcome.AWAITING_CONFIRMATION

            resume = not force and episode.status == EpisodeStatus.ERROR
            return await self._generate_episode(index, resume)

    async def _generate_episode(self, index: int, resume: bool) -> RunOutcome:
        data = self._snapshot()
        episode = data.episodes[index]
        chunks = group_shots_by_scene(episode.shots)
        running = episode.sora_gen_usage if resume else TokenUsage()

        self.store.apply(
            update_episode(index, status=EpisodeStatus.GENERATING_SORA, error_msg=None),
        )
        logger.info(
            f"Generating prompts for {episode.title}: {len(chunks)} scene(s)"
            + (" (resuming)" if resume else "")
        )

        for position, (key, chunk) in enumerate(chunks.items(), start=1):
            if resume and all(shot.prompt_generated for shot in chunk):
                self._report_progress(
                    "scene_prompts",
                    f"Skipping completed scene {key} ({position}/{len(chunks)})",
                    position,
                    len(chunks),
                )
                continue

            self._report_progress(
                "scene_prompts",
                f"Writing prompts for scene {key} ({position}/{len(chunks)})",
                position,
                len(chunks),
            )
            outcome = await self._guarded_call(
                f"prompts for scene {key} of episode {episode.id}",
                lambda: self.service.scene_prompts(
                    chunk, data.context, data.prompt_guide, data.style_guide
                ),
            )

            if not outcome.success:
                self.store.apply(
                    update_episode(
                        index,
                        status=EpisodeStatus.ERROR,
                        error_msg=outcome.error,
                        sora_gen_usage=running,
                    ),
                    RecordStat(StatsCategory.SORA_GEN, success=False),
                )
                return RunOutcome.HALTED

            chunk_ids = {shot.id for shot in chunk}
            prompts: Dict[str, str] = {
                shot_id: prompt
                for shot_id, prompt in outcome.result.result.items()
                if shot_id in chunk_ids
            }
            usage = outcome.result.usage
            running = running + usage
            self.store.apply(
                MergeShotPrompts(index, prompts),
                update_episode(index, sora_gen_usage=running),
                RecordUsage(usage, (USAGE_SCOPE_SORA_GEN,)),
            )
            await asyncio.sleep(self.config.chunk_delay_seconds)

        self.store.apply(
            update_episode(index, status=EpisodeStatus.REVIEW_SORA),
            RecordStat(StatsCategory.SORA_GEN, success=True),
        )
        return RunOutcome.AWAITING_CONFIRMATION
