"""
script2video Project Patches

Commands the runners hand to a ProjectStore. Each patch mutates the working
copy it is given; the store applies a batch of patches to one copy and
commits it atomically, so a runner step never leaves a half-written record.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple

from script2video.core.constants import EpisodeStatus, StatsCategory
from script2video.core.exceptions import (
    EpisodeNotFoundError,
    PipelineStateError,
    ProjectError,
)
from script2video.core.ledger import TokenUsage
from script2video.core.models import (
    Character,
    CharacterForm,
    Episode,
    EpisodeSummary,
    Location,
    ProjectData,
    Shot,
    WorkflowState,
)

_EPISODE_FIELDS = {f.name for f in fields(Episode)}
_WORKFLOW_FIELDS = {f.name for f in fields(WorkflowState)}


class Patch:
    """Base class for all project patches."""

    def apply(self, data: ProjectData) -> None:
        raise NotImplementedError


def _episode_at(data: ProjectData, index: int) -> Episode:
    if index < 0 or index >= len(data.episodes):
        raise EpisodeNotFoundError(index)
    return data.episodes[index]


# =============================================================================
# EPISODES
# =============================================================================

@dataclass
class UpdateEpisode(Patch):
    """Set fields on the episode at ``index``."""
    index: int
    changes: Dict[str, Any] = field(default_factory=dict)

    def apply(self, data: ProjectData) -> None:
        episode = _episode_at(data, self.index)
        unknown = set(self.changes) - _EPISODE_FIELDS
        if unknown:
            raise ProjectError(f"Unknown episode fields: {sorted(unknown)}")

        new_status = self.changes.get("status")
        if (
            new_status is not None
            and episode.status == EpisodeStatus.COMPLETED
            and new_status != EpisodeStatus.COMPLETED
        ):
            raise PipelineStateError(
                f"Episode {episode.id} is completed and cannot return to '{new_status.value}'",
                {"episode_id": episode.id},
            )

        for name, value in self.changes.items():
            setattr(episode, name, value)


def update_episode(index: int, **changes: Any) -> UpdateEpisode:
    return UpdateEpisode(index=index, changes=changes)


@dataclass
class MergeShotPrompts(Patch):
    """Write generated prompts onto shots by id; other shots stay untouched."""
    index: int
    prompts: Dict[str, str]

    def apply(self, data: ProjectData) -> None:
        episode = _episode_at(data, self.index)
        episode.shots = [
            shot.with_prompt(self.prompts[shot.id]) if shot.id in self.prompts else shot
            for shot in episode.shots
        ]


@dataclass
class ClearShotPrompts(Patch):
    """Forget every generated prompt of one episode."""
    index: int

    def apply(self, data: ProjectData) -> None:
        episode = _episode_at(data, self.index)
        episode.shots = [shot.cleared() for shot in episode.shots]


@dataclass
class ReplaceShots(Patch):
    """Install a full shot list (generated or imported)."""
    index: int
    shots: List[Shot]

    def apply(self, data: ProjectData) -> None:
        episode = _episode_at(data, self.index)
        episode.shots = list(self.shots)


# =============================================================================
# ANALYSIS CONTEXT
# =============================================================================

@dataclass
class SetProjectSummary(Patch):
    summary: str

    def apply(self, data: ProjectData) -> None:
        data.context.project_summary = self.summary


@dataclass
class SetEpisodeSummary(Patch):
    """Write an episode summary to the episode and the context list."""
    episode_id: int
    summary: str

    def apply(self, data: ProjectData) -> None:
        episode = data.episode_by_id(self.episode_id)
        if episode is None:
            raise ProjectError(f"No episode with id {self.episode_id}")
        episode.summary = self.summary
        others = [s for s in data.context.episode_summaries if s.episode_id != self.episode_id]
        data.context.episode_summaries = others + [EpisodeSummary(self.episode_id, self.summary)]


@dataclass
class SetCharacters(Patch):
    characters: List[Character]

    def apply(self, data: ProjectData) -> None:
        data.context.characters = list(self.characters)


@dataclass
class SetCharacterForms(Patch):
    name: str
    forms: List[CharacterForm]

    def apply(self, data: ProjectData) -> None:
        character = data.context.character(self.name)
        if character is None:
            raise ProjectError(f"No character named '{self.name}'")
        character.forms = list(self.forms)


@dataclass
class SetLocations(Patch):
    locations: List[Location]

    def apply(self, data: ProjectData) -> None:
        data.context.locations = list(self.locations)


@dataclass
class SetLocationVisuals(Patch):
    name: str
    visuals: str

    def apply(self, data: ProjectData) -> None:
        location = data.context.location(self.name)
        if location is None:
            raise ProjectError(f"No location named '{self.name}'")
        location.visuals = self.visuals


@dataclass
class SetGuides(Patch):
    """Load guide documents; None leaves a guide unchanged."""
    shot_guide: Optional[str] = None
    prompt_guide: Optional[str] = None
    style_guide: Optional[str] = None

    def apply(self, data: ProjectData) -> None:
        if self.shot_guide is not None:
            data.shot_guide = self.shot_guide
        if self.prompt_guide is not None:
            data.prompt_guide = self.prompt_guide
        if self.style_guide is not None:
            data.style_guide = self.style_guide


# =============================================================================
# ACCOUNTING
# =============================================================================

@dataclass
class RecordUsage(Patch):
    """Add one call's usage to each named ledger scope."""
    usage: TokenUsage
    scopes: Tuple[str, ...]

    def apply(self, data: ProjectData) -> None:
        data.usage.add(self.usage, *self.scopes)


@dataclass
class RecordStat(Patch):
    category: StatsCategory
    success: bool

    def apply(self, data: ProjectData) -> None:
        data.stats.record(self.category, self.success)


# =============================================================================
# WORKFLOW
# =============================================================================

@dataclass
class UpdateWorkflow(Patch):
    changes: Dict[str, Any] = field(default_factory=dict)

    def apply(self, data: ProjectData) -> None:
        unknown = set(self.changes) - _WORKFLOW_FIELDS
        if unknown:
            raise ProjectError(f"Unknown workflow fields: {sorted(unknown)}")
        for name, value in self.changes.items():
            setattr(data.workflow, name, value)


def update_workflow(**changes: Any) -> UpdateWorkflow:
    return UpdateWorkflow(changes=changes)


@dataclass
class SeedQueue(Patch):
    items: List[Any]

    def apply(self, data: ProjectData) -> None:
        data.workflow.analysis_queue = list(self.items)
        data.workflow.analysis_total = len(self.items)
        data.workflow.pending_error = None


@dataclass
class PopQueueHead(Patch):
    """Remove the queue head, guarding against popping a different item."""
    expected: Any

    def apply(self, data: ProjectData) -> None:
        queue = data.workflow.analysis_queue
        if not queue or queue[0] != self.expected:
            raise PipelineStateError(
                f"Queue head is not '{self.expected}'",
                {"queue_head": queue[0] if queue else None},
            )
        data.workflow.analysis_queue = queue[1:]
        data.workflow.pending_error = None
