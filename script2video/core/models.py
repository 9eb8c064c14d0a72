"""
script2video Data Model

Episodes, shots and the analysis context the pipeline reads and writes.

Every record round-trips through plain dicts (``to_dict`` / ``from_dict``)
so a ProjectStore can persist it as JSON. ``from_dict`` also accepts the
camelCase keys used by exported project files.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .constants import (
    AnalysisSubStep,
    EpisodeStatus,
    LocationType,
    Phase,
)
from .ledger import StatsCounter, TokenUsage, UsageLedger


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key, tolerating snake_case/camelCase variants."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


# =============================================================================
# SHOTS & SCENES
# =============================================================================

@dataclass
class Shot:
    """A single shot in an episode's shot list."""
    id: str  # Hierarchical, e.g. "1-1-01" (episode-scene-shot)
    description: str = ""
    duration: str = ""
    shot_type: str = ""
    movement: str = ""
    dialogue: str = ""
    sora_prompt: str = ""
    # Set once a prompt has been generated, even if the generated text is blank
    prompt_generated: bool = False

    def with_prompt(self, prompt: str) -> 'Shot':
        return replace(self, sora_prompt=prompt or "", prompt_generated=True)

    def cleared(self) -> 'Shot':
        return replace(self, sora_prompt="", prompt_generated=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "duration": self.duration,
            "shot_type": self.shot_type,
            "movement": self.movement,
            "dialogue": self.dialogue,
            "sora_prompt": self.sora_prompt,
            "prompt_generated": self.prompt_generated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Shot':
        prompt = str(_pick(data, "sora_prompt", "soraPrompt", default=""))
        generated = _pick(data, "prompt_generated", "promptGenerated")
        if generated is None:
            # Legacy records carry no flag; a non-blank prompt means generated
            generated = bool(prompt.strip())
        return cls(
            id=str(data["id"]),
            description=str(_pick(data, "description", default="")),
            duration=str(_pick(data, "duration", default="")),
            shot_type=str(_pick(data, "shot_type", "shotType", default="")),
            movement=str(_pick(data, "movement", default="")),
            dialogue=str(_pick(data, "dialogue", default="")),
            sora_prompt=prompt,
            prompt_generated=bool(generated),
        )


@dataclass
class Scene:
    """A scene parsed from an episode's script text."""
    id: str  # e.g. "1-2"
    title: str
    content: str = ""
    time_of_day: Optional[str] = None
    location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "time_of_day": self.time_of_day,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Scene':
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            content=data.get("content", ""),
            time_of_day=_pick(data, "time_of_day", "timeOfDay"),
            location=data.get("location"),
        )


# =============================================================================
# EPISODES
# =============================================================================

@dataclass
class Episode:
    """One episode of the script and everything generated for it."""
    id: int
    title: str
    content: str = ""
    scenes: List[Scene] = field(default_factory=list)
    characters: List[str] = field(default_factory=list)
    summary: str = ""
    shots: List[Shot] = field(default_factory=list)
    status: EpisodeStatus = EpisodeStatus.PENDING
    error_msg: Optional[str] = None
    shot_gen_usage: TokenUsage = field(default_factory=TokenUsage)
    sora_gen_usage: TokenUsage = field(default_factory=TokenUsage)

    @property
    def has_shots(self) -> bool:
        return len(self.shots) > 0

    @property
    def prompts_complete(self) -> bool:
        return self.has_shots and all(shot.prompt_generated for shot in self.shots)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "scenes": [s.to_dict() for s in self.scenes],
            "characters": list(self.characters),
            "summary": self.summary,
            "shots": [s.to_dict() for s in self.shots],
            "status": self.status.value,
            "error_msg": self.error_msg,
            "shot_gen_usage": self.shot_gen_usage.to_dict(),
            "sora_gen_usage": self.sora_gen_usage.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Episode':
        return cls(
            id=int(data["id"]),
            title=data.get("title", ""),
            content=data.get("content", ""),
            scenes=[Scene.from_dict(s) for s in data.get("scenes", [])],
            characters=list(data.get("characters", [])),
            summary=data.get("summary") or "",
            shots=[Shot.from_dict(s) for s in data.get("shots", [])],
            status=EpisodeStatus(data.get("status", EpisodeStatus.PENDING.value)),
            error_msg=_pick(data, "error_msg", "errorMsg"),
            shot_gen_usage=TokenUsage.from_dict(_pick(data, "shot_gen_usage", "shotGenUsage")),
            sora_gen_usage=TokenUsage.from_dict(_pick(data, "sora_gen_usage", "soraGenUsage")),
        )


# =============================================================================
# ANALYSIS CONTEXT
# =============================================================================

@dataclass
class EpisodeSummary:
    episode_id: int
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {"episode_id": self.episode_id, "summary": self.summary}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EpisodeSummary':
        return cls(
            episode_id=int(_pick(data, "episode_id", "episodeId")),
            summary=data.get("summary", ""),
        )


@dataclass
class CharacterForm:
    """A distinct look of a main character over a range of episodes."""
    name: str
    episode_range: str = ""
    description: str = ""
    visual_tags: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "episode_range": self.episode_range,
            "description": self.description,
            "visual_tags": self.visual_tags,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CharacterForm':
        return cls(
            name=_pick(data, "name", "formName", default=""),
            episode_range=_pick(data, "episode_range", "episodeRange", default=""),
            description=data.get("description", ""),
            visual_tags=_pick(data, "visual_tags", "visualTags", default=""),
        )


@dataclass
class Character:
    id: str
    name: str
    role: str = ""
    bio: str = ""
    is_main: bool = False
    forms: List[CharacterForm] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "bio": self.bio,
            "is_main": self.is_main,
            "forms": [f.to_dict() for f in self.forms],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Character':
        return cls(
            id=str(data.get("id") or data["name"]),
            name=data["name"],
            role=data.get("role", ""),
            bio=data.get("bio", ""),
            is_main=bool(_pick(data, "is_main", "isMain", default=False)),
            forms=[CharacterForm.from_dict(f) for f in data.get("forms", [])],
        )


@dataclass
class Location:
    id: str
    name: str
    type: LocationType = LocationType.SECONDARY
    description: str = ""
    visuals: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "description": self.description,
            "visuals": self.visuals,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Location':
        return cls(
            id=str(data.get("id") or data["name"]),
            name=data["name"],
            type=LocationType(data.get("type", LocationType.SECONDARY.value)),
            description=data.get("description", ""),
            visuals=data.get("visuals") or "",
        )


@dataclass
class ProjectContext:
    """Everything the analysis phase learns about the project."""
    project_summary: str = ""
    episode_summaries: List[EpisodeSummary] = field(default_factory=list)
    characters: List[Character] = field(default_factory=list)
    locations: List[Location] = field(default_factory=list)

    def character(self, name: str) -> Optional[Character]:
        return next((c for c in self.characters if c.name == name), None)

    def location(self, name: str) -> Optional[Location]:
        return next((l for l in self.locations if l.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_summary": self.project_summary,
            "episode_summaries": [s.to_dict() for s in self.episode_summaries],
            "characters": [c.to_dict() for c in self.characters],
            "locations": [l.to_dict() for l in self.locations],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ProjectContext':
        data = data or {}
        return cls(
            project_summary=_pick(data, "project_summary", "projectSummary", default=""),
            episode_summaries=[
                EpisodeSummary.from_dict(s)
                for s in _pick(data, "episode_summaries", "episodeSummaries", default=[])
            ],
            characters=[Character.from_dict(c) for c in data.get("characters", [])],
            locations=[Location.from_dict(l) for l in data.get("locations", [])],
        )


# =============================================================================
# WORKFLOW STATE
# =============================================================================

@dataclass
class WorkflowState:
    """Orchestrator cursor; persisted with the project so a run can resume."""
    phase: Phase = Phase.IDLE
    analysis_step: AnalysisSubStep = AnalysisSubStep.IDLE
    current_episode_index: int = 0
    analysis_queue: List[Any] = field(default_factory=list)  # episode ids or names
    analysis_total: int = 0
    pending_error: Optional[str] = None
    step_result_ready: bool = False  # single-item analysis step produced a result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "analysis_step": self.analysis_step.value,
            "current_episode_index": self.current_episode_index,
            "analysis_queue": list(self.analysis_queue),
            "analysis_total": self.analysis_total,
            "pending_error": self.pending_error,
            "step_result_ready": self.step_result_ready,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'WorkflowState':
        data = data or {}
        return cls(
            phase=Phase(data.get("phase", Phase.IDLE.value)),
            analysis_step=AnalysisSubStep(data.get("analysis_step", AnalysisSubStep.IDLE.value)),
            current_episode_index=int(data.get("current_episode_index", 0)),
            analysis_queue=list(data.get("analysis_queue", [])),
            analysis_total=int(data.get("analysis_total", 0)),
            pending_error=data.get("pending_error"),
            step_result_ready=bool(data.get("step_result_ready", False)),
        )


# =============================================================================
# PROJECT
# =============================================================================

@dataclass
class ProjectData:
    """The single record set the orchestrator owns."""
    file_name: str = ""
    raw_script: str = ""
    episodes: List[Episode] = field(default_factory=list)
    context: ProjectContext = field(default_factory=ProjectContext)
    shot_guide: str = ""
    prompt_guide: str = ""
    style_guide: str = ""
    usage: UsageLedger = field(default_factory=UsageLedger)
    stats: StatsCounter = field(default_factory=StatsCounter)
    workflow: WorkflowState = field(default_factory=WorkflowState)

    @classmethod
    def new(cls, raw_script: str, episodes: List[Episode], file_name: str = "script.txt") -> 'ProjectData':
        return cls(file_name=file_name, raw_script=raw_script, episodes=list(episodes))

    def episode_by_id(self, episode_id: int) -> Optional[Episode]:
        return next((ep for ep in self.episodes if ep.id == episode_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "raw_script": self.raw_script,
            "episodes": [ep.to_dict() for ep in self.episodes],
            "context": self.context.to_dict(),
            "shot_guide": self.shot_guide,
            "prompt_guide": self.prompt_guide,
            "style_guide": self.style_guide,
            "usage": self.usage.to_dict(),
            "stats": self.stats.to_dict(),
            "workflow": self.workflow.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectData':
        return cls(
            file_name=_pick(data, "file_name", "fileName", default=""),
            raw_script=_pick(data, "raw_script", "rawScript", default=""),
            episodes=[Episode.from_dict(ep) for ep in data.get("episodes", [])],
            context=ProjectContext.from_dict(data.get("context")),
            shot_guide=_pick(data, "shot_guide", "shotGuide", default=""),
            prompt_guide=_pick(data, "prompt_guide", "soraGuide", default=""),
            style_guide=_pick(data, "style_guide", "globalStyleGuide", default=""),
            usage=UsageLedger.from_dict(data.get("usage")),
            stats=StatsCounter.from_dict(data.get("stats")),
            workflow=WorkflowState.from_dict(data.get("workflow")),
        )
