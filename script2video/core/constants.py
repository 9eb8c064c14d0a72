"""
script2video Constants

Global constants and enumerations used throughout the pipeline.
"""

from enum import Enum
from typing import Dict, List

# =============================================================================
# VERSION INFO
# =============================================================================
VERSION = "1.0.0"
PROJECT_NAME = "script2video"

# =============================================================================
# WORKFLOW PHASES
# =============================================================================

class Phase(Enum):
    """Top-level pipeline phase. Order of declaration is the only legal order."""
    IDLE = "idle"
    ANALYSIS = "analysis"
    SHOT_GENERATION = "shot_generation"
    PROMPT_GENERATION = "prompt_generation"
    DONE = "done"


PHASE_ORDER: List[Phase] = list(Phase)


class AnalysisSubStep(Enum):
    """Ordered sub-steps of the analysis phase."""
    IDLE = "idle"
    PROJECT_SUMMARY = "project_summary"
    EPISODE_SUMMARIES = "episode_summaries"
    CHARACTER_LIST = "character_list"
    CHARACTER_DEEP_DIVE = "character_deep_dive"
    LOCATION_LIST = "location_list"
    LOCATION_DEEP_DIVE = "location_deep_dive"
    COMPLETE = "complete"


ANALYSIS_ORDER: List[AnalysisSubStep] = list(AnalysisSubStep)

# Steps answered by one call, confirmed by the user afterwards
SINGLE_ITEM_STEPS = (
    AnalysisSubStep.PROJECT_SUMMARY,
    AnalysisSubStep.CHARACTER_LIST,
    AnalysisSubStep.LOCATION_LIST,
)

# Steps drained one queue item at a time
QUEUE_STEPS = (
    AnalysisSubStep.EPISODE_SUMMARIES,
    AnalysisSubStep.CHARACTER_DEEP_DIVE,
    AnalysisSubStep.LOCATION_DEEP_DIVE,
)

# Human readable labels used in progress messages ("Step 2/6: ...")
ANALYSIS_STEP_LABELS: Dict[AnalysisSubStep, str] = {
    AnalysisSubStep.PROJECT_SUMMARY: "Analyzing Global Project Arc",
    AnalysisSubStep.EPISODE_SUMMARIES: "Analyzing Episode",
    AnalysisSubStep.CHARACTER_LIST: "Identifying Character Roster",
    AnalysisSubStep.CHARACTER_DEEP_DIVE: "Deep Analysis for",
    AnalysisSubStep.LOCATION_LIST: "Mapping Locations",
    AnalysisSubStep.LOCATION_DEEP_DIVE: "Visualizing",
}


class EpisodeStatus(Enum):
    """Lifecycle of an episode across the shot and prompt phases."""
    PENDING = "pending"
    GENERATING = "generating"
    REVIEW_SHOTS = "review_shots"
    CONFIRMED_SHOTS = "confirmed_shots"
    GENERATING_SORA = "generating_sora"
    REVIEW_SORA = "review_sora"
    COMPLETED = "completed"
    ERROR = "error"


class LocationType(Enum):
    """Location importance; only core locations get a visual deep-dive."""
    CORE = "core"
    SECONDARY = "secondary"


class StatsCategory(Enum):
    """Request statistics buckets, one per generating phase."""
    CONTEXT = "context"
    SHOT_GEN = "shot_gen"
    SORA_GEN = "sora_gen"


class RunOutcome(Enum):
    """Where a runner stopped after handing control back."""
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    HALTED = "halted"
    PHASE_COMPLETE = "phase_complete"
    IDLE = "idle"


# =============================================================================
# USAGE LEDGER SCOPES
# =============================================================================

USAGE_SCOPE_CONTEXT = "context"
USAGE_SCOPE_SHOT_GEN = "shot_gen"
USAGE_SCOPE_SORA_GEN = "sora_gen"

# Per-step ledger scopes of the analysis phase
ANALYSIS_USAGE_SCOPES: Dict[AnalysisSubStep, str] = {
    AnalysisSubStep.PROJECT_SUMMARY: "phase1.project_summary",
    AnalysisSubStep.EPISODE_SUMMARIES: "phase1.episode_summaries",
    AnalysisSubStep.CHARACTER_LIST: "phase1.char_list",
    AnalysisSubStep.CHARACTER_DEEP_DIVE: "phase1.char_deep_dive",
    AnalysisSubStep.LOCATION_LIST: "phase1.loc_list",
    AnalysisSubStep.LOCATION_DEEP_DIVE: "phase1.loc_deep_dive",
}

# =============================================================================
# SHOT IDS / SCENE CHUNKING
# =============================================================================

SHOT_ID_SEPARATOR = "-"
DEFAULT_SCENE_KEY = "default"

# =============================================================================
# LLM
# =============================================================================

class LLMProvider(Enum):
    """Supported LLM providers."""
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    OPENAI_COMPATIBLE = "openai_compatible"


class GenerationTask(Enum):
    """Units of work the generation service performs."""
    PROJECT_SUMMARY = "project_summary"
    EPISODE_SUMMARY = "episode_summary"
    CHARACTER_LIST = "character_list"
    CHARACTER_DEEP_DIVE = "character_deep_dive"
    LOCATION_LIST = "location_list"
    LOCATION_DEEP_DIVE = "location_deep_dive"
    EPISODE_SHOTS = "episode_shots"
    SCENE_PROMPTS = "scene_prompts"
