"""
script2video Store Module

Project record storage and the patch commands that mutate it.
"""

from .project_store import ProjectStore, InMemoryProjectStore, JsonProjectStore
from .patches import (
    Patch,
    UpdateEpisode,
    update_episode,
    MergeShotPrompts,
    ClearShotPrompts,
    ReplaceShots,
    SetProjectSummary,
    SetEpisodeSummary,
    SetCharacters,
    SetCharacterForms,
    SetLocations,
    SetLocationVisuals,
    SetGuides,
    RecordUsage,
    RecordStat,
    UpdateWorkflow,
    update_workflow,
    SeedQueue,
    PopQueueHead,
)

__all__ = [
    'ProjectStore',
    'InMemoryProjectStore',
    'JsonProjectStore',
    'Patch',
    'UpdateEpisode',
    'update_episode',
    'MergeShotPrompts',
    'ClearShotPrompts',
    'ReplaceShots',
    'SetProjectSummary',
    'SetEpisodeSummary',
    'SetCharacters',
    'SetCharacterForms',
    'SetLocations',
    'SetLocationVisuals',
    'SetGuides',
    'RecordUsage',
    'RecordStat',
    'UpdateWorkflow',
    'update_workflow',
    'SeedQueue',
    'PopQueueHead',
]
