"""
script2video Pipelines Module

The phase controller and the three phase runners.
"""

from .base_runner import BaseRunner, ExecutionLock, CallOutcome
from .analysis_runner import AnalysisSubStepRunner
from .shot_generator import EpisodeShotGenerator
from .prompt_generator import ScenePromptGenerator, scene_key, group_shots_by_scene
from .phase_controller import PhaseController

__all__ = [
    'BaseRunner',
    'ExecutionLock',
    'CallOutcome',
    'AnalysisSubStepRunner',
    'EpisodeShotGenerator',
    'ScenePromptGenerator',
    'scene_key',
    'group_shots_by_scene',
    'PhaseController',
]
