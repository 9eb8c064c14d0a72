"""
script2video Core Module

Contains core systems including configuration, constants, exceptions,
logging, the data model and usage accounting.
"""

from .config import Script2VideoConfig, load_config, get_config, set_config
from .constants import *
from .exceptions import *
from .logging_config import setup_logging, get_logger
from .ledger import TokenUsage, UsageLedger, RequestStats, StatsCounter, merge_usage
from .models import (
    Shot,
    Scene,
    Episode,
    EpisodeSummary,
    Character,
    CharacterForm,
    Location,
    ProjectContext,
    WorkflowState,
    ProjectData,
)

__all__ = [
    'Script2VideoConfig',
    'load_config',
    'get_config',
    'set_config',
    'setup_logging',
    'get_logger',
    # Usage accounting
    'TokenUsage',
    'UsageLedger',
    'RequestStats',
    'StatsCounter',
    'merge_usage',
    # Data model
    'Shot',
    'Scene',
    'Episode',
    'EpisodeSummary',
    'Character',
    'CharacterForm',
    'Location',
    'ProjectContext',
    'WorkflowState',
    'ProjectData',
]
