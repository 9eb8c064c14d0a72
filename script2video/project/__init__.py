"""
script2video Project Module

Script parsing and shot list import.
"""

from .script_parser import parse_script_to_episodes, parse_scenes, parse_scene_title
from .shot_import import (
    ShotRecord,
    parse_shot_records,
    parse_shot_csv,
    apply_imported_shots,
)

__all__ = [
    'parse_script_to_episodes',
    'parse_scenes',
    'parse_scene_title',
    'ShotRecord',
    'parse_shot_records',
    'parse_shot_csv',
    'apply_imported_shots',
]
