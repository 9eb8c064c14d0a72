"""
script2video - Script to Video Prompt Pipeline

Turns a long multi-episode script into project analysis, per-episode shot
lists and per-shot video generation prompts by driving an LLM through three
confirmed phases.

Version: 1.0.0
"""

__version__ = "1.0.0"
__project__ = "script2video"

from pathlib import Path

# Load environment variables early - before any other imports that might need them
from script2video.core.env_loader import ensure_env_loaded
ensure_env_loaded()

# Package root directory
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent

__all__ = [
    "__version__",
    "__project__",
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
]
