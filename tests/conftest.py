"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import pytest
import tempfile
import shutil
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from script2video.core.config import PipelineConfig
from script2video.core.constants import EpisodeStatus, LocationType
from script2video.core.ledger import TokenUsage
from script2video.core.models import (
    Character,
    CharacterForm,
    Episode,
    Location,
    ProjectData,
    Shot,
)
from script2video.llm.generation_service import GenerationResult, GenerationService
from script2video.pipelines import PhaseController, scene_key
from script2video.store import InMemoryProjectStore, ReplaceShots, update_episode

CALL_USAGE = TokenUsage(prompt_tokens=10, response_tokens=5, total_tokens=15)


class FakeGenerationService(GenerationService):
    """
    Scripted generation service.

    Every call is recorded as ``(method, key)``. Failures are armed per key
    with ``fail()``; the key is the episode title, character or location
    name, or scene key of the chunk, and None for whole-script calls.
    """

    def __init__(self):
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.extra_prompts: Dict[str, str] = {}
        self._failures = defaultdict(int)
        self._messages: Dict[Tuple[str, Optional[str]], str] = {}

    def fail(self, method: str, key: Optional[str] = None, times: int = 1, message: str = "boom"):
        self._failures[(method, key)] += times
        self._messages[(method, key)] = message

    def count(self, method: str, key: Optional[str] = None) -> int:
        return self.calls.count((method, key))

    def keys(self, method: str) -> List[Optional[str]]:
        return [key for name, key in self.calls if name == method]

    def _call(self, method: str, key: Optional[str] = None) -> None:
        self.calls.append((method, key))
        if self._failures[(method, key)] > 0:
            self._failures[(method, key)] -= 1
            raise RuntimeError(self._messages[(method, key)])

    async def project_summary(self, script, style_guide):
        self._call("project_summary")
        return GenerationResult("Project summary", CALL_USAGE)

    async def episode_summary(self, title, content, project_summary):
        self._call("episode_summary", title)
        return GenerationResult(f"{title} summary", CALL_USAGE)

    async def character_list(self, script, project_summary):
        self._call("character_list")
        return GenerationResult(
            [
                Character("char-1", "Ann", role="lead", is_main=True),
                Character("char-2", "Bob", role="rival", is_main=True),
                Character("char-3", "Extra"),
            ],
            CALL_USAGE,
        )

    async def character_deep_dive(self, name, script, project_summary, style_guide):
        self._call("character_deep_dive", name)
        return GenerationResult(
            [CharacterForm(name=f"{name} default", episode_range="1-3", visual_tags=f"{name} tags")],
            CALL_USAGE,
        )

    async def location_list(self, script, project_summary):
        self._call("location_list")
        return GenerationResult(
            [
                Location("loc-1", "Living Room", LocationType.CORE),
                Location("loc-2", "Street", LocationType.SECONDARY),
                Location("loc-3", "Rooftop", LocationType.CORE),
            ],
            CALL_USAGE,
        )

    async def location_deep_dive(self, name, script, style_guide):
        self._call("location_deep_dive", name)
        return GenerationResult(f"{name} visuals", CALL_USAGE)

    async def episode_shots(self, title, content, summary, context, shot_guide, index, style_guide):
        self._call("episode_shots", title)
        number = index + 1
        return GenerationResult(make_shots(number), CALL_USAGE)

    async def scene_prompts(self, shots, context, prompt_guide, style_guide):
        self._call("scene_prompts", scene_key(shots[0].id))
        prompts = {shot.id: f"prompt {shot.id}" for shot in shots}
        prompts.update(self.extra_prompts)
        return GenerationResult(prompts, CALL_USAGE)


def make_shots(number: int) -> List[Shot]:
    """Three shots over two scenes of episode ``number``."""
    return [
        Shot(id=f"{number}-1-01", description="wide"),
        Shot(id=f"{number}-1-02", description="close"),
        Shot(id=f"{number}-2-01", description="insert"),
    ]


def give_confirmed_shots(store, indices=None) -> None:
    """Install shot lists and mark the episodes confirmed_shots."""
    data = store.snapshot()
    patches = []
    for index, episode in enumerate(data.episodes):
        if indices is not None and index not in indices:
            continue
        patches.append(ReplaceShots(index, make_shots(episode.id)))
        patches.append(update_episode(index, status=EpisodeStatus.CONFIRMED_SHOTS))
    store.apply(*patches)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def service() -> FakeGenerationService:
    return FakeGenerationService()


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    """Pipeline settings without the pause between scene chunks."""
    return PipelineConfig(chunk_delay_seconds=0)


@pytest.fixture
def project_data() -> ProjectData:
    """Three-episode project with guides loaded."""
    episodes = [
        Episode(id=number, title=f"Episode {number}", content=f"Episode {number} text")
        for number in (1, 2, 3)
    ]
    data = ProjectData.new("Episode 1 text\nEpisode 2 text\nEpisode 3 text", episodes)
    data.shot_guide = "Shot guide"
    data.prompt_guide = "Prompt guide"
    return data


@pytest.fixture
def store(project_data) -> InMemoryProjectStore:
    return InMemoryProjectStore(project_data)


@pytest.fixture
def controller(store, service, pipeline_config) -> PhaseController:
    return PhaseController(store, service, config=pipeline_config)


@pytest.fixture
def sample_script() -> str:
    """Two-episode script with scene headers and cast lines."""
    return (
        "Pilot notes that come before the first episode\n"
        "第1集\n"
        "1-1 客厅 夜 内\n"
        "人物：张三、李四\n"
        "张三推门而入。\n"
        "1-2 街道 日 外\n"
        "李四在街上奔跑。\n"
        "第2集\n"
        "2-1 天台 黄昏 外\n"
        "人物：张三，王五\n"
        "两人对峙。\n"
    )


@pytest.fixture
def give_shots():
    """Helper installing confirmed shot lists: ``give_shots(store, indices=None)``."""
    return give_confirmed_shots
