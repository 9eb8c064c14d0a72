"""
script2video Generation Service

The interface the pipeline runners call for every unit of generative work.
Each coroutine returns a GenerationResult or raises; runners turn the raise
into recorded error state.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Generic, List, TypeVar

from script2video.core.ledger import TokenUsage
from script2video.core.models import (
    Character,
    CharacterForm,
    Location,
    ProjectContext,
    Shot,
)

ResultT = TypeVar('ResultT')


@dataclass
class GenerationResult(Generic[ResultT]):
    """Payload of one service call plus the tokens it cost."""
    result: ResultT
    usage: TokenUsage = field(default_factory=TokenUsage)


class GenerationService(ABC):
    """One coroutine per unit of work."""

    @abstractmethod
    async def project_summary(self, script: str, style_guide: str) -> GenerationResult[str]:
        pass

    @abstractmethod
    async def episode_summary(
        self,
        title: str,
        content: str,
        project_summary: str
    ) -> GenerationResult[str]:
        pass

    @abstractmethod
    async def character_list(
        self,
        script: str,
        project_summary: str
    ) -> GenerationResult[List[Character]]:
        pass

    @abstractmethod
    async def character_deep_dive(
        self,
        name: str,
        script: str,
        project_summary: str,
        style_guide: str
    ) -> GenerationResult[List[CharacterForm]]:
        pass

    @abstractmethod
    async def location_list(
        self,
        script: str,
        project_summary: str
    ) -> GenerationResult[List[Location]]:
        pass

    @abstractmethod
    async def location_deep_dive(
        self,
        name: str,
        script: str,
        style_guide: str
    ) -> GenerationResult[str]:
        pass

    @abstractmethod
    async def episode_shots(
        self,
        title: str,
        content: str,
        summary: str,
        context: ProjectContext,
        shot_guide: str,
        index: int,
        style_guide: str
    ) -> GenerationResult[List[Shot]]:
        """
        Generate the shot list of one episode.

        Args:
            index: Zero-based position of the episode in the project
        """
        pass

    @abstractmethod
    async def scene_prompts(
        self,
        shots: List[Shot],
        context: ProjectContext,
        prompt_guide: str,
        style_guide: str
    ) -> GenerationResult[Dict[str, str]]:
        """
        Generate video prompts for one scene's shots.

        Returns:
            Mapping of shot id to prompt; ids outside ``shots`` are ignored
        """
        pass
