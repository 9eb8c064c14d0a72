"""
script2video LLM Generation Service

GenerationService backed by LLMManager: renders the task prompt, routes it to
the configured provider and validates the JSON reply.
"""

import json
import re
from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from script2video.core.constants import GenerationTask
from script2video.core.exceptions import LLMResponseError
from script2video.core.logging_config import get_logger
from script2video.core.models import (
    Character,
    CharacterForm,
    Location,
    ProjectContext,
    Shot,
)
from .generation_service import GenerationResult, GenerationService
from .llm_config import LLMManager, TextResponse
from .prompts import (
    GenerationPromptLibrary,
    format_characters,
    format_locations,
    format_shot_batch,
)
from .schemas import (
    CharacterDeepDiveReply,
    CharacterListReply,
    EpisodeShotsReply,
    EpisodeSummaryReply,
    LocationDeepDiveReply,
    LocationListReply,
    ProjectSummaryReply,
    ScenePromptsReply,
)

logger = get_logger("llm.service")

ReplyT = TypeVar('ReplyT', bound=BaseModel)

_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


def extract_json(text: str) -> Any:
    """
    Parse a JSON reply, tolerating a Markdown code fence around it.

    Raises:
        LLMResponseError: If the text is empty or not JSON
    """
    if not text or not text.strip():
        raise LLMResponseError("Empty response from model")

    match = _FENCE.match(text)
    body = match.group(1) if match else text.strip()
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Model reply is not valid JSON: {e}", {"reply": body[:500]})


def parse_reply(text: str, schema: Type[ReplyT]) -> ReplyT:
    """Parse and validate a JSON reply against a pydantic schema."""
    data = extract_json(text)
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise LLMResponseError(
            f"Model reply does not match {schema.__name__}",
            {"errors": e.errors(include_url=False)},
        )


class LLMGenerationService(GenerationService):
    """Generation service that talks to the configured LLM providers."""

    def __init__(self, manager: LLMManager = None):
        self.manager = manager or LLMManager()
        self.prompts = GenerationPromptLibrary

    async def _ask(self, task: GenerationTask, prompt: str) -> TextResponse:
        return await self.manager.generate(
            prompt=prompt,
            system_prompt=self.prompts.SYSTEM_PROMPT,
            task=task,
            json_mode=True,
        )

    async def project_summary(self, script: str, style_guide: str) -> GenerationResult[str]:
        prompt = self.prompts.render(
            GenerationTask.PROJECT_SUMMARY, style_guide=style_guide, script=script
        )
        response = await self._ask(GenerationTask.PROJECT_SUMMARY, prompt)
        reply = parse_reply(response.text, ProjectSummaryReply)
        return GenerationResult(reply.project_summary, response.usage)

    async def episode_summary(self, title: str, content: str, project_summary: str) -> GenerationResult[str]:
        prompt = self.prompts.render(
            GenerationTask.EPISODE_SUMMARY,
            title=title,
            content=content,
            project_summary=project_summary,
        )
        response = await self._ask(GenerationTask.EPISODE_SUMMARY, prompt)
        reply = parse_reply(response.text, EpisodeSummaryReply)
        return GenerationResult(reply.summary, response.usage)

    async def character_list(self, script: str, project_summary: str) -> GenerationResult[List[Character]]:
        prompt = self.prompts.render(
            GenerationTask.CHARACTER_LIST, script=script, project_summary=project_summary
        )
        response = await self._ask(GenerationTask.CHARACTER_LIST, prompt)
        reply = parse_reply(response.text, CharacterListReply)

        characters = []
        for item in reply.characters:
            if any(c.name == item.name for c in characters):
                logger.debug(f"Duplicate character '{item.name}' dropped")
                continue
            characters.append(Character(
                id=f"char-{len(characters) + 1}",
                name=item.name,
                role=item.role,
                bio=item.bio,
                is_main=item.is_main,
            ))
        return GenerationResult(characters, response.usage)

    async def character_deep_dive(
        self,
        name: str,
        script: str,
        project_summary: str,
        style_guide: str
    ) -> GenerationResult[List[CharacterForm]]:
        prompt = self.prompts.render(
            GenerationTask.CHARACTER_DEEP_DIVE,
            style_guide=style_guide,
            name=name,
            script=script,
            project_summary=project_summary,
        )
        response = await self._ask(GenerationTask.CHARACTER_DEEP_DIVE, prompt)
        reply = parse_reply(response.text, CharacterDeepDiveReply)
        forms = [
            CharacterForm(
                name=item.form_name,
                episode_range=item.episode_range,
                description=item.description,
                visual_tags=item.visual_tags,
            )
            for item in reply.forms
        ]
        return GenerationResult(forms, response.usage)

    async def location_list(self, script: str, project_summary: str) -> GenerationResult[List[Location]]:
        prompt = self.prompts.render(
            GenerationTask.LOCATION_LIST, script=script, project_summary=project_summary
        )
        response = await self._ask(GenerationTask.LOCATION_LIST, prompt)
        reply = parse_reply(response.text, LocationListReply)

        locations = []
        for item in reply.locations:
            if any(l.name == item.name for l in locations):
                logger.debug(f"Duplicate location '{item.name}' dropped")
                continue
            locations.append(Location(
                id=f"loc-{len(locations) + 1}",
                name=item.name,
                type=item.type,
                description=item.description,
            ))
        return GenerationResult(locations, response.usage)

    async def location_deep_dive(self, name: str, script: str, style_guide: str) -> GenerationResult[str]:
        prompt = self.prompts.render(
            GenerationTask.LOCATION_DEEP_DIVE, style_guide=style_guide, name=name, script=script
        )
        response = await self._ask(GenerationTask.LOCATION_DEEP_DIVE, prompt)
        reply = parse_reply(response.text, LocationDeepDiveReply)
        return GenerationResult(reply.visuals, response.usage)

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
        prompt = self.prompts.render(
            GenerationTask.EPISODE_SHOTS,
            style_guide=style_guide,
            title=title,
            number=index + 1,
            content=content,
            summary=summary or "（暂无）",
            project_summary=context.project_summary,
            characters=format_characters(context),
            locations=format_locations(context),
            shot_guide=shot_guide,
        )
        response = await self._ask(GenerationTask.EPISODE_SHOTS, prompt)
        reply = parse_reply(response.text, EpisodeShotsReply)
        if not reply.shots:
            raise LLMResponseError(f"No shots returned for {title}")

        shots = [
            Shot(
                id=item.id,
                description=item.description,
                duration=item.duration,
                shot_type=item.shot_type,
                movement=item.movement,
                dialogue=item.dialogue,
            )
            for item in reply.shots
        ]
        return GenerationResult(shots, response.usage)

    async def scene_prompts(
        self,
        shots: List[Shot],
        context: ProjectContext,
        prompt_guide: str,
        style_guide: str
    ) -> GenerationResult[Dict[str, str]]:
        prompt = self.prompts.render(
            GenerationTask.SCENE_PROMPTS,
            style_guide=style_guide,
            count=len(shots),
            project_summary=context.project_summary,
            characters=format_characters(context),
            prompt_guide=prompt_guide,
            shots=format_shot_batch(shots),
        )
        response = await self._ask(GenerationTask.SCENE_PROMPTS, prompt)

        data = extract_json(response.text)
        if isinstance(data, list):
            # Some models drop the wrapper object and answer with the bare array
            data = {"prompts": data}
        try:
            reply = ScenePromptsReply.model_validate(data)
        except ValidationError as e:
            raise LLMResponseError(
                "Model reply does not match ScenePromptsReply",
                {"errors": e.errors(include_url=False)},
            )

        prompts = {item.id: item.sora_prompt for item in reply.prompts}
        return GenerationResult(prompts, response.usage)
