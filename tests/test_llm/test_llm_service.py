"""
Tests for LLM Generation Service Module

Tests for script2video/llm/llm_service.py and prompts.py
"""

import pytest
import json
from unittest.mock import AsyncMock, MagicMock

from script2video.core.constants import GenerationTask, LocationType
from script2video.core.exceptions import LLMResponseError
from script2video.core.ledger import TokenUsage
from script2video.core.models import Character, CharacterForm, ProjectContext, Shot
from script2video.llm import GenerationPromptLibrary, LLMGenerationService, TextResponse, extract_json
from script2video.llm.prompts import format_characters, format_shot_batch


def reply(payload, usage=TokenUsage(100, 50, 150)) -> TextResponse:
    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return TextResponse(text=text, model="test-model", usage=usage)


@pytest.fixture
def manager():
    mock = MagicMock()
    mock.generate = AsyncMock()
    return mock


@pytest.fixture
def llm_service(manager):
    return LLMGenerationService(manager)


class TestExtractJson:
    """Tests for reply parsing."""

    def test_plain(self):
        assert extract_json('{"summary": "x"}') == {"summary": "x"}

    def test_fenced(self):
        assert extract_json('```json\n{"summary": "x"}\n```') == {"summary": "x"}

    def test_empty(self):
        with pytest.raises(LLMResponseError):
            extract_json("  ")

    def test_not_json(self):
        with pytest.raises(LLMResponseError):
            extract_json("Sure! Here is the summary.")


class TestAnalysisCalls:
    """Tests for the analysis generation methods."""

    @pytest.mark.asyncio
    async def test_project_summary(self, llm_service, manager):
        manager.generate.return_value = reply({"projectSummary": "复仇的故事"})

        result = await llm_service.project_summary("剧本", "")

        kwargs = manager.generate.call_args.kwargs
        assert result.result == "复仇的故事"
        assert result.usage.total_tokens == 150
        assert kwargs["task"] == GenerationTask.PROJECT_SUMMARY
        assert kwargs["json_mode"] is True
        assert "剧本" in kwargs["prompt"]

    @pytest.mark.asyncio
    async def test_character_list_dedupes(self, llm_service, manager):
        manager.generate.return_value = reply({"characters": [
            {"name": "张三", "role": "男主角", "isMain": True},
            {"name": "李四", "role": "反派"},
            {"name": "张三", "role": "重复"},
        ]})

        result = await llm_service.character_list("剧本", "梗概")

        assert [c.name for c in result.result] == ["张三", "李四"]
        assert [c.id for c in result.result] == ["char-1", "char-2"]
        assert result.result[0].is_main
        assert not result.result[1].is_main

    @pytest.mark.asyncio
    async def test_ids_contiguous_after_duplicate(self, llm_service, manager):
        manager.generate.return_value = reply({"characters": [
            {"name": "张三"}, {"name": "张三"}, {"name": "王五"},
        ]})

        result = await llm_service.character_list("剧本", "梗概")

        assert [(c.id, c.name) for c in result.result] == [("char-1", "张三"), ("char-2", "王五")]

    @pytest.mark.asyncio
    async def test_location_ids_contiguous_after_duplicate(self, llm_service, manager):
        manager.generate.return_value = reply({"locations": [
            {"name": "客厅", "type": "core"}, {"name": "客厅"}, {"name": "街道"},
        ]})

        result = await llm_service.location_list("剧本", "梗概")

        assert [(l.id, l.name) for l in result.result] == [("loc-1", "客厅"), ("loc-2", "街道")]

    @pytest.mark.asyncio
    async def test_location_type_normalized(self, llm_service, manager):
        manager.generate.return_value = reply({"locations": [
            {"name": "客厅", "type": "Core"},
            {"name": "皇宫", "type": "核心"},
            {"name": "街道", "type": "minor"},
        ]})

        result = await llm_service.location_list("剧本", "梗概")

        assert [l.type for l in result.result] == [
            LocationType.CORE, LocationType.CORE, LocationType.SECONDARY
        ]

    @pytest.mark.asyncio
    async def test_character_deep_dive(self, llm_service, manager):
        manager.generate.return_value = reply({"forms": [
            {"formName": "少年", "episodeRange": "1-5", "visualTags": "白衣"},
        ]})

        result = await llm_service.character_deep_dive("张三", "剧本", "梗概", "水墨风")

        assert result.result[0].name == "少年"
        assert result.result[0].episode_range == "1-5"
        assert "水墨风" in manager.generate.call_args.kwargs["prompt"]

    @pytest.mark.asyncio
    async def test_schema_mismatch(self, llm_service, manager):
        manager.generate.return_value = reply({"characters": [{"role": "无名"}]})

        with pytest.raises(LLMResponseError):
            await llm_service.character_list("剧本", "梗概")


class TestShotCalls:
    """Tests for shot and prompt generation."""

    @pytest.mark.asyncio
    async def test_episode_shots(self, llm_service, manager):
        manager.generate.return_value = reply("```json\n" + json.dumps({"shots": [
            {"id": "2-1-01", "duration": 3, "shotType": "全景", "description": "城门"},
        ]}) + "\n```")

        result = await llm_service.episode_shots(
            "第2集", "正文", "", ProjectContext(project_summary="梗概"), "指南", 1, ""
        )

        shot = result.result[0]
        assert (shot.id, shot.duration, shot.shot_type) == ("2-1-01", "3", "全景")
        assert not shot.prompt_generated
        assert "第 2 集" in manager.generate.call_args.kwargs["prompt"]

    @pytest.mark.asyncio
    async def test_episode_shots_empty(self, llm_service, manager):
        manager.generate.return_value = reply({"shots": []})

        with pytest.raises(LLMResponseError):
            await llm_service.episode_shots("第1集", "正文", "", ProjectContext(), "指南", 0, "")

    @pytest.mark.asyncio
    async def test_scene_prompts(self, llm_service, manager):
        manager.generate.return_value = reply({"prompts": [
            {"id": "1-1-01", "soraPrompt": "清晨的客厅"},
            {"id": "1-1-02", "soraPrompt": ""},
        ]})

        result = await llm_service.scene_prompts(
            [Shot(id="1-1-01"), Shot(id="1-1-02")], ProjectContext(), "规范", ""
        )

        assert result.result == {"1-1-01": "清晨的客厅", "1-1-02": ""}

    @pytest.mark.asyncio
    async def test_scene_prompts_bare_list(self, llm_service, manager):
        manager.generate.return_value = reply([{"id": "1-1-01", "soraPrompt": "夜景"}])

        result = await llm_service.scene_prompts([Shot(id="1-1-01")], ProjectContext(), "规范", "")

        assert result.result == {"1-1-01": "夜景"}

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, llm_service, manager):
        manager.generate.side_effect = RuntimeError("503 from provider")

        with pytest.raises(RuntimeError):
            await llm_service.scene_prompts([Shot(id="1-1-01")], ProjectContext(), "规范", "")


class TestPromptLibrary:
    """Tests for template rendering."""

    def test_every_task_has_a_template(self):
        assert set(GenerationPromptLibrary.get_task_prompts()) == set(GenerationTask)

    def test_style_section_only_with_style_guide(self):
        without = GenerationPromptLibrary.render(GenerationTask.PROJECT_SUMMARY, script="剧本")
        with_style = GenerationPromptLibrary.render(
            GenerationTask.PROJECT_SUMMARY, style_guide="赛博朋克", script="剧本"
        )

        assert "Project Visual Bible" not in without
        assert "赛博朋克" in with_style
        assert '{"projectSummary": "..."}' in without

    def test_format_characters_includes_visuals(self):
        context = ProjectContext(characters=[
            Character("char-1", "张三", role="男主角", forms=[CharacterForm("少年", visual_tags="白衣")]),
        ])

        assert "[Visuals: 白衣]" in format_characters(context)
        assert format_characters(ProjectContext()) == "（暂无）"

    def test_shot_batch_is_json(self):
        batch = json.loads(format_shot_batch([Shot(id="1-1-01", dialogue='他说："走"')]))

        assert batch == [{"id": "1-1-01", "type": "", "move": "", "desc": "", "dialogue": '他说："走"'}]
