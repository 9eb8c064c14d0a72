"""
Tests for LLM Manager Module

Tests for script2video/llm/llm_config.py
"""

import pytest
import httpx

from script2video.core.config import LLMConfig, Script2VideoConfig, TaskLLMMapping
from script2video.core.constants import GenerationTask, LLMProvider
from script2video.core.exceptions import LLMError, LLMProviderError
from script2video.llm import LLMManager, OpenAICompatibleProvider


def local_config(name_env_pairs):
    config = Script2VideoConfig()
    config.llm_configs = {
        name: LLMConfig(
            provider=LLMProvider.OPENAI_COMPATIBLE,
            model=f"{name}-model",
            api_key_env=env,
            base_url="http://llm.test/v1",
        )
        for name, env in name_env_pairs
    }
    return config


@pytest.fixture
def mock_transport(monkeypatch):
    """Route httpx.AsyncClient through a MockTransport; returns the captured requests."""
    captured = []
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={
            "choices": [{"message": {"content": '{"summary": "ok"}'}}],
            "usage": {"prompt_tokens": 12, "completion_tokens": 8, "total_tokens": 20},
        })

    monkeypatch.setattr(
        httpx, "AsyncClient",
        lambda *args, **kwargs: real_client(transport=httpx.MockTransport(handler)),
    )
    return captured


class TestRouting:
    """Tests for task-based provider selection."""

    def test_primary_used(self, monkeypatch):
        monkeypatch.setenv("TEST_KEY_A", "a")
        monkeypatch.setenv("TEST_KEY_B", "b")
        config = local_config([("a", "TEST_KEY_A"), ("b", "TEST_KEY_B")])
        config.task_mappings[GenerationTask.SCENE_PROMPTS] = TaskLLMMapping(
            GenerationTask.SCENE_PROMPTS, primary="b", fallback="a"
        )

        provider = LLMManager(config)._get_provider_for_task(GenerationTask.SCENE_PROMPTS)

        assert provider.config.model == "b-model"

    def test_fallback_when_primary_has_no_key(self, monkeypatch):
        monkeypatch.setenv("TEST_KEY_A", "a")
        monkeypatch.delenv("TEST_KEY_B", raising=False)
        config = local_config([("a", "TEST_KEY_A"), ("b", "TEST_KEY_B")])
        config.task_mappings[GenerationTask.SCENE_PROMPTS] = TaskLLMMapping(
            GenerationTask.SCENE_PROMPTS, primary="b", fallback="a"
        )

        provider = LLMManager(config)._get_provider_for_task(GenerationTask.SCENE_PROMPTS)

        assert provider.config.model == "a-model"

    @pytest.mark.asyncio
    async def test_no_provider(self, monkeypatch):
        monkeypatch.delenv("TEST_KEY_A", raising=False)
        manager = LLMManager(local_config([("a", "TEST_KEY_A")]))

        with pytest.raises(LLMError):
            await manager.generate("prompt", task=GenerationTask.PROJECT_SUMMARY)


class TestOpenAICompatibleProvider:
    """Tests for the chat completions provider."""

    @pytest.mark.asyncio
    async def test_generate(self, monkeypatch, mock_transport):
        monkeypatch.setenv("TEST_KEY_A", "secret")
        manager = LLMManager(local_config([("a", "TEST_KEY_A")]))

        response = await manager.generate(
            "prompt", system_prompt="system", task=GenerationTask.EPISODE_SUMMARY, json_mode=True
        )

        request = mock_transport[0]
        body = request.read().decode("utf-8")
        assert str(request.url) == "http://llm.test/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer secret"
        assert '"json_object"' in body
        assert response.text == '{"summary": "ok"}'
        assert response.usage.total_tokens == 20
        assert response.usage.response_tokens == 8
        assert manager.get_stats()["total_calls"] == 1

    @pytest.mark.asyncio
    async def test_http_error_wrapped(self, monkeypatch):
        monkeypatch.setenv("TEST_KEY_A", "secret")
        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            httpx, "AsyncClient",
            lambda *args, **kwargs: real_client(
                transport=httpx.MockTransport(lambda request: httpx.Response(429, json={}))
            ),
        )
        provider = OpenAICompatibleProvider(local_config([("a", "TEST_KEY_A")]).llm_configs["a"])

        with pytest.raises(LLMProviderError):
            await provider.generate("prompt")
