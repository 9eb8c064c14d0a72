"""
Tests for Configuration Module

Tests for script2video/core/config.py
"""

import pytest
import json

from script2video.core.config import (
    Script2VideoConfig,
    LLMConfig,
    PipelineConfig,
    load_config,
    save_config,
)
from script2video.core.constants import GenerationTask, LLMProvider
from script2video.core.exceptions import InvalidConfigError
from script2video.core.startup import validate_environment


@pytest.fixture
def sample_config() -> dict:
    """Sample configuration for testing."""
    return {
        "project_name": "script2video",
        "llm_providers": {
            "claude": {
                "provider": "anthropic",
                "model": "claude-sonnet-4-5-20250929",
                "api_key_env": "TEST_ANTHROPIC_KEY",
            },
            "local": {
                "provider": "openai_compatible",
                "model": "qwen2.5",
                "api_key_env": "TEST_LOCAL_KEY",
                "base_url": "http://localhost:8000/v1",
                "temperature": 0.2,
            },
        },
        "task_mappings": [
            {"task": "episode_shots", "primary": "claude", "fallback": "local"},
        ],
        "pipeline": {"chunk_delay_seconds": 0, "script_snippet_chars": 1000},
    }


class TestScript2VideoConfig:
    """Tests for Script2VideoConfig class."""

    def test_default_config(self):
        """Defaults ship a Gemini and a Claude provider and a paced pipeline."""
        config = Script2VideoConfig()

        assert config.project_name == "script2video"
        assert set(config.llm_configs) == {"gemini", "claude"}
        assert config.pipeline.chunk_delay_seconds == 0.5
        assert config.task_mappings == {}

    def test_config_from_dict(self, sample_config):
        """Test creating config from dictionary."""
        config = Script2VideoConfig.from_dict(sample_config)

        assert config.llm_configs["local"].provider == LLMProvider.OPENAI_COMPATIBLE
        assert config.llm_configs["local"].base_url == "http://localhost:8000/v1"
        assert config.llm_configs["local"].temperature == 0.2
        mapping = config.task_mappings[GenerationTask.EPISODE_SHOTS]
        assert mapping.primary == "claude"
        assert mapping.fallback == "local"
        assert config.pipeline.script_snippet_chars == 1000

    def test_get_llm_for_task(self, sample_config):
        """Mapped tasks use their primary; unmapped tasks use the first provider."""
        config = Script2VideoConfig.from_dict(sample_config)

        assert config.get_llm_for_task(GenerationTask.EPISODE_SHOTS).model == "claude-sonnet-4-5-20250929"
        assert config.get_llm_for_task(GenerationTask.SCENE_PROMPTS).provider == LLMProvider.ANTHROPIC

    def test_invalid_provider(self):
        with pytest.raises(InvalidConfigError):
            LLMConfig.from_dict({"provider": "nope", "model": "m", "api_key_env": "K"})

    def test_mapping_to_unknown_provider(self, sample_config):
        sample_config["task_mappings"] = [{"task": "episode_shots", "primary": "missing"}]

        with pytest.raises(InvalidConfigError):
            Script2VideoConfig.from_dict(sample_config)

    def test_negative_chunk_delay(self):
        with pytest.raises(InvalidConfigError):
            PipelineConfig.from_dict({"chunk_delay_seconds": -1})


class TestLoadSaveConfig:
    """Tests for config loading and saving."""

    def test_load_config_from_file(self, temp_dir, sample_config):
        """Test loading config from JSON file."""
        config_path = temp_dir / "test_config.json"

        with open(config_path, 'w') as f:
            json.dump(sample_config, f)

        config = load_config(config_path)

        assert "local" in config.llm_configs

    def test_load_config_missing_file(self, temp_dir):
        """Test loading config from non-existent file returns default."""
        config = load_config(temp_dir / "nonexistent.json")

        assert config.project_name == "script2video"

    def test_load_config_invalid_json(self, temp_dir):
        config_path = temp_dir / "broken.json"
        config_path.write_text("{not json", encoding="utf-8")

        with pytest.raises(InvalidConfigError):
            load_config(config_path)

    def test_save_and_reload(self, temp_dir, sample_config):
        """Saved config loads back with the same providers and mappings."""
        config = Script2VideoConfig.from_dict(sample_config)
        config_path = temp_dir / "nested" / "saved_config.json"

        save_config(config, config_path)
        reloaded = load_config(config_path)

        assert config_path.exists()
        assert reloaded.to_dict() == config.to_dict()


class TestValidateEnvironment:
    """Tests for startup validation."""

    def test_no_keys(self, sample_config, monkeypatch):
        for name in ("TEST_ANTHROPIC_KEY", "TEST_LOCAL_KEY", "ANTHROPIC_API_KEY", "CLAUDE_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        config = Script2VideoConfig.from_dict(sample_config)

        result = validate_environment(config)

        assert not result.valid
        assert "TEST_LOCAL_KEY" in result.errors[0]

    def test_fallback_key_only(self, sample_config, monkeypatch):
        """A missing primary key is a warning when another provider has a key."""
        for name in ("TEST_ANTHROPIC_KEY", "ANTHROPIC_API_KEY", "CLAUDE_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("TEST_LOCAL_KEY", "secret")
        config = Script2VideoConfig.from_dict(sample_config)

        result = validate_environment(config)

        assert result.valid
        assert any("'claude'" in warning for warning in result.warnings)
