"""
script2video Configuration Management

Centralized configuration system with JSON loading and validation.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError, MissingConfigError, InvalidConfigError
from .constants import LLMProvider, GenerationTask, VERSION, PROJECT_NAME


@dataclass
class LLMConfig:
    """Configuration for a specific LLM provider."""
    provider: LLMProvider
    model: str
    api_key_env: str  # Environment variable name for API key
    temperature: float = 0.7
    max_tokens: int = 8192
    timeout: int = 120
    base_url: Optional[str] = None  # Only used by OpenAI-compatible endpoints

    @classmethod
    def from_dict(cls, data: dict) -> 'LLMConfig':
        """Create LLMConfig from dictionary."""
        try:
            provider = LLMProvider(data['provider'])
        except (KeyError, ValueError) as e:
            raise InvalidConfigError(f"Invalid LLM provider: {data.get('provider')}") from e
        if 'model' not in data or 'api_key_env' not in data:
            raise InvalidConfigError("LLM config requires 'model' and 'api_key_env'", {"data": data})
        return cls(
            provider=provider,
            model=data['model'],
            api_key_env=data['api_key_env'],
            temperature=data.get('temperature', 0.7),
            max_tokens=data.get('max_tokens', 8192),
            timeout=data.get('timeout', 120),
            base_url=data.get('base_url'),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "provider": self.provider.value,
            "model": self.model,
            "api_key_env": self.api_key_env,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
        }
        if self.base_url:
            result["base_url"] = self.base_url
        return result


@dataclass
class TaskLLMMapping:
    """Mapping of a generation task to its preferred LLM configurations."""
    task: GenerationTask
    primary: str
    fallback: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict, llm_configs: Dict[str, LLMConfig]) -> 'TaskLLMMapping':
        """Create TaskLLMMapping from dictionary."""
        if data.get('primary') not in llm_configs:
            raise InvalidConfigError(f"Unknown LLM config: {data.get('primary')}")
        fallback = data.get('fallback')
        if fallback is not None and fallback not in llm_configs:
            raise InvalidConfigError(f"Unknown fallback LLM config: {fallback}")
        try:
            task = GenerationTask(data['task'])
        except (KeyError, ValueError) as e:
            raise InvalidConfigError(f"Unknown generation task: {data.get('task')}") from e
        return cls(task=task, primary=data['primary'], fallback=fallback)

    def to_dict(self) -> Dict[str, Any]:
        result = {"task": self.task.value, "primary": self.primary}
        if self.fallback:
            result["fallback"] = self.fallback
        return result


@dataclass
class PipelineConfig:
    """Pipeline configuration settings."""
    chunk_delay_seconds: float = 0.5  # Pause after each scene chunk call
    script_snippet_chars: int = 30000  # Script slice sent with single-item analysis calls
    json_indent: int = 2

    @classmethod
    def from_dict(cls, data: dict) -> 'PipelineConfig':
        config = cls(
            chunk_delay_seconds=float(data.get('chunk_delay_seconds', 0.5)),
            script_snippet_chars=int(data.get('script_snippet_chars', 30000)),
            json_indent=int(data.get('json_indent', 2)),
        )
        if config.chunk_delay_seconds < 0:
            raise InvalidConfigError("chunk_delay_seconds must be >= 0")
        if config.script_snippet_chars <= 0:
            raise InvalidConfigError("script_snippet_chars must be > 0")
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_delay_seconds": self.chunk_delay_seconds,
            "script_snippet_chars": self.script_snippet_chars,
            "json_indent": self.json_indent,
        }


def _default_llm_configs() -> Dict[str, LLMConfig]:
    return {
        "gemini": LLMConfig(
            provider=LLMProvider.GOOGLE,
            model="gemini-2.5-flash",
            api_key_env="GOOGLE_API_KEY",
        ),
        "claude": LLMConfig(
            provider=LLMProvider.ANTHROPIC,
            model="claude-sonnet-4-5-20250929",
            api_key_env="ANTHROPIC_API_KEY",
        ),
    }


@dataclass
class Script2VideoConfig:
    """Main configuration class for script2video."""

    project_name: str = PROJECT_NAME
    version: str = VERSION

    logs_dir: Path = field(default_factory=lambda: Path("logs"))

    # LLM configurations
    llm_configs: Dict[str, LLMConfig] = field(default_factory=_default_llm_configs)
    task_mappings: Dict[GenerationTask, TaskLLMMapping] = field(default_factory=dict)

    pipeline: PipelineConfig = field(default_factory=PipelineConfig)

    verbose_logging: bool = False

    def get_llm_for_task(self, task: GenerationTask) -> LLMConfig:
        """Get the primary LLM configuration for a generation task."""
        mapping = self.task_mappings.get(task)
        if mapping:
            return self.llm_configs[mapping.primary]
        if self.llm_configs:
            return next(iter(self.llm_configs.values()))
        raise MissingConfigError(f"No LLM configuration for task: {task.value}")

    @classmethod
    def from_dict(cls, data: dict) -> 'Script2VideoConfig':
        """Create Script2VideoConfig from dictionary."""
        config = cls()

        config.project_name = data.get('project_name', config.project_name)
        config.version = data.get('version', config.version)
        config.verbose_logging = data.get('verbose_logging', config.verbose_logging)

        if 'paths' in data:
            config.logs_dir = Path(data['paths'].get('logs_dir', 'logs'))

        if 'llm_providers' in data:
            config.llm_configs = {
                name: LLMConfig.from_dict(llm_data)
                for name, llm_data in data['llm_providers'].items()
            }

        for mapping_data in data.get('task_mappings', []):
            mapping = TaskLLMMapping.from_dict(mapping_data, config.llm_configs)
            config.task_mappings[mapping.task] = mapping

        if 'pipeline' in data:
            config.pipeline = PipelineConfig.from_dict(data['pipeline'])

        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_name": self.project_name,
            "version": self.version,
            "verbose_logging": self.verbose_logging,
            "paths": {"logs_dir": str(self.logs_dir)},
            "llm_providers": {name: cfg.to_dict() for name, cfg in self.llm_configs.items()},
            "task_mappings": [m.to_dict() for m in self.task_mappings.values()],
            "pipeline": self.pipeline.to_dict(),
        }


def load_config(config_path: Path = None) -> Script2VideoConfig:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        Loaded Script2VideoConfig instance
    """
    config_path = Path(config_path) if config_path else Path("config/script2video_config.json")

    if not config_path.exists():
        return Script2VideoConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config: {e}")

    return Script2VideoConfig.from_dict(data)


def save_config(config: Script2VideoConfig, config_path: Path) -> None:
    """Write configuration to a JSON file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)


# Global config instance
_config: Optional[Script2VideoConfig] = None


def get_config() -> Script2VideoConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Script2VideoConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
