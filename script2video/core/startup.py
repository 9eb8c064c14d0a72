"""
Startup validation and environment checks.

Validates that the configured LLM providers have API keys before a run starts.
"""

from dataclasses import dataclass, field
from typing import List

from .config import Script2VideoConfig
from .constants import LLMProvider
from .env_loader import get_anthropic_api_key, get_api_key, get_google_api_key


@dataclass
class ValidationResult:
    """Result of environment validation."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _has_key(provider: LLMProvider, key_name: str) -> bool:
    if get_api_key(key_name):
        return True
    if provider == LLMProvider.GOOGLE:
        return get_google_api_key() is not None
    if provider == LLMProvider.ANTHROPIC:
        return get_anthropic_api_key() is not None
    return False


def validate_environment(config: Script2VideoConfig) -> ValidationResult:
    """
    Validate the environment against the configured providers.

    Checks:
    - At least one configured provider has an API key
    - Providers named by a task mapping have keys (warnings if missing)
    """
    errors = []
    warnings = []

    available = get_available_providers(config)
    if not available:
        errors.append(
            "No LLM provider API key found. Set at least one of: "
            + ", ".join(sorted({llm.api_key_env for llm in config.llm_configs.values()}))
        )

    for mapping in config.task_mappings.values():
        for name in filter(None, (mapping.primary, mapping.fallback)):
            if name not in available:
                warnings.append(f"'{name}' has no API key - {mapping.task.value} will fall back")

    return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)


def get_available_providers(config: Script2VideoConfig) -> List[str]:
    """Names of configured providers that have an API key."""
    return [
        name for name, llm in config.llm_configs.items()
        if _has_key(llm.provider, llm.api_key_env)
    ]
