"""
script2video LLM Module

The generation service interface and its LLM-backed implementation.
"""

from .generation_service import GenerationService, GenerationResult
from .llm_config import (
    LLMManager,
    BaseLLMProvider,
    AnthropicProvider,
    GoogleProvider,
    OpenAICompatibleProvider,
    TextResponse,
)
from .llm_service import LLMGenerationService, extract_json, parse_reply
from .prompts import GenerationPromptLibrary

__all__ = [
    'GenerationService',
    'GenerationResult',
    'LLMManager',
    'BaseLLMProvider',
    'AnthropicProvider',
    'GoogleProvider',
    'OpenAICompatibleProvider',
    'TextResponse',
    'LLMGenerationService',
    'extract_json',
    'parse_reply',
    'GenerationPromptLibrary',
]
