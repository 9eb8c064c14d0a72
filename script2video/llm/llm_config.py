"""
script2video LLM Manager

Manages LLM provider connections and API calls. Every provider reports the
tokens a call consumed so the pipeline can keep its usage ledger.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import asyncio
import time

from script2video.core.config import LLMConfig, Script2VideoConfig, get_config
from script2video.core.constants import GenerationTask, LLMProvider
from script2video.core.env_loader import get_api_key, get_anthropic_api_key, get_google_api_key
from script2video.core.exceptions import LLMError, LLMProviderError
from script2video.core.ledger import TokenUsage
from script2video.core.logging_config import get_logger

logger = get_logger("llm.manager")


@dataclass
class TextResponse:
    """Raw text reply of one provider call."""
    text: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self._api_key = self._resolve_api_key(config)
        if not self._api_key:
            logger.warning(f"API key not found: {config.api_key_env}")

    def _resolve_api_key(self, config: LLMConfig) -> Optional[str]:
        return get_api_key(config.api_key_env)

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = None,
        max_tokens: int = None,
        json_mode: bool = False
    ) -> TextResponse:
        """Generate a response from the LLM."""
        pass

    @property
    def is_available(self) -> bool:
        """Check if the provider is available."""
        return self._api_key is not None

    def _temperature(self, temperature: Optional[float]) -> float:
        return temperature if temperature is not None else self.config.temperature


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude provider."""

    def _resolve_api_key(self, config: LLMConfig) -> Optional[str]:
        return get_api_key(config.api_key_env) or get_anthropic_api_key()

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = None,
        max_tokens: int = None,
        json_mode: bool = False
    ) -> TextResponse:
        try:
            import anthropic

            client = anthropic.AsyncAnthropic(api_key=self._api_key, timeout=self.config.timeout)

            message = await client.messages.create(
                model=self.config.model,
                max_tokens=max_tokens or self.config.max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._temperature(temperature)
            )

            text = "".join(
                block.text for block in message.content if getattr(block, "type", "") == "text"
            )
            usage = TokenUsage(
                prompt_tokens=message.usage.input_tokens,
                response_tokens=message.usage.output_tokens,
                total_tokens=message.usage.input_tokens + message.usage.output_tokens,
            )
            return TextResponse(text=text, model=self.config.model, usage=usage)

        except Exception as e:
            raise LLMProviderError("anthropic", str(e))


class GoogleProvider(BaseLLMProvider):
    """Google Gemini provider."""

    def _resolve_api_key(self, config: LLMConfig) -> Optional[str]:
        return get_api_key(config.api_key_env) or get_google_api_key()

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = None,
        max_tokens: int = None,
        json_mode: bool = False
    ) -> TextResponse:
        try:
            import google.generativeai as genai

            genai.configure(api_key=self._api_key)
            model = genai.GenerativeModel(
                self.config.model,
                system_instruction=system_prompt or None
            )

            generation_config = {
                "temperature": self._temperature(temperature),
                "max_output_tokens": max_tokens or self.config.max_tokens
            }
            if json_mode:
                generation_config["response_mime_type"] = "application/json"

            response = await asyncio.to_thread(
                model.generate_content,
                prompt,
                generation_config=generation_config
            )

            if not response.candidates:
                block_reason = "UNKNOWN"
                feedback = getattr(response, "prompt_feedback", None)
                if feedback is not None and getattr(feedback, "block_reason", None):
                    block_reason = str(feedback.block_reason)
                raise LLMProviderError("google", f"Content blocked: {block_reason}")

            candidate = response.candidates[0]
            if not candidate.content or not candidate.content.parts:
                raise LLMProviderError(
                    "google", f"Empty content with finish_reason={candidate.finish_reason}"
                )

            meta = getattr(response, "usage_metadata", None)
            usage = TokenUsage()
            if meta is not None:
                usage = TokenUsage(
                    prompt_tokens=meta.prompt_token_count or 0,
                    response_tokens=meta.candidates_token_count or 0,
                    total_tokens=meta.total_token_count or 0,
                )
            return TextResponse(text=response.text, model=self.config.model, usage=usage)

        except LLMProviderError:
            raise
        except Exception as e:
            raise LLMProviderError("google", str(e))


class OpenAICompatibleProvider(BaseLLMProvider):
    """Any endpoint speaking the OpenAI chat completions protocol."""

    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = None,
        max_tokens: int = None,
        json_mode: bool = False
    ) -> TextResponse:
        try:
            import httpx

            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            payload: Dict[str, Any] = {
                "model": self.config.model,
                "messages": messages,
                "max_tokens": max_tokens or self.config.max_tokens,
                "temperature": self._temperature(temperature)
            }
            if json_mode:
                payload["response_format"] = {"type": "json_object"}

            base_url = (self.config.base_url or self.DEFAULT_BASE_URL).rstrip("/")
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json"
                    },
                    json=payload,
                    timeout=self.config.timeout
                )
                response.raise_for_status()
                data = response.json()

            raw_usage = data.get("usage") or {}
            usage = TokenUsage(
                prompt_tokens=raw_usage.get("prompt_tokens", 0),
                response_tokens=raw_usage.get("completion_tokens", 0),
                total_tokens=raw_usage.get("total_tokens", 0),
            )
            text = data["choices"][0]["message"]["content"] or ""
            return TextResponse(text=text, model=self.config.model, usage=usage)

        except Exception as e:
            raise LLMProviderError("openai_compatible", str(e))


class LLMManager:
    """
    Manages LLM providers and routes requests.

    Features:
    - Multiple provider support
    - Task-based routing
    - Fallback to the next available provider
    """

    PROVIDER_CLASSES = {
        LLMProvider.ANTHROPIC: AnthropicProvider,
        LLMProvider.GOOGLE: GoogleProvider,
        LLMProvider.OPENAI_COMPATIBLE: OpenAICompatibleProvider,
    }

    def __init__(self, config: Script2VideoConfig = None):
        """
        Initialize the LLM manager.

        Args:
            config: script2video configuration
        """
        self.config = config or get_config()
        self._providers: Dict[str, BaseLLMProvider] = {}

        # Stats tracking
        self._call_count = 0
        self._total_time = 0.0

        self._initialize_providers()

    def _initialize_providers(self) -> None:
        """Initialize all configured providers."""
        for name, llm_config in self.config.llm_configs.items():
            provider_class = self.PROVIDER_CLASSES.get(llm_config.provider)
            if provider_class:
                self._providers[name] = provider_class(llm_config)
                logger.debug(f"Initialized provider: {name}")

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        task: GenerationTask = None,
        temperature: float = None,
        max_tokens: int = None,
        json_mode: bool = False
    ) -> TextResponse:
        """
        Generate a response using the LLM configured for a task.

        Args:
            prompt: User prompt
            system_prompt: System prompt
            task: Generation task for routing
            temperature: Override temperature
            max_tokens: Override max tokens
            json_mode: Ask the provider for a JSON-only reply

        Returns:
            TextResponse with text and token usage
        """
        start_time = time.time()
        self._call_count += 1

        provider = self._get_provider_for_task(task)
        if not provider:
            raise LLMError("No available LLM provider")

        logger.debug(f"Using provider for {task.value if task else 'request'}: {provider.config.model}")

        response = await provider.generate(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=json_mode
        )

        elapsed = time.time() - start_time
        self._total_time += elapsed
        logger.info(
            f"{task.value if task else 'request'}: {response.usage.total_tokens} tokens "
            f"from {response.model} ({elapsed:.1f}s)"
        )
        return response

    def get_stats(self) -> Dict[str, Any]:
        """Get LLM manager statistics."""
        return {
            "total_calls": self._call_count,
            "total_time": f"{self._total_time:.2f}s",
            "avg_time_per_call": f"{(self._total_time / self._call_count):.3f}s" if self._call_count > 0 else "0s",
        }

    def _get_provider_for_task(
        self,
        task: GenerationTask = None
    ) -> Optional[BaseLLMProvider]:
        """Get the appropriate provider for a task."""
        if task and task in self.config.task_mappings:
            mapping = self.config.task_mappings[task]

            primary = self._providers.get(mapping.primary)
            if primary and primary.is_available:
                return primary

            if mapping.fallback:
                fallback = self._providers.get(mapping.fallback)
                if fallback and fallback.is_available:
                    logger.info(f"Primary '{mapping.primary}' unavailable, using '{mapping.fallback}'")
                    return fallback

        # Return first available provider
        for provider in self._providers.values():
            if provider.is_available:
                return provider

        return None
