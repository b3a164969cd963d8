"""
Model provider abstraction for chapter generation.

Supports multiple LLM backends:
- Claude (Anthropic) - default
- Ollama (local models)

Usage:
    provider = get_provider("ollama:llama3")
    result = provider.generate(system_prompt, user_prompt, config)

Providers raise on any transport or API failure. Deciding what to do with
a failure is the ChapterGenerator's job, not the provider's.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import anthropic
import httpx

logger = logging.getLogger("story_engine")

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_TIMEOUT_SECONDS = 60.0


class ProviderError(Exception):
    """Raised when a provider cannot produce a response."""
    pass


@dataclass
class ModelInfo:
    """Model identification information."""
    provider: str  # "anthropic", "ollama"
    model_name: str  # e.g., "claude-sonnet-4-5-20250929", "llama3"
    full_spec: str  # e.g., "claude-sonnet-4-5-20250929", "ollama:llama3"


@dataclass
class GenerationResult:
    """Result from text generation."""
    text: str
    usage: Optional[Dict[str, int]]
    provider: str
    model: str


def parse_model_spec(model_spec: Optional[str]) -> ModelInfo:
    """
    Parse model specification string into provider and model name.

    Formats:
    - "ollama:llama3" -> provider="ollama", model="llama3"
    - "claude-sonnet-4-5-20250929" -> provider="anthropic"
    - None -> default Claude model from CLAUDE_MODEL env

    Args:
        model_spec: Model specification string or None for default

    Returns:
        ModelInfo with provider and model name
    """
    if not model_spec:
        default_model = os.getenv("CLAUDE_MODEL", DEFAULT_CLAUDE_MODEL)
        return ModelInfo(
            provider="anthropic",
            model_name=default_model,
            full_spec=default_model
        )

    if model_spec.startswith("ollama:"):
        model_name = model_spec.split(":", 1)[1]
        return ModelInfo(
            provider="ollama",
            model_name=model_name,
            full_spec=model_spec
        )

    return ModelInfo(
        provider="anthropic",
        model_name=model_spec,
        full_spec=model_spec
    )


class ModelProvider(ABC):
    """Abstract base class for model providers."""

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Dict[str, Any]
    ) -> GenerationResult:
        """
        Generate text using the model.

        Args:
            system_prompt: System prompt text
            user_prompt: User prompt text
            config: api_key, max_tokens, temperature, timeout

        Returns:
            GenerationResult with generated text and metadata

        Raises:
            ProviderError: On any transport or API failure
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider name for metadata."""
        pass


class ClaudeProvider(ModelProvider):
    """Claude (Anthropic) model provider."""

    def __init__(self, model_name: str):
        self.model_name = model_name

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Dict[str, Any]
    ) -> GenerationResult:
        """Generate using Claude API."""
        logger.info(f"[ClaudeProvider] Generating with {self.model_name}")
        client = anthropic.Anthropic(
            api_key=config.get("api_key") or None,
            timeout=float(config.get("timeout", DEFAULT_TIMEOUT_SECONDS)),
        )

        try:
            message = client.messages.create(
                model=self.model_name,
                max_tokens=int(config.get("max_tokens", 1024)),
                temperature=float(config.get("temperature", 0.8)),
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}]
            )
        except (anthropic.AnthropicError, TypeError) as e:
            logger.error(f"[ClaudeProvider] Generation failed: {e}")
            raise ProviderError(f"Claude API call failed: {e}") from e

        if not message.content:
            raise ProviderError("Claude API returned no content blocks")
        text = message.content[0].text

        usage = None
        if getattr(message, "usage", None):
            try:
                usage = {
                    "input_tokens": message.usage.input_tokens,
                    "output_tokens": message.usage.output_tokens,
                    "total_tokens": message.usage.input_tokens + message.usage.output_tokens
                }
            except (AttributeError, TypeError):
                pass

        logger.info(f"[ClaudeProvider] Generated {len(text)} chars")

        return GenerationResult(
            text=text,
            usage=usage,
            provider=self.provider_name,
            model=self.model_name
        )


class OllamaProvider(ModelProvider):
    """Ollama (local) model provider."""

    def __init__(self, model_name: str):
        self.model_name = model_name
        self.host = os.getenv("OLLAMA_HOST", "localhost")
        self.port = int(os.getenv("OLLAMA_PORT", "11434"))

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Dict[str, Any]
    ) -> GenerationResult:
        """Generate using Ollama API."""
        logger.info(f"[OllamaProvider] Generating with {self.model_name}")

        request_body = {
            "model": self.model_name,
            "system": system_prompt,
            "prompt": user_prompt,
            "stream": False,
            "options": {
                "temperature": float(config.get("temperature", 0.8)),
                "num_predict": int(config.get("max_tokens", 1024)),
            }
        }

        timeout = float(config.get("timeout", DEFAULT_TIMEOUT_SECONDS))

        try:
            with httpx.Client(base_url=self.base_url, timeout=timeout) as client:
                response = client.post("/api/generate", json=request_body)
                response.raise_for_status()
                response_json = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"[OllamaProvider] Timeout after {timeout}s")
            raise ProviderError(f"Ollama timeout after {timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"[OllamaProvider] Request failed: {e}")
            raise ProviderError(f"Ollama request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Ollama returned invalid JSON: {e}") from e

        if "error" in response_json:
            raise ProviderError(f"Ollama error: {response_json['error']}")

        text = response_json.get("response", "")

        usage = None
        if "eval_count" in response_json:
            usage = {
                "input_tokens": response_json.get("prompt_eval_count", 0),
                "output_tokens": response_json.get("eval_count", 0),
                "total_tokens": response_json.get("prompt_eval_count", 0) + response_json.get("eval_count", 0)
            }

        logger.info(f"[OllamaProvider] Generated {len(text)} chars")

        return GenerationResult(
            text=text,
            usage=usage,
            provider=self.provider_name,
            model=self.model_name
        )


def get_provider(model_spec: Optional[str] = None) -> ModelProvider:
    """
    Get appropriate model provider for the given model specification.

    Args:
        model_spec: "ollama:llama3", a Claude model name, or None for default

    Returns:
        ModelProvider instance
    """
    info = parse_model_spec(model_spec)

    if info.provider == "ollama":
        return OllamaProvider(info.model_name)
    return ClaudeProvider(info.model_name)


def get_model_info(model_spec: Optional[str] = None) -> ModelInfo:
    """Get model information without creating a provider."""
    return parse_model_spec(model_spec)
