"""Tests for model_provider module."""

import os
import pytest
from unittest.mock import patch, MagicMock

import anthropic
import httpx

from src.story.model_provider import (
    DEFAULT_CLAUDE_MODEL,
    ClaudeProvider,
    GenerationResult,
    OllamaProvider,
    ProviderError,
    get_model_info,
    get_provider,
    parse_model_spec,
)


CONFIG = {"api_key": "test-key", "max_tokens": 256, "temperature": 0.5, "timeout": 12.0}


class TestParseModelSpec:
    """Tests for parse_model_spec function."""

    def test_none_uses_default_claude(self):
        with patch.dict(os.environ, {}, clear=True):
            info = parse_model_spec(None)
        assert info.provider == "anthropic"
        assert info.model_name == DEFAULT_CLAUDE_MODEL

    def test_none_respects_claude_model_env(self):
        with patch.dict(os.environ, {"CLAUDE_MODEL": "claude-test"}, clear=True):
            info = parse_model_spec(None)
        assert info.model_name == "claude-test"

    def test_ollama_spec(self):
        info = parse_model_spec("ollama:llama3")
        assert info.provider == "ollama"
        assert info.model_name == "llama3"
        assert info.full_spec == "ollama:llama3"

    def test_ollama_spec_with_tag(self):
        assert parse_model_spec("ollama:qwen:7b").model_name == "qwen:7b"

    def test_claude_model_name(self):
        info = parse_model_spec("claude-opus-test")
        assert info.provider == "anthropic"
        assert info.model_name == "claude-opus-test"


class TestGetProvider:
    """Tests for get_provider / get_model_info."""

    def test_ollama_provider(self):
        provider = get_provider("ollama:llama3")
        assert isinstance(provider, OllamaProvider)
        assert provider.provider_name == "ollama"

    def test_claude_provider(self):
        provider = get_provider("claude-test")
        assert isinstance(provider, ClaudeProvider)
        assert provider.model_name == "claude-test"

    def test_get_model_info(self):
        assert get_model_info("ollama:llama3").provider == "ollama"


class TestClaudeProvider:
    """Tests for ClaudeProvider with a mocked Anthropic client."""

    def _message(self, text="A fine chapter."):
        message = MagicMock()
        message.content = [MagicMock(text=text)]
        message.usage.input_tokens = 10
        message.usage.output_tokens = 5
        return message

    def test_generate(self):
        with patch("src.story.model_provider.anthropic.Anthropic") as mock_cls:
            client = mock_cls.return_value
            client.messages.create.return_value = self._message()

            result = ClaudeProvider("claude-test").generate("system", "user", CONFIG)

        assert isinstance(result, GenerationResult)
        assert result.text == "A fine chapter."
        assert result.usage == {"input_tokens": 10, "output_tokens": 5, "total_tokens": 15}
        assert result.provider == "anthropic"

        mock_cls.assert_called_once_with(api_key="test-key", timeout=12.0)
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 256
        assert kwargs["temperature"] == 0.5
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]

    def test_api_error_raises_provider_error(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        with patch("src.story.model_provider.anthropic.Anthropic") as mock_cls:
            mock_cls.return_value.messages.create.side_effect = anthropic.APIConnectionError(
                request=request
            )

            with pytest.raises(ProviderError):
                ClaudeProvider("claude-test").generate("system", "user", CONFIG)

    def test_empty_content_raises_provider_error(self):
        with patch("src.story.model_provider.anthropic.Anthropic") as mock_cls:
            message = self._message()
            message.content = []
            mock_cls.return_value.messages.create.return_value = message

            with pytest.raises(ProviderError):
                ClaudeProvider("claude-test").generate("system", "user", CONFIG)


class TestOllamaProvider:
    """Tests for OllamaProvider with a mocked httpx client."""

    def _patch_client(self):
        patcher = patch("src.story.model_provider.httpx.Client")
        mock_cls = patcher.start()
        client = MagicMock()
        mock_cls.return_value.__enter__.return_value = client
        return patcher, mock_cls, client

    def test_generate(self):
        patcher, mock_cls, client = self._patch_client()
        try:
            response = MagicMock()
            response.json.return_value = {
                "response": "Local chapter text.",
                "prompt_eval_count": 7,
                "eval_count": 3,
            }
            client.post.return_value = response

            result = OllamaProvider("llama3").generate("system", "user", CONFIG)
        finally:
            patcher.stop()

        assert result.text == "Local chapter text."
        assert result.usage["total_tokens"] == 10
        assert mock_cls.call_args.kwargs["timeout"] == 12.0

        path = client.post.call_args.args[0]
        body = client.post.call_args.kwargs["json"]
        assert path == "/api/generate"
        assert body["model"] == "llama3"
        assert body["system"] == "system"
        assert body["stream"] is False
        assert body["options"]["num_predict"] == 256

    def test_timeout_raises_provider_error(self):
        patcher, _, client = self._patch_client()
        try:
            client.post.side_effect = httpx.TimeoutException("timed out")
            with pytest.raises(ProviderError, match="timeout"):
                OllamaProvider("llama3").generate("system", "user", CONFIG)
        finally:
            patcher.stop()

    def test_connection_error_raises_provider_error(self):
        patcher, _, client = self._patch_client()
        try:
            client.post.side_effect = httpx.ConnectError("refused")
            with pytest.raises(ProviderError):
                OllamaProvider("llama3").generate("system", "user", CONFIG)
        finally:
            patcher.stop()

    def test_error_payload_raises_provider_error(self):
        patcher, _, client = self._patch_client()
        try:
            response = MagicMock()
            response.json.return_value = {"error": "model not found"}
            client.post.return_value = response
            with pytest.raises(ProviderError, match="model not found"):
                OllamaProvider("llama3").generate("system", "user", CONFIG)
        finally:
            patcher.stop()

    def test_base_url_from_env(self):
        with patch.dict(os.environ, {"OLLAMA_HOST": "gpu-box", "OLLAMA_PORT": "9999"}):
            provider = OllamaProvider("llama3")
        assert provider.base_url == "http://gpu-box:9999"
