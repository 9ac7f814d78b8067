"""Unit tests for LLMClient."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, patch
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError

from config import ChatConfig
from services.llm_client import LLMClient, LLMResponse, LLMClientError


@pytest.fixture
def config():
    return ChatConfig(groq_api_key="test_key", llm_timeout_seconds=12.0)


def _completion(content="Nick studied Computer Science.", prompt_tokens=150, completion_tokens=12):
    response = Mock()
    response.choices = [Mock(message=Mock(content=content))]
    response.usage = Mock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    return response


class TestLLMClient:
    """Test suite for LLMClient class."""

    @patch('services.llm_client.Groq')
    def test_initialization_uses_config_key_and_timeout(self, mock_groq_class, config):
        """The Groq client gets the configured key and timeout, with retries off."""
        client = LLMClient(config)

        assert client.api_key == "test_key"
        mock_groq_class.assert_called_once_with(api_key="test_key", timeout=12.0, max_retries=0)

    @patch('services.llm_client.Groq')
    def test_explicit_api_key_overrides_config(self, mock_groq_class, config):
        client = LLMClient(config, api_key="other_key")
        assert client.api_key == "other_key"

    def test_initialization_without_api_key_raises_error(self):
        """Test LLMClient raises error when no API key provided."""
        with pytest.raises(ValueError, match="GROQ_API_KEY must be provided"):
            LLMClient(ChatConfig(groq_api_key=None))

    @patch('services.llm_client.Groq')
    def test_generate_success(self, mock_groq_class, config):
        """Test successful response generation."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion()
        mock_groq_class.return_value = mock_client

        client = LLMClient(config)
        response = client.generate("What did Nick study?")

        assert isinstance(response, LLMResponse)
        assert response.text == "Nick studied Computer Science."
        assert response.tokens_input == 150
        assert response.tokens_output == 12
        assert response.model_used == config.chat_model
        assert isinstance(response.latency_ms, int)
        assert response.latency_ms >= 0

    @patch('services.llm_client.Groq')
    def test_generate_sends_single_user_message_with_defaults(self, mock_groq_class, config):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion()
        mock_groq_class.return_value = mock_client

        LLMClient(config).generate("Full prompt")

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Full prompt"}]
        assert kwargs["model"] == config.chat_model
        assert kwargs["max_tokens"] == config.max_response_tokens
        assert kwargs["temperature"] == config.temperature
        assert "response_format" not in kwargs

    @patch('services.llm_client.Groq')
    def test_generate_json_mode_and_overrides(self, mock_groq_class, config):
        """Judge calls request a JSON object from the evaluator model."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion(content='{"overall": 8}')
        mock_groq_class.return_value = mock_client

        response = LLMClient(config).generate(
            "Judge this", model="llama-3.1-8b-instant", max_tokens=600, temperature=0.0, json_mode=True
        )

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["model"] == "llama-3.1-8b-instant"
        assert kwargs["max_tokens"] == 600
        assert kwargs["temperature"] == 0.0
        assert response.model_used == "llama-3.1-8b-instant"

    @patch('services.llm_client.Groq')
    def test_generate_strips_whitespace(self, mock_groq_class, config):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion(content="  Hi there!\n")
        mock_groq_class.return_value = mock_client

        assert LLMClient(config).generate("hello").text == "Hi there!"

    @patch('services.llm_client.Groq')
    def test_generate_empty_response_raises(self, mock_groq_class, config):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion(content="   ")
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            LLMClient(config).generate("hello")

        assert exc_info.value.error.code == "EMPTY_RESPONSE"

    @patch('services.llm_client.Groq')
    def test_generate_handles_unknown_error(self, mock_groq_class, config):
        """Test that unexpected errors are properly raised with structured error."""
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = Exception("API Error")
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            LLMClient(config).generate("Test prompt")

        error = exc_info.value.error
        assert error.code == "UNKNOWN_ERROR"
        assert "Unexpected error" in error.message
        assert error.details["model"] == config.chat_model
        assert error.details["error_type"] == "Exception"

    @patch('services.llm_client.Groq')
    def test_generate_handles_rate_limit_error(self, mock_groq_class, config):
        """Test that rate limit errors are handled with retry suggestion."""
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = RateLimitError(
            message="Rate limit exceeded",
            response=Mock(status_code=429),
            body=None
        )
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            LLMClient(config).generate("Test prompt")

        error = exc_info.value.error
        assert error.code == "RATE_LIMIT_ERROR"
        assert error.details["retry_after"] == 60
        assert isinstance(error.details["latency_ms"], int)

    @patch('services.llm_client.Groq')
    def test_generate_handles_authentication_error(self, mock_groq_class, config):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = AuthenticationError(
            message="Invalid API key",
            response=Mock(status_code=401),
            body=None
        )
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            LLMClient(config).generate("Test prompt")

        assert exc_info.value.error.code == "AUTHENTICATION_ERROR"
        assert "Authentication failed" in exc_info.value.error.message

    @patch('services.llm_client.Groq')
    def test_generate_handles_timeout_error(self, mock_groq_class, config):
        """Test that timeout errors are handled properly."""
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = APITimeoutError(request=Mock())
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            LLMClient(config).generate("Test prompt")

        error = exc_info.value.error
        assert error.code == "TIMEOUT_ERROR"
        assert "timed out" in error.message

    @patch('services.llm_client.Groq')
    def test_generate_handles_generic_api_error(self, mock_groq_class, config):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = APIError(
            message="Service unavailable",
            request=Mock(),
            body=None
        )
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            LLMClient(config).generate("Test prompt")

        error = exc_info.value.error
        assert error.code == "API_ERROR"
        assert "Groq API error" in error.message
        assert "original_error" in error.details
