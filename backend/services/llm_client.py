"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any, NoReturn
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import ChatConfig

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class LLMClient:
    """Client for interfacing with Groq API for text generation."""

    def __init__(self, config: ChatConfig, api_key: Optional[str] = None):
        """
        Initialize LLM client.

        Args:
            config: Chat settings (model names, timeout, sampling)
            api_key: Groq API key (defaults to config.groq_api_key)
        """
        self.config = config
        self.api_key = api_key or config.groq_api_key
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        # Retries are disabled so a timeout surfaces within llm_timeout_seconds
        self.client = Groq(
            api_key=self.api_key,
            timeout=config.llm_timeout_seconds,
            max_retries=0,
        )
        logger.info("LLMClient initialized successfully")

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Generate a completion for a fully assembled prompt.

        Args:
            prompt: Complete prompt with instructions, context and question
            model: Model name (defaults to config.chat_model)
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            json_mode: Ask the model for a JSON object response

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        model = model or self.config.chat_model
        max_tokens = max_tokens or self.config.max_response_tokens
        if temperature is None:
            temperature = self.config.temperature
        start_time = time.time()

        request: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            logger.debug(f"Generating response with model: {model}")
            response = self.client.chat.completions.create(**request)
        except RateLimitError as e:
            self._raise(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e, retry_after=60,
            )
        except AuthenticationError as e:
            self._raise(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e,
            )
        except APITimeoutError as e:
            self._raise("TIMEOUT_ERROR", "Request timed out. Please try again.", model, start_time, e)
        except APIError as e:
            self._raise("API_ERROR", f"Groq API error: {str(e)}", model, start_time, e)
        except Exception as e:
            self._raise(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                model, start_time, e, error_type=type(e).__name__,
            )

        latency_ms = int((time.time() - start_time) * 1000)
        text = response.choices[0].message.content
        if not text or not text.strip():
            self._raise("EMPTY_RESPONSE", "Model returned an empty response.", model, start_time, None)

        tokens_input = response.usage.prompt_tokens
        tokens_output = response.usage.completion_tokens

        logger.info(
            f"Generated response: model={model}, "
            f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
            f"latency={latency_ms}ms"
        )

        return LLMResponse(
            text=text.strip(),
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            latency_ms=latency_ms,
            model_used=model
        )

    @staticmethod
    def _raise(
        code: str,
        message: str,
        model: str,
        start_time: float,
        cause: Optional[Exception],
        **extra: Any
    ) -> NoReturn:
        """Log and raise a structured LLMClientError."""
        latency_ms = int((time.time() - start_time) * 1000)
        details: Dict[str, Any] = {"model": model, "latency_ms": latency_ms, **extra}
        if cause is not None:
            details["original_error"] = str(cause)
        error = LLMError(code=code, message=message, details=details)
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={cause}",
            exc_info=cause is not None,
            extra={"error_code": code, "error_details": details}
        )
        raise LLMClientError(error) from cause
