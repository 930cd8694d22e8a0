"""
LLM Client - OpenAI-compatible chat client wrapper with retry and error normalization
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from openai import OpenAI, RateLimitError

from pipeline_settings import Settings

logger = logging.getLogger(__name__)

Messages = List[Dict[str, str]]


class ModelCallError(RuntimeError):
    """Raised when a model call fails after retries or returns a malformed response"""


class ModelNotConfiguredError(ModelCallError):
    """Raised when no API key is available for the model endpoint"""


class ModelCaller(Protocol):
    """Anything that turns an ordered conversation into assistant text"""

    def call_model(self, messages: Messages, **options: Any) -> str:
        ...


def _is_rate_limit(error: Exception) -> bool:
    if isinstance(error, RateLimitError):
        return True
    text = str(error).lower()
    return "rate limit" in text or "429" in text


def call_chat_completion(
    client: OpenAI,
    model: str,
    messages: Messages,
    timeout: int = 60,
    max_retries: int = 2,
    log: Optional[Callable[[str], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs
) -> Any:
    """
    Resilient wrapper for chat completion with timeout and retry logic.

    Args:
        client: OpenAI client instance
        model: Model name (e.g., "deepseek/deepseek-chat-v3-0324")
        messages: Chat messages, system message first
        timeout: Request timeout in seconds
        max_retries: Maximum retry attempts after the first call
        log: Optional sink for retry messages
        sleep: Backoff function
        **kwargs: Additional arguments for chat.completions.create

    Returns:
        Chat completion response

    Raises:
        ModelCallError: If all retries fail
    """
    emit = log or logger.warning
    last_error = None

    for attempt in range(max_retries + 1):
        try:
            return client.chat.completions.create(
                model=model,
                messages=messages,
                timeout=timeout,
                **kwargs
            )
        except Exception as e:
            last_error = e
            kind = "rate limited" if _is_rate_limit(e) else "failed"
            if attempt < max_retries:
                wait_time = 2 ** attempt  # Exponential backoff
                emit(f"LLM call {kind} (attempt {attempt + 1}/{max_retries + 1}): {e}. "
                     f"Retrying in {wait_time} seconds...")
                sleep(wait_time)
            else:
                emit(f"LLM call {kind} (attempt {attempt + 1}/{max_retries + 1}): {e}")

    raise ModelCallError(f"LLM call failed after {max_retries + 1} attempts: {last_error}") from last_error


class ModelClient:
    """Model caller bound to one OpenAI-compatible endpoint"""

    def __init__(self, settings: Settings, openai_client: Optional[OpenAI] = None):
        self.settings = settings
        self._client = openai_client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.settings.api_key:
                raise ModelNotConfiguredError(
                    "API key not found in environment (set OPENROUTER_API_KEY)"
                )
            # Retries are handled by call_chat_completion
            self._client = OpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.api_base_url,
                max_retries=0,
            )
        return self._client

    def call_model(
        self,
        messages: Messages,
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Send the conversation and return the assistant text."""
        response = call_chat_completion(
            self.client,
            model or self.settings.model,
            messages,
            timeout=self.settings.request_timeout,
            max_retries=self.settings.client_max_retries,
            max_tokens=max_tokens if max_tokens is not None else self.settings.max_tokens,
            temperature=temperature if temperature is not None else self.settings.temperature,
        )

        choices = getattr(response, "choices", None)
        if not choices:
            raise ModelCallError("Invalid response structure: no choices returned")
        message = getattr(choices[0], "message", None)
        if message is None:
            raise ModelCallError("Invalid response structure: missing message")
        content = getattr(message, "content", None)
        if content is None:
            raise ModelCallError("Invalid response structure: message content is empty")
        return content


def call_llm(
    model: ModelCaller,
    messages: Messages,
    context: str,
    log: Optional[Callable[[str], None]] = None,
    **options: Any
) -> Optional[str]:
    """
    Call the model and normalize every failure to None.

    The context label identifies the calling phase in log output
    (e.g. "function analysis batch 2/3").
    """
    emit = log or logger.error
    try:
        text = model.call_model(messages, **options)
    except ModelNotConfiguredError as e:
        emit(f"[{context}] model not configured: {e}")
        return None
    except Exception as e:
        if _is_rate_limit(e):
            emit(f"[{context}] rate limit hit: {e}")
        else:
            emit(f"[{context}] model call failed: {type(e).__name__}: {e}")
        return None

    if not text or not text.strip():
        emit(f"[{context}] model returned an empty response")
        return None
    return text
