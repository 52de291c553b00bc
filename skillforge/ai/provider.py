"""Abstract AI provider interface."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from knack.util import CLIError

logger = logging.getLogger(__name__)


@dataclass
class AIMessage:
    """A message in an AI conversation."""

    role: str  # "system", "user", "assistant"
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class AIResponse:
    """Response from an AI provider."""

    content: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)  # tokens
    metadata: dict[str, Any] = field(default_factory=dict)
    finish_reason: str = "stop"


class AIProvider(ABC):
    """Abstract base class for AI providers.

    Implementations provide a unified interface regardless of whether
    the backend is GitHub Models or Azure OpenAI.
    """

    @abstractmethod
    def chat(
        self,
        messages: list[AIMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        response_format: dict | None = None,
    ) -> AIResponse:
        """Send a chat completion request.

        Args:
            messages: Conversation history.
            model: Model to use (provider-specific, uses default if None).
            temperature: Sampling temperature.
            max_tokens: Maximum tokens in response.
            response_format: Optional structured output format (e.g., JSON mode).

        Returns:
            AIResponse with the model's reply.
        """

    @abstractmethod
    def stream_chat(
        self,
        messages: list[AIMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> Iterator[str]:
        """Stream a chat completion response, yielding content chunks."""

    @abstractmethod
    def list_models(self) -> list[dict]:
        """List available models from this provider."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'github-models', 'azure-openai')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Return the default model ID for this provider."""


class OpenAICompatibleProvider(AIProvider):
    """Shared request/response handling for providers backed by the ``openai`` SDK.

    Subclasses build ``self._client`` and set ``_error_label`` (used in
    log lines and error messages).
    """

    _error_label = "AI provider"
    _error_hint = ""

    def __init__(self, model: str):
        self._model = model
        self._client = self._create_client()

    @abstractmethod
    def _create_client(self):
        """Return an ``openai`` client instance."""

    @staticmethod
    def _messages_to_dicts(messages: list[AIMessage]) -> list[dict[str, Any]]:
        return [{"role": m.role, "content": m.content} for m in messages]

    def chat(
        self,
        messages: list[AIMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        response_format: dict | None = None,
    ) -> AIResponse:
        kwargs: dict[str, Any] = {
            "model": model or self._model,
            "messages": self._messages_to_dicts(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            kwargs["response_format"] = response_format

        try:
            response = self._client.chat.completions.create(**kwargs)
        except Exception as e:
            logger.error("%s error: %s", self._error_label, e)
            raise CLIError(f"{self._error_label} request failed: {e}{self._error_hint}")

        choice = response.choices[0]
        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return AIResponse(
            content=choice.message.content or "",
            model=response.model,
            usage=usage,
            finish_reason=choice.finish_reason or "stop",
        )

    def stream_chat(
        self,
        messages: list[AIMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> Iterator[str]:
        try:
            stream = self._client.chat.completions.create(
                model=model or self._model,
                messages=self._messages_to_dicts(messages),  # type: ignore[arg-type]
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )

            for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content

        except Exception as e:
            logger.error("%s streaming error: %s", self._error_label, e)
            raise CLIError(f"Streaming failed from {self._error_label}: {e}")

    @property
    def default_model(self) -> str:
        return self._model
