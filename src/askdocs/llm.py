"""Chat-completion clients used to answer questions and summarise documents."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

import requests
from requests.exceptions import RequestException

from askdocs.prompting import DEFAULT_SYSTEM_PROMPT

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from askdocs.config import Settings

LOGGER = logging.getLogger(__name__)

NO_RESPONSE_TEXT = "No response generated"


class LLMError(RuntimeError):
    """Base exception raised for chat provider issues."""


class LLMNotConfiguredError(LLMError):
    """Raised when the provider is selected but has no credentials."""


class LLMGenerationError(LLMError):
    """Raised when the provider rejects or fails a completion request."""


class ChatClient(ABC):
    """Common contract for chat-completion providers."""

    @abstractmethod
    def chat(
        self,
        message: str,
        *,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> str:
        """Return a single text reply for *message*."""

    @property
    def model_name(self) -> str:
        return "stub"


class CohereChatClient(ChatClient):
    """Call the Cohere ``/chat`` endpoint, passing the system prompt as preamble."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        api_base: str = "https://api.cohere.ai/v1",
        model: str = "command-r",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._url = f"{api_base.rstrip('/')}/chat"
        self._model = model
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def model_name(self) -> str:
        return self._model

    def chat(
        self,
        message: str,
        *,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> str:
        if not self._api_key:
            raise LLMNotConfiguredError("COHERE_API_KEY is not configured")

        payload = {
            "model": self._model,
            "message": message,
            "preamble": system_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.post(self._url, json=payload, headers=headers, timeout=self._timeout)
        except RequestException as error:
            LOGGER.error("Cohere chat request failed: %s", error)
            raise LLMGenerationError(f"Cohere chat request failed: {error}") from error

        if not response.ok:
            raise LLMGenerationError(f"Cohere chat API error ({response.status_code}): {response.text}")

        data = response.json()
        return data.get("text") or NO_RESPONSE_TEXT


class MockChatClient(ChatClient):
    """Return a deterministic reply for any message."""

    def __init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    def chat(
        self,
        message: str,
        *,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> str:
        self.calls.append(
            {
                "message": message,
                "system_prompt": system_prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        return f"MOCK_ANSWER: {message[:100]}"

    @property
    def model_name(self) -> str:
        return "mock"


def build_chat_client(settings: "Settings") -> ChatClient:
    backend = settings.llm_backend
    if backend == "mock":
        return MockChatClient()
    if backend == "cohere":
        return CohereChatClient(
            settings.cohere_api_key,
            api_base=settings.cohere_api_base,
            model=settings.cohere_chat_model,
            timeout=settings.http_timeout,
        )
    raise ValueError(f"Unsupported LLM_BACKEND: {backend!r}")


__all__ = [
    "ChatClient",
    "CohereChatClient",
    "LLMError",
    "LLMGenerationError",
    "LLMNotConfiguredError",
    "MockChatClient",
    "NO_RESPONSE_TEXT",
    "build_chat_client",
]
