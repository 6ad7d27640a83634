"""
LLM Client Infrastructure
==========================

Wrapper for LLM providers (Z.AI, OpenAI) providing a clean interface for
chat completions used by the classifier.

The domain layer depends on ILLMClient, not on a provider SDK.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import AsyncOpenAI
from zai import ZaiClient

from helpdesk.config import Settings, settings
from helpdesk.core import ConfigurationException, LLMException
from helpdesk.shared.infrastructure.grafana import get_grafana_exporter


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """Interface for LLM client operations."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 500,
        operation: str = "classification"
    ) -> ChatCompletionResult:
        """Generate chat completion."""


async def _export_usage(result: ChatCompletionResult, operation: str) -> None:
    exporter = get_grafana_exporter()
    if exporter.is_enabled():
        await exporter.export_llm_metrics(
            model=result.model,
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
            latency_ms=result.latency_ms,
            operation=operation
        )


class ZAILLMClient(ILLMClient):
    """
    Z.AI SDK client implementation for GLM models.

    The SDK is synchronous; calls run in a worker thread so the event
    loop keeps serving other tickets.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self._api_key = api_key or settings.zai_api_key
        if not self._api_key:
            raise ConfigurationException("Z.AI API key not configured")

        self._client = ZaiClient(api_key=self._api_key)
        self._model = model or settings.llm_model

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 500,
        operation: str = "classification"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using GLM.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate
            operation: Operation type for metrics

        Returns:
            ChatCompletionResult with generated text

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await asyncio.to_thread(
                self._client.chat.completions.create,
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {e}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        content = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        if usage is not None:
            prompt_tokens = usage.prompt_tokens
            completion_tokens = usage.completion_tokens
        else:
            # Estimate when the provider omits usage
            prompt_tokens = len(str(messages))
            completion_tokens = len(content)

        result = ChatCompletionResult(
            content=content,
            model=self._model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms
        )
        await _export_usage(result, operation)
        return result


class OpenAILLMClient(ILLMClient):
    """OpenAI client implementation for GPT models."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self._api_key = api_key or settings.openai_api_key
        if not self._api_key:
            raise ConfigurationException("OpenAI API key not configured")

        self._client = AsyncOpenAI(api_key=self._api_key)
        self._model = model or settings.llm_model

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 500,
        operation: str = "classification"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using OpenAI GPT.

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {e}")

        result = ChatCompletionResult(
            content=response.choices[0].message.content or "",
            model=self._model,
            prompt_tokens=response.usage.prompt_tokens,
            completion_tokens=response.usage.completion_tokens,
            latency_ms=int((time.perf_counter() - start_time) * 1000)
        )
        await _export_usage(result, operation)
        return result


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for testing.

    Returns a predictable classification without calling external APIs.
    Pass `content` to script a specific answer.
    """

    DEFAULT_RESPONSE = {
        "category": "other",
        "category_conf": 0.6,
        "priority": "medium",
        "priority_conf": 0.6,
        "disposition": "needs_operator",
        "disposition_conf": 0.6,
        "summary": "Mock: request needs review by an operator."
    }

    def __init__(self, content: Optional[str] = None):
        self._content = content or f"```json\n{json.dumps(self.DEFAULT_RESPONSE, indent=2)}\n```"
        self.calls: List[List[dict]] = []

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 500,
        operation: str = "classification"
    ) -> ChatCompletionResult:
        """Return the scripted response."""
        self.calls.append(messages)
        return ChatCompletionResult(
            content=self._content,
            model="mock-model",
            prompt_tokens=100,
            completion_tokens=len(self._content.split()),
            latency_ms=1
        )


def create_llm_client(config: Settings = settings) -> ILLMClient:
    """
    Build the configured LLM client.

    Raises:
        ConfigurationException: unknown provider or missing API key
    """
    if config.mock_llm:
        return MockLLMClient()
    if config.llm_provider == "zai":
        return ZAILLMClient(config.zai_api_key, config.llm_model)
    if config.llm_provider == "openai":
        return OpenAILLMClient(config.openai_api_key, config.llm_model)
    raise ConfigurationException(f"Unknown LLM provider: {config.llm_provider}")


__all__ = [
    "ChatCompletionResult",
    "ILLMClient",
    "ZAILLMClient",
    "OpenAILLMClient",
    "MockLLMClient",
    "create_llm_client",
]
