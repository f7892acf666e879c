"""TextGenerator implementations and the metered JSON request helper used by stages."""

import asyncio
import logging
import time
from typing import Any

from langchain_core.language_models import BaseChatModel

from market_intel.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpen, llm_breaker
from market_intel.core.metrics import LLM_CALLS_TOTAL, LLM_CALL_DURATION
from market_intel.integrations.llm.base import (
    LLMError,
    LLMProvider,
    LLMResponseError,
    LLMUnavailableError,
    TextGenerator,
)
from market_intel.integrations.llm.parsing import parse_llm_json

logger = logging.getLogger("market_intel.llm")


def _content_to_text(content: Any) -> str:
    """Flatten a chat message content (str or list of parts) into text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content or "")


class ChatModelGenerator(TextGenerator):
    """Generates text through a LangChain chat model.

    One chat model instance is cached per (temperature, max tokens) pair, since
    LangChain binds sampling options at construction time.
    """

    def __init__(
        self,
        provider: LLMProvider,
        api_key: str,
        model_name: str,
        timeout: float = 45.0,
        breaker: CircuitBreaker = llm_breaker,
    ):
        self.provider = provider
        self.api_key = api_key
        self.model_name = model_name
        self.timeout = timeout
        self.breaker = breaker
        self._models: dict[tuple[float, int], BaseChatModel] = {}

    def _model_for(self, temperature: float, max_output_tokens: int) -> BaseChatModel:
        key = (temperature, max_output_tokens)
        if key not in self._models:
            self._models[key] = self.provider.create_chat_model(
                api_key=self.api_key,
                model_name=self.model_name,
                temperature=temperature,
                max_tokens=max_output_tokens,
            )
        return self._models[key]

    async def generate(self, prompt: str, *, temperature: float, max_output_tokens: int) -> str:
        try:
            self.breaker.check()
        except CircuitBreakerOpen as e:
            raise LLMUnavailableError(str(e)) from e

        model = self._model_for(temperature, max_output_tokens)
        try:
            response = await asyncio.wait_for(model.ainvoke(prompt), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            self.breaker.record_failure()
            raise LLMError(f"{self.provider.name} call timed out after {self.timeout:.0f}s") from e
        except Exception as e:
            self.breaker.record_failure()
            raise LLMError(f"{self.provider.name} call failed: {e}") from e

        self.breaker.record_success()
        text = _content_to_text(response.content)
        if not text.strip():
            raise LLMResponseError(f"{self.provider.name} returned an empty response")
        return text


class UnavailableGenerator(TextGenerator):
    """Stand-in when no API key is configured; every stage falls back."""

    def __init__(self, reason: str = "No language model API key configured"):
        self.reason = reason

    async def generate(self, prompt: str, *, temperature: float, max_output_tokens: int) -> str:
        raise LLMUnavailableError(self.reason)


async def request_text(
    generator: TextGenerator,
    prompt: str,
    *,
    stage: str,
    temperature: float,
    max_output_tokens: int,
) -> str:
    """Generate free text, recording per-stage call metrics."""
    return await _metered(
        generator, prompt, stage=stage, temperature=temperature,
        max_output_tokens=max_output_tokens, as_json=False,
    )


async def request_json(
    generator: TextGenerator,
    prompt: str,
    *,
    stage: str,
    temperature: float,
    max_output_tokens: int,
) -> Any:
    """Generate and parse a JSON answer, recording per-stage call metrics.

    Raises:
        LLMError: on any generation failure or unparsable output.
    """
    return await _metered(
        generator, prompt, stage=stage, temperature=temperature,
        max_output_tokens=max_output_tokens, as_json=True,
    )


async def _metered(
    generator: TextGenerator,
    prompt: str,
    *,
    stage: str,
    temperature: float,
    max_output_tokens: int,
    as_json: bool,
) -> Any:
    start = time.monotonic()
    try:
        text = await generator.generate(
            prompt, temperature=temperature, max_output_tokens=max_output_tokens,
        )
        payload = parse_llm_json(text) if as_json else text
    except LLMUnavailableError:
        LLM_CALLS_TOTAL.labels(stage=stage, outcome="unavailable").inc()
        raise
    except LLMResponseError:
        LLM_CALLS_TOTAL.labels(stage=stage, outcome="malformed").inc()
        raise
    except LLMError:
        LLM_CALLS_TOTAL.labels(stage=stage, outcome="error").inc()
        raise
    finally:
        LLM_CALL_DURATION.labels(stage=stage).observe(time.monotonic() - start)

    LLM_CALLS_TOTAL.labels(stage=stage, outcome="ok").inc()
    return payload
