import json
from datetime import date

import pytest

from market_intel.integrations.llm.base import LLMError, TextGenerator
from market_intel.schemas.intelligence import EnrichedArticle, NewsArticle


class ScriptedGenerator(TextGenerator):
    """Test double returning queued responses in call order.

    A queued exception is raised instead of returned. When the queue runs
    dry, `default` is used (an exception by default).
    """

    def __init__(self, responses=None, default=None):
        self.responses = list(responses or [])
        self.default = default if default is not None else LLMError("no scripted response")
        self.prompts: list[str] = []
        self.calls: list[dict] = []

    async def generate(self, prompt: str, *, temperature: float, max_output_tokens: int) -> str:
        self.prompts.append(prompt)
        self.calls.append({"temperature": temperature, "max_output_tokens": max_output_tokens})
        item = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, (dict, list)):
            return json.dumps(item)
        return item


@pytest.fixture(autouse=True)
def _reset_breakers():
    """Reset global circuit breakers between tests."""
    from market_intel.core.circuit_breaker import get_all_breakers
    for cb in get_all_breakers():
        cb.reset()
    yield
    for cb in get_all_breakers():
        cb.reset()


@pytest.fixture
def scripted_generator():
    return ScriptedGenerator


@pytest.fixture
def failing_generator():
    return ScriptedGenerator(default=LLMError("model down"))


def make_article(headline="Nvidia unveils new AI chip", ticker="NVDA", category="ai_compute_infra", url=""):
    return NewsArticle(ticker=ticker, headline=headline, url=url, source="Reuters", category=category)


def make_enriched(
    headline="Nvidia unveils new AI chip",
    ticker="NVDA",
    category="ai_compute_infra",
    sentiment=0.0,
    impact=50.0,
    entities=None,
    direction="neutral",
    url="",
):
    return EnrichedArticle(
        ticker=ticker,
        headline=headline,
        url=url,
        source="Reuters",
        category=category,
        sentiment_score=sentiment,
        impact_score=impact,
        key_entities=entities or [],
        trend_direction=direction,
    )


@pytest.fixture
def sample_articles():
    """Five articles across two categories."""
    return {
        "ai_compute_infra": [
            make_article("Nvidia unveils Blackwell successor at GTC", "NVDA", url="https://ex.com/1"),
            make_article("AMD wins hyperscaler order for MI400 accelerators", "AMD", url="https://ex.com/2"),
            make_article("Microsoft expands Azure AI datacenter capacity", "MSFT", url="https://ex.com/3"),
        ],
        "cybersecurity": [
            make_article("CrowdStrike raises guidance on strong demand", "CRWD", "cybersecurity", "https://ex.com/4"),
            make_article("Palo Alto Networks closes acquisition", "PANW", "cybersecurity", "https://ex.com/5"),
        ],
    }


@pytest.fixture
def today():
    return date(2026, 3, 10)


@pytest.fixture
def article_factory():
    return make_article


@pytest.fixture
def enriched_factory():
    return make_enriched
