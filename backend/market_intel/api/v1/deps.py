import hmac
from functools import lru_cache

from fastapi import Header, HTTPException, status

from market_intel.config import get_settings
from market_intel.db.session import async_session_factory
from market_intel.integrations.llm.base import TextGenerator
from market_intel.integrations.llm.factory import build_text_generator
from market_intel.integrations.market_data.base import MarketDataProvider
from market_intel.integrations.market_data.factory import build_market_data_provider
from market_intel.integrations.news.base import NewsSource
from market_intel.integrations.news.factory import build_news_source
from market_intel.services.intelligence_store import IntelligenceStore


def get_store() -> IntelligenceStore:
    return IntelligenceStore(async_session_factory)


@lru_cache
def get_text_generator() -> TextGenerator:
    return build_text_generator(get_settings())


@lru_cache
def get_market_data() -> MarketDataProvider:
    return build_market_data_provider(get_settings())


def get_news_source() -> NewsSource:
    return build_news_source(get_settings())


async def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
    """Guard for endpoints that trigger runs or send email."""
    expected = get_settings().admin_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin endpoints are disabled (ADMIN_TOKEN not configured)",
        )
    if not x_admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Admin-Token header")
    if not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin token")
