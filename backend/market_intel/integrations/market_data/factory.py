"""Market data provider factory."""

from market_intel.config import Settings
from market_intel.integrations.market_data.base import MarketDataProvider


def build_market_data_provider(settings: Settings) -> MarketDataProvider:
    """Create the configured provider ("yahoo" or "finnhub")."""
    if settings.market_data_provider == "finnhub":
        from market_intel.integrations.market_data.finnhub_provider import FinnhubMarketDataProvider
        return FinnhubMarketDataProvider(api_key=settings.finnhub_api_key)
    elif settings.market_data_provider == "yahoo":
        from market_intel.integrations.market_data.yahoo_provider import YahooMarketDataProvider
        return YahooMarketDataProvider()
    else:
        raise ValueError(
            f"Unknown market data provider: {settings.market_data_provider}. Supported: 'yahoo', 'finnhub'"
        )
