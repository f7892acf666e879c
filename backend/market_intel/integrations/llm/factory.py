import logging

from market_intel.config import Settings
from market_intel.integrations.llm.base import LLMProvider, TextGenerator
from market_intel.integrations.llm.generator import ChatModelGenerator, UnavailableGenerator
from market_intel.integrations.llm.providers import (
    AnthropicProvider,
    DeepSeekProvider,
    GoogleProvider,
    OpenAIProvider,
)

logger = logging.getLogger("market_intel.llm")

PROVIDERS: dict[str, type[LLMProvider]] = {
    "google": GoogleProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "deepseek": DeepSeekProvider,
}


def build_text_generator(settings: Settings) -> TextGenerator:
    """Build the system-wide text generator from settings.

    Falls back to UnavailableGenerator when the provider is unknown or its key
    is missing, so the pipeline still runs on deterministic fallbacks.
    """
    provider_class = PROVIDERS.get(settings.llm_provider)
    if not provider_class:
        logger.warning("Unsupported LLM provider %r, using fallbacks only", settings.llm_provider)
        return UnavailableGenerator(f"Unsupported LLM provider: {settings.llm_provider}")

    provider = provider_class()
    api_key = getattr(settings, provider.api_key_setting, "")
    if not api_key:
        logger.warning("No API key for LLM provider %s, using fallbacks only", provider.name)
        return UnavailableGenerator(f"No API key configured for {provider.name}")

    return ChatModelGenerator(
        provider=provider,
        api_key=api_key,
        model_name=settings.llm_model or provider.default_model,
        timeout=settings.llm_timeout_seconds,
    )
