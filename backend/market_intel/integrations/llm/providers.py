from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from market_intel.integrations.llm.base import LLMProvider


class GoogleProvider(LLMProvider):
    name = "google"
    api_key_setting = "google_api_key"

    def create_chat_model(self, api_key: str, model_name: str = "gemini-2.0-flash", **kwargs) -> BaseChatModel:
        return ChatGoogleGenerativeAI(
            google_api_key=api_key,
            model=model_name,
            temperature=kwargs.get("temperature", 0.3),
            max_output_tokens=kwargs.get("max_tokens", 1500),
        )

    def list_available_models(self) -> list[str]:
        return ["gemini-2.0-flash", "gemini-2.5-flash", "gemini-2.5-pro"]


class OpenAIProvider(LLMProvider):
    name = "openai"
    api_key_setting = "openai_api_key"

    def create_chat_model(self, api_key: str, model_name: str = "gpt-4o-mini", **kwargs) -> BaseChatModel:
        return ChatOpenAI(
            api_key=api_key,
            model=model_name,
            temperature=kwargs.get("temperature", 0.3),
            max_tokens=kwargs.get("max_tokens", 1500),
        )

    def list_available_models(self) -> list[str]:
        return ["gpt-4o-mini", "gpt-4o"]


class AnthropicProvider(LLMProvider):
    name = "anthropic"
    api_key_setting = "anthropic_api_key"

    def create_chat_model(self, api_key: str, model_name: str = "claude-haiku-4-5-20251001", **kwargs) -> BaseChatModel:
        return ChatAnthropic(
            api_key=api_key,
            model=model_name,
            temperature=kwargs.get("temperature", 0.3),
            max_tokens=kwargs.get("max_tokens", 1500),
        )

    def list_available_models(self) -> list[str]:
        return ["claude-haiku-4-5-20251001", "claude-sonnet-4-5-20250929"]


class DeepSeekProvider(LLMProvider):
    name = "deepseek"
    api_key_setting = "deepseek_api_key"
    BASE_URL = "https://api.deepseek.com"

    def create_chat_model(self, api_key: str, model_name: str = "deepseek-chat", **kwargs) -> BaseChatModel:
        return ChatOpenAI(
            api_key=api_key,
            model=model_name,
            base_url=self.BASE_URL,
            temperature=kwargs.get("temperature", 0.3),
            max_tokens=kwargs.get("max_tokens", 1500),
        )

    def list_available_models(self) -> list[str]:
        return ["deepseek-chat"]
