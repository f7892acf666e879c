from abc import ABC, abstractmethod
from langchain_core.language_models import BaseChatModel


class LLMError(Exception):
    """Base error for language-model calls. Stages recover from it with their fallback."""


class LLMUnavailableError(LLMError):
    """No model is configured, or the circuit breaker is open."""


class LLMResponseError(LLMError):
    """The model answered, but the answer could not be used."""


class LLMProvider(ABC):
    """Builds LangChain chat models for one vendor."""

    name: str
    api_key_setting: str

    @abstractmethod
    def create_chat_model(self, api_key: str, model_name: str, **kwargs) -> BaseChatModel:
        ...

    @abstractmethod
    def list_available_models(self) -> list[str]:
        ...

    @property
    def default_model(self) -> str:
        return self.list_available_models()[0]


class TextGenerator(ABC):
    """The one capability every pipeline stage needs from a language model."""

    @abstractmethod
    async def generate(self, prompt: str, *, temperature: float, max_output_tokens: int) -> str:
        ...
