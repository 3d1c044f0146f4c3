"""Text-generation providers.

``get_provider()`` builds the provider selected in ~/.hunkplan/config.yaml
(or an explicit one). SDKs are imported only when their provider is built.
"""

import importlib
from typing import Optional

from dotenv import load_dotenv

import hunkplan.config as _config
from hunkplan.config import LLMProvider
from hunkplan.llm.base import BaseLLMProvider, RawLLMResult
from hunkplan.llm.exceptions import JSONParseError, LLMError, MissingAPIKeyError
from hunkplan.llm.parsing import parse_json_response

# API keys may come from a .env file in the working directory
load_dotenv()

_PROVIDER_CLASSES = {
    LLMProvider.ANTHROPIC: "anthropic_provider.AnthropicProvider",
    LLMProvider.OPENAI: "openai_provider.OpenAIProvider",
    LLMProvider.GOOGLE: "google_provider.GoogleProvider",
    LLMProvider.COHERE: "cohere_provider.CohereProvider",
    LLMProvider.GROQ: "groq_provider.GroqProvider",
    LLMProvider.OPENROUTER: "openrouter_provider.OpenRouterProvider",
    LLMProvider.CEREBRAS: "cerebras_provider.CerebrasProvider",
}


def get_provider(
    provider: Optional[LLMProvider] = None,
    model: Optional[str] = None,
    timeout: Optional[float] = None,
) -> BaseLLMProvider:
    """Instantiate a provider.

    Args:
        provider: Provider to build; the active one when omitted.
        model: Model name. When omitted the active model is used for the
            active provider and the provider's own default otherwise.
        timeout: Per-request SDK timeout in seconds.

    Raises:
        ValueError: If the provider is not supported.
    """
    if provider is None:
        provider = _config.ACTIVE_PROVIDER
        model = model or _config.ACTIVE_MODEL

    try:
        module_name, class_name = _PROVIDER_CLASSES[provider].rsplit(".", 1)
    except (KeyError, TypeError):
        raise ValueError(f"Unsupported provider: {provider}")

    module = importlib.import_module(f"hunkplan.llm.{module_name}")
    return getattr(module, class_name)(model=model, timeout=timeout)


__all__ = [
    "BaseLLMProvider",
    "RawLLMResult",
    "LLMError",
    "MissingAPIKeyError",
    "JSONParseError",
    "parse_json_response",
    "get_provider",
]
