"""Text-generation provider settings.

Module-level ``ACTIVE_*`` values start at the built-in defaults and are
replaced by ``load_config()`` from ~/.hunkplan/config.yaml. Change them
with the ``hunkplan config`` commands.
"""

from enum import Enum
from typing import NamedTuple


class LLMProvider(Enum):
    """Providers that can write commit messages."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"
    COHERE = "cohere"
    GROQ = "groq"
    OPENROUTER = "openrouter"
    CEREBRAS = "cerebras"


class ProviderInfo(NamedTuple):
    key_env_var: str
    models: list[str]


PROVIDERS: dict[LLMProvider, ProviderInfo] = {
    LLMProvider.CEREBRAS: ProviderInfo(
        "CEREBRAS_API_KEY", ["gpt-oss-120b", "llama-3.3-70b", "qwen-3-32b"]
    ),
    LLMProvider.ANTHROPIC: ProviderInfo(
        "ANTHROPIC_API_KEY", ["claude-sonnet-4-20250514", "claude-3-5-haiku-latest"]
    ),
    LLMProvider.OPENAI: ProviderInfo(
        "OPENAI_API_KEY", ["gpt-4.1", "gpt-4.1-mini", "gpt-4o-mini"]
    ),
    LLMProvider.GOOGLE: ProviderInfo(
        "GOOGLE_API_KEY", ["gemini-2.5-flash", "gemini-2.0-flash", "gemini-2.0-flash-lite"]
    ),
    LLMProvider.COHERE: ProviderInfo("COHERE_API_KEY", ["command-r-plus", "command-r"]),
    LLMProvider.GROQ: ProviderInfo(
        "GROQ_API_KEY", ["llama-3.3-70b-versatile", "llama-3.1-8b-instant"]
    ),
    LLMProvider.OPENROUTER: ProviderInfo(
        "OPENROUTER_API_KEY",
        [
            "anthropic/claude-sonnet-4",
            "openai/gpt-4o",
            "deepseek/deepseek-chat",
            "qwen/qwen-2.5-coder-32b-instruct",
        ],
    ),
}

AVAILABLE_MODELS = {provider: info.models for provider, info in PROVIDERS.items()}
API_KEY_ENV_VARS = {provider: info.key_env_var for provider, info in PROVIDERS.items()}

# Used when the global config file is absent or leaves a value unset
DEFAULT_PROVIDER = LLMProvider.CEREBRAS
DEFAULT_MODEL = "gpt-oss-120b"
DEFAULT_MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.3

ACTIVE_PROVIDER = DEFAULT_PROVIDER
ACTIVE_MODEL = DEFAULT_MODEL
MAX_TOKENS = DEFAULT_MAX_TOKENS
TEMPERATURE = DEFAULT_TEMPERATURE


def load_config() -> None:
    """Apply the global config file to the ACTIVE_* settings.

    Values the file does not set are left as they are, and an unreadable
    file leaves every setting alone. The CLI calls this before building a
    provider.
    """
    global ACTIVE_PROVIDER, ACTIVE_MODEL, MAX_TOKENS, TEMPERATURE

    # global_config imports this module
    from hunkplan import global_config

    try:
        provider = global_config.get_active_provider()
        model = global_config.get_active_model()
        max_tokens = global_config.get_max_tokens()
        temperature = global_config.get_temperature()
    except global_config.GlobalConfigError:
        return

    ACTIVE_PROVIDER = provider or ACTIVE_PROVIDER
    ACTIVE_MODEL = model or ACTIVE_MODEL
    if max_tokens is not None:
        MAX_TOKENS = max_tokens
    if temperature is not None:
        TEMPERATURE = temperature


def get_api_key_env_var(provider: LLMProvider) -> str:
    """Name of the environment variable holding ``provider``'s API key."""
    return PROVIDERS[provider].key_env_var
