"""OpenRouter provider implementation.

OpenRouter provides unified access to many models through a single API.
It uses an OpenAI-compatible API format.
"""

from hunkplan.config import LLMProvider
from hunkplan.llm.openai_provider import OpenAICompatibleProvider

# OpenRouter API base URL
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterProvider(OpenAICompatibleProvider):
    """OpenRouter LLM provider (model names use provider/model-name)."""

    provider = LLMProvider.OPENROUTER
    provider_name = "OpenRouter"
    default_model = "anthropic/claude-sonnet-4"
    base_url = OPENROUTER_BASE_URL
    extra_headers = {
        "HTTP-Referer": "https://github.com/hunkplan",
        "X-Title": "hunkplan",
    }
