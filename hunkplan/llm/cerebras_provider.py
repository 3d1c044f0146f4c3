"""Cerebras provider implementation (OpenAI-compatible inference API)."""

from hunkplan.config import LLMProvider
from hunkplan.llm.openai_provider import OpenAICompatibleProvider

CEREBRAS_BASE_URL = "https://api.cerebras.ai/v1"


class CerebrasProvider(OpenAICompatibleProvider):
    """Cerebras LLM provider."""

    provider = LLMProvider.CEREBRAS
    provider_name = "Cerebras"
    default_model = "gpt-oss-120b"
    base_url = CEREBRAS_BASE_URL
