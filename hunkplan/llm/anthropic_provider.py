"""Anthropic Claude provider implementation."""

from typing import Optional

from anthropic import Anthropic

import hunkplan.config as _config
from hunkplan.config import API_KEY_ENV_VARS, LLMProvider
from hunkplan.llm.base import BaseLLMProvider, RawLLMResult
from hunkplan.llm.exceptions import LLMError, MissingAPIKeyError


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude LLM provider."""

    provider_name = "Anthropic"

    def __init__(self, model: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the Anthropic provider.

        Args:
            model: The model to use. Defaults to claude-sonnet-4-20250514.
            timeout: Per-request timeout in seconds.
        """
        self.model = model or "claude-sonnet-4-20250514"
        self.timeout = timeout
        self.api_key_env_var = API_KEY_ENV_VARS[LLMProvider.ANTHROPIC]

    def get_api_key(self) -> str:
        return self._get_api_key_with_fallback(self.api_key_env_var, "Anthropic")

    def generate_raw(self, system_prompt: str, user_prompt: str) -> RawLLMResult:
        """Generate a raw response using Anthropic Claude.

        Raises:
            MissingAPIKeyError: If the API key is not set.
            LLMError: For other LLM-related errors.
        """
        api_key = self.get_api_key()
        client = Anthropic(api_key=api_key, **self._client_options())

        try:
            message = client.messages.create(
                model=self.model,
                max_tokens=_config.MAX_TOKENS,
                temperature=_config.TEMPERATURE,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
            raw_response = "".join(
                block.text for block in message.content if getattr(block, "type", "") == "text"
            )
            input_tokens = message.usage.input_tokens
            output_tokens = message.usage.output_tokens
        except MissingAPIKeyError:
            raise
        except Exception as e:
            raise LLMError(f"Anthropic API call failed: {e}")

        if not raw_response.strip():
            raise LLMError("Anthropic returned an empty response")

        return RawLLMResult(
            raw_response=raw_response,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
