"""OpenAI provider implementation.

Also hosts OpenAICompatibleProvider, shared by services that expose the
OpenAI chat-completions API (OpenRouter, Cerebras).
"""

from typing import Optional

from openai import OpenAI

import hunkplan.config as _config
from hunkplan.config import API_KEY_ENV_VARS, LLMProvider
from hunkplan.llm.base import BaseLLMProvider, RawLLMResult
from hunkplan.llm.exceptions import LLMError, MissingAPIKeyError


class OpenAICompatibleProvider(BaseLLMProvider):
    """Provider speaking the OpenAI chat-completions protocol."""

    provider = LLMProvider.OPENAI
    provider_name = "OpenAI"
    default_model = "gpt-4.1-mini"
    base_url: Optional[str] = None
    extra_headers: Optional[dict] = None

    def __init__(self, model: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the provider.

        Args:
            model: The model to use. Defaults to the provider's default model.
            timeout: Per-request timeout in seconds.
        """
        self.model = model or self.default_model
        self.timeout = timeout
        self.api_key_env_var = API_KEY_ENV_VARS[self.provider]

    def get_api_key(self) -> str:
        return self._get_api_key_with_fallback(self.api_key_env_var, self.provider_name)

    def _client(self, api_key: str) -> OpenAI:
        if self.base_url:
            return OpenAI(api_key=api_key, base_url=self.base_url, **self._client_options())
        return OpenAI(api_key=api_key, **self._client_options())

    def generate_raw(self, system_prompt: str, user_prompt: str) -> RawLLMResult:
        """Generate a raw response with a chat-completions call.

        Raises:
            MissingAPIKeyError: If the API key is not set.
            LLMError: For API failures or an empty response.
        """
        api_key = self.get_api_key()
        client = self._client(api_key)

        kwargs = {}
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers

        try:
            response = client.chat.completions.create(
                model=self.model,
                max_tokens=_config.MAX_TOKENS,
                temperature=_config.TEMPERATURE,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                **kwargs,
            )
            raw_response = response.choices[0].message.content or ""
            input_tokens = response.usage.prompt_tokens if response.usage else 0
            output_tokens = response.usage.completion_tokens if response.usage else 0
        except MissingAPIKeyError:
            raise
        except Exception as e:
            raise LLMError(f"{self.provider_name} API call failed: {e}")

        if not raw_response.strip():
            raise LLMError(f"{self.provider_name} returned an empty response")

        return RawLLMResult(
            raw_response=raw_response,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI LLM provider."""
