"""Groq provider implementation."""

from typing import Optional

from groq import Groq

import hunkplan.config as _config
from hunkplan.config import API_KEY_ENV_VARS, LLMProvider
from hunkplan.llm.base import BaseLLMProvider, RawLLMResult
from hunkplan.llm.exceptions import LLMError, MissingAPIKeyError


class GroqProvider(BaseLLMProvider):
    """Groq LLM provider (fast inference for open-source models)."""

    provider_name = "Groq"

    def __init__(self, model: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the Groq provider.

        Args:
            model: The model to use. Defaults to llama-3.3-70b-versatile.
            timeout: Per-request timeout in seconds.
        """
        self.model = model or "llama-3.3-70b-versatile"
        self.timeout = timeout
        self.api_key_env_var = API_KEY_ENV_VARS[LLMProvider.GROQ]

    def get_api_key(self) -> str:
        return self._get_api_key_with_fallback(self.api_key_env_var, "Groq")

    def generate_raw(self, system_prompt: str, user_prompt: str) -> RawLLMResult:
        """Generate a raw response using Groq.

        Raises:
            MissingAPIKeyError: If the API key is not set.
            LLMError: For other LLM-related errors.
        """
        api_key = self.get_api_key()
        client = Groq(api_key=api_key, **self._client_options())

        try:
            response = client.chat.completions.create(
                model=self.model,
                max_tokens=_config.MAX_TOKENS,
                temperature=_config.TEMPERATURE,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
            raw_response = response.choices[0].message.content or ""
            input_tokens = response.usage.prompt_tokens if response.usage else 0
            output_tokens = response.usage.completion_tokens if response.usage else 0
        except MissingAPIKeyError:
            raise
        except Exception as e:
            raise LLMError(f"Groq API call failed: {e}")

        if not raw_response.strip():
            raise LLMError("Groq returned an empty response")

        return RawLLMResult(
            raw_response=raw_response,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
