"""Google Gemini provider implementation."""

from typing import Optional

from google import genai
from google.genai import types

import hunkplan.config as _config
from hunkplan.config import API_KEY_ENV_VARS, LLMProvider
from hunkplan.llm.base import BaseLLMProvider, RawLLMResult
from hunkplan.llm.exceptions import LLMError, MissingAPIKeyError

# Models whose internal reasoning counts against max_output_tokens
THINKING_MODELS = [
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-2.0-flash-thinking",
]

THINKING_TOKEN_MULTIPLIER = 3


class GoogleProvider(BaseLLMProvider):
    """Google Gemini LLM provider."""

    provider_name = "Google"

    def __init__(self, model: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the Google provider.

        Args:
            model: The model to use. Defaults to gemini-2.0-flash.
            timeout: Per-request timeout in seconds.
        """
        self.model = model or "gemini-2.0-flash"
        self.timeout = timeout
        self.api_key_env_var = API_KEY_ENV_VARS[LLMProvider.GOOGLE]

    def get_api_key(self) -> str:
        return self._get_api_key_with_fallback(self.api_key_env_var, "Google")

    def _is_thinking_model(self) -> bool:
        return any(thinking in self.model.lower() for thinking in THINKING_MODELS)

    def generate_raw(self, system_prompt: str, user_prompt: str) -> RawLLMResult:
        """Generate a raw response using Google Gemini.

        Raises:
            MissingAPIKeyError: If the API key is not set.
            LLMError: For blocked, truncated or failed generations.
        """
        api_key = self.get_api_key()
        if self.timeout is None:
            client = genai.Client(api_key=api_key)
        else:
            # HttpOptions takes milliseconds
            client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )

        max_tokens = _config.MAX_TOKENS
        if self._is_thinking_model():
            max_tokens *= THINKING_TOKEN_MULTIPLIER

        try:
            response = client.models.generate_content(
                model=self.model,
                contents=user_prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    max_output_tokens=max_tokens,
                    temperature=_config.TEMPERATURE,
                ),
            )
        except MissingAPIKeyError:
            raise
        except Exception as e:
            raise LLMError(f"Google Gemini API call failed: {e}")

        if not response.candidates:
            raise LLMError("Google Gemini returned no candidates in response")

        finish_reason = str(getattr(response.candidates[0], "finish_reason", ""))
        if "SAFETY" in finish_reason:
            raise LLMError(f"Google Gemini blocked response: {finish_reason}")
        if "MAX_TOKENS" in finish_reason:
            raise LLMError("Response truncated due to max tokens limit.")

        raw_response = response.text or ""
        if not raw_response.strip():
            raise LLMError("Google Gemini returned empty response")

        usage = getattr(response, "usage_metadata", None)
        return RawLLMResult(
            raw_response=raw_response,
            model=self.model,
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
        )
