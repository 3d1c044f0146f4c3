"""Tests for hunkplan.llm.parsing and the provider base class."""

import pytest

from hunkplan.llm.base import BaseLLMProvider, RawLLMResult
from hunkplan.llm.exceptions import JSONParseError, LLMError
from hunkplan.llm.parsing import parse_json_response


class TestParseJsonResponse:
    """Tests for parse_json_response function."""

    def test_plain_object(self):
        """Test parsing a bare JSON object."""
        assert parse_json_response('{"summary": "add flag"}') == {"summary": "add flag"}

    def test_markdown_fence(self):
        """Test that a fenced block is unwrapped."""
        raw = '```json\n{"summary": "add flag", "body": null}\n```'
        assert parse_json_response(raw) == {"summary": "add flag", "body": None}

    def test_surrounding_text(self):
        """Test that chatter around the object is ignored."""
        raw = 'Here is the message:\n{"summary": "fix typo"}\nHope this helps.'
        assert parse_json_response(raw) == {"summary": "fix typo"}

    def test_invalid_json(self):
        """Test that malformed JSON raises JSONParseError."""
        with pytest.raises(JSONParseError, match="Failed to parse"):
            parse_json_response('{"summary": ')

    def test_not_an_object(self):
        """Test that a JSON array is rejected."""
        with pytest.raises(JSONParseError, match="Expected a JSON object"):
            parse_json_response("[1, 2, 3]")

    def test_empty(self):
        """Test that an empty response is rejected."""
        with pytest.raises(JSONParseError):
            parse_json_response("")

    def test_is_llm_error(self):
        """Test the exception hierarchy."""
        assert issubclass(JSONParseError, LLMError)


class TestBaseLLMProvider:
    """Tests for the abstract provider contract."""

    def test_cannot_instantiate(self):
        """Test that the base class is abstract."""
        with pytest.raises(TypeError):
            BaseLLMProvider()

    def test_subclass(self):
        """Test a minimal concrete provider."""

        class EchoProvider(BaseLLMProvider):
            def get_api_key(self):
                return "key"

            def generate_raw(self, system_prompt, user_prompt):
                return RawLLMResult(raw_response=user_prompt, model="echo")

        result = EchoProvider().generate_raw("system", "hello")
        assert result.raw_response == "hello"
        assert result.input_tokens == 0
