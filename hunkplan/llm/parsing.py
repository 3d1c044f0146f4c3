"""JSON parsing utilities for LLM responses."""

import json

from hunkplan.llm.exceptions import JSONParseError


def parse_json_response(raw_response: str) -> dict:
    """Parse the LLM response as JSON.

    Markdown fences and text around the outermost object are tolerated.

    Args:
        raw_response: The raw text response from the LLM.

    Returns:
        The parsed JSON object.

    Raises:
        JSONParseError: If parsing fails or the payload is not an object.
    """
    cleaned = (raw_response or "").strip()

    # Remove markdown code fences if the model included them despite instructions
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines)

    first_brace = cleaned.find("{")
    last_brace = cleaned.rfind("}")
    if first_brace != -1 and last_brace != -1 and last_brace > first_brace:
        cleaned = cleaned[first_brace:last_brace + 1]

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise JSONParseError(
            f"Failed to parse LLM response as JSON.\n"
            f"Error: {e}\n"
            f"Raw response:\n{raw_response}"
        )

    if not isinstance(parsed, dict):
        raise JSONParseError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
