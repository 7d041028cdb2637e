"""
JSON extraction for Gemini responses.

Gemini frequently wraps JSON in markdown fences or surrounds it with prose.
`parse_llm_json` peels those layers off and, when the payload is still not
valid JSON (trailing commas, single quotes), hands it to json-repair.
"""

import json
import re
from typing import Any, Dict

from json_repair import repair_json

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_llm_json(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of an LLM response.

    Args:
        text: Raw response text

    Returns:
        Parsed dictionary

    Raises:
        ValueError: If no JSON object can be extracted or repaired

    Example:
        >>> parse_llm_json('```json\\n{"overallMatch": 72}\\n```')
        {'overallMatch': 72}
    """
    if not text or not text.strip():
        raise ValueError("Empty response: no JSON content to parse")

    candidate = strip_code_fences(text.strip())

    match = _OBJECT_RE.search(candidate)
    if not match:
        raise ValueError(f"No JSON object found in response: {text[:200]}")
    candidate = match.group(0)

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        parsed = repair_json(candidate, return_objects=True)

    if isinstance(parsed, list) and len(parsed) == 1:
        parsed = parsed[0]
    if not isinstance(parsed, dict):
        raise ValueError(
            f"Response did not contain a JSON object (got {type(parsed).__name__}): {text[:200]}"
        )
    return parsed


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) block if present."""
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1)
    return text
