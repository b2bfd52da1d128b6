# specforge/ai/json_extract.py
"""Pull a JSON object out of free-form model output."""

import json
import re
from typing import Any

from specforge.errors import ErrorCode, SpecforgeError, make_error

_FENCE = re.compile(r"```(?:json)?\s*\n(.*?)\n?```", re.DOTALL | re.IGNORECASE)


def extract_json(raw_output: str) -> dict[str, Any]:
    """
    Extract the first JSON object from model output.

    Tries, in order: the whole text, fenced code blocks (```json ... ```),
    then the first decodable object starting at any "{".

    Raises:
        SpecforgeError: AI_RESPONSE_INVALID (retryable) if no object is found
    """
    text = raw_output.strip()
    candidates = [text] + [m.group(1).strip() for m in _FENCE.finditer(raw_output)]
    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value

    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", raw_output):
        try:
            value, _ = decoder.raw_decode(raw_output, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value

    preview = raw_output[:200].replace("\n", "\\n")
    raise SpecforgeError(
        make_error(
            ErrorCode.AI_RESPONSE_INVALID,
            f"Could not extract a JSON object from AI response ({len(raw_output)} chars)",
            preview=preview,
        )
    )
