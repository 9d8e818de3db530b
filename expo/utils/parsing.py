"""Shared parsing utilities for model responses."""

import json
import re

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def strip_fences(text: str) -> str:
    """Strip markdown code fences from LLM output if present."""
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def parse_json_object(text: str) -> dict:
    """Parse the JSON object in a model reply.

    Fences are stripped first; if the remainder still has prose around the
    object, the outermost {...} span is used. Raises ValueError when no
    JSON object can be decoded.
    """
    content = strip_fences(text or "")
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        match = _OBJECT_RE.search(content)
        if not match:
            raise ValueError("Response does not contain a JSON object.") from None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Response JSON is malformed: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Response JSON must be an object.")
    return data
