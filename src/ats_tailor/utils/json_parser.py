"""Utility to extract JSON from LLM responses."""

from __future__ import annotations

import json

from ats_tailor.errors import ParseError


def extract_json(text: str) -> dict | list:
    """Extract JSON from LLM response, handling ```json blocks.

    Tries in order:
    1. Direct json.loads on the full text
    2. Strip fenced code block markers and parse
    3. Find first '{' to last '}' and parse
    4. Find first '[' to last ']' and parse (JSON array)

    Truncated output is not repaired: a cut-off block list would silently
    lose content, so it is reported as a ParseError instead.
    """
    if not isinstance(text, str):
        raise ParseError(f"Expected text, got {type(text).__name__}")
    text = text.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    stripped = _strip_code_fences(text)
    if stripped != text:
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            pass
        result = _extract_braces(stripped)
        if result is not None:
            return result

    result = _extract_braces(text)
    if result is not None:
        return result

    result = _extract_brackets(text)
    if result is not None:
        return result

    raise ParseError("Could not extract JSON from model output", raw=text)


def extract_json_object(text: str) -> dict:
    """Like extract_json, but the payload must be a single JSON object."""
    data = extract_json(text)
    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}", raw=text)
    return data


def _strip_code_fences(text: str) -> str:
    """Remove markdown code fence markers from text."""
    lines = text.split("\n")

    if lines and lines[0].strip().startswith("```"):
        lines = lines[1:]

    while lines and lines[-1].strip() in ("```", ""):
        lines = lines[:-1]

    return "\n".join(lines).strip()


def _extract_braces(text: str) -> dict | None:
    """Try to extract JSON object from first '{' to last '}'."""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            pass
    return None


def _extract_brackets(text: str) -> list | None:
    """Try to extract JSON array from first '[' to last ']'."""
    start = text.find("[")
    end = text.rfind("]")
    if start != -1 and end != -1 and end > start:
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            pass
    return None
