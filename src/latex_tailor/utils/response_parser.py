"""Helpers to pull structured payloads out of LLM responses."""

from __future__ import annotations

import json
import re

_FENCE_RE = re.compile(r"```[a-zA-Z]*\s*\n(.*?)\n?```", re.DOTALL)
_DOCUMENT_RE = re.compile(r"\\documentclass.*?\\end\{document\}", re.DOTALL)


class ResponseParseError(ValueError):
    """No usable JSON in a response. Keeps the full response text."""

    def __init__(self, message: str, text: str = ""):
        super().__init__(message)
        self.text = text


def extract_json(text: str) -> dict | list:
    """Extract JSON from LLM response, handling ```json blocks.

    Tries in order:
    1. Direct json.loads on the full text
    2. Contents of the first fenced code block
    3. First '{' to last '}'

    Truncated or otherwise broken JSON is never repaired; a response that
    fails all three raises ResponseParseError so the caller can report it.
    """
    raw = text or ""
    text = raw.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    fenced = _strip_code_fences(text)
    if fenced is not None:
        try:
            return json.loads(fenced)
        except json.JSONDecodeError:
            pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            pass

    raise ResponseParseError(f"Could not extract JSON from text: {text[:200]}...", raw)


def extract_latex(text: str) -> str:
    """Extract a LaTeX document from an LLM response.

    Strips markdown fences, then keeps ``\\documentclass`` through
    ``\\end{document}`` when both are present. Partial documents are
    returned as-is after fence stripping.
    """
    text = (text or "").strip()
    fenced = _strip_code_fences(text)
    if fenced is not None:
        text = fenced

    match = _DOCUMENT_RE.search(text)
    if match:
        return match.group(0).strip()
    return text.strip()


def _strip_code_fences(text: str) -> str | None:
    """Return the body of the first fenced code block, or None."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return None
