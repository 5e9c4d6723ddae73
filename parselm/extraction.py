"""
ParseLM: JSON Substring Extraction

Pull a single JSON value out of free-form model output. Models wrap JSON in
prose, in ```json fences, restate corrected answers after a draft, or emit
pseudo-JSON. Rather than a full parser, we collect candidate substrings and
let json.loads decide which ones are real.

Candidate precedence:
1. Fenced blocks tagged json (any case) or untagged, if there are any.
2. Otherwise, balanced top-level {...} / [...] regions from the whole text.
Candidates are tried last to first; the first one that parses wins.
"""

from __future__ import annotations

import json
import re
from typing import Any

from ._types import ExtractionResult

__all__ = [
    "parse_json_substring",
    "find_fenced_blocks",
    "find_json_regions",
]

# Opening fence, optional language tag, lazily matched body, closing fence.
_FENCE_RE = re.compile(r"```[ \t]*([A-Za-z0-9_+.\-]*)([\s\S]*?)```")

_OPENER_RE = re.compile(r"[\[{]")

# What may follow "{" or "[" (after whitespace) in real JSON.
_OBJECT_BODY_RE = re.compile(r'\s*["}]')
_ARRAY_BODY_RE = re.compile(r'\s*(?:["{\[\]\-\d]|true\b|false\b|null\b)')


def parse_json_substring(text: str) -> ExtractionResult:
    """
    Extract the most likely JSON value from model output. Never raises.

    Returns an ExtractionResult whose structured field is None when no
    candidate parsed, and whose raw field is the input text unchanged.
    """
    if not text or not text.strip():
        return ExtractionResult(structured=None, raw=text)

    # Invalid fenced JSON does not fall back to bare regions
    candidates = find_fenced_blocks(text) or find_json_regions(text)

    # Last candidate wins: models often restate a corrected answer after a draft
    for candidate in reversed(candidates):
        value = _try_parse(candidate)
        if value is not None:
            return ExtractionResult(structured=value, raw=text)

    return ExtractionResult(structured=None, raw=text)


def find_fenced_blocks(text: str) -> list[str]:
    """Inner contents of ```json and untagged fences, in order of appearance."""
    blocks: list[str] = []
    for match in _FENCE_RE.finditer(text):
        tag = match.group(1)
        if tag and tag.lower() != "json":
            continue
        blocks.append(match.group(2))
    return blocks


def find_json_regions(text: str) -> list[str]:
    """
    Balanced top-level {...} and [...] regions, in order of appearance.

    Brackets inside string literals do not count. An opener that is never
    closed ends the scan when it looks like the start of JSON (truncated
    output), since everything after it is nested, not top-level. A stray
    opener in prose ("use { here") is skipped instead.
    """
    regions: list[str] = []
    pos = 0

    while True:
        opener = _OPENER_RE.search(text, pos)
        if opener is None:
            break
        start = opener.start()
        end = _match_region(text, start)
        if end == -1:
            if _starts_json(text, start):
                break
            pos = start + 1
            continue
        regions.append(text[start : end + 1])
        pos = end + 1

    return regions


def _match_region(text: str, start: int) -> int:
    """Index of the bracket closing the region opened at start, or -1."""
    depth = 0
    in_string = False
    escape = False

    for i in range(start, len(text)):
        char = text[i]

        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return i

    return -1


def _starts_json(text: str, start: int) -> bool:
    """Whether the opener at start is followed by something JSON could contain."""
    body_re = _OBJECT_BODY_RE if text[start] == "{" else _ARRAY_BODY_RE
    return body_re.match(text, start + 1) is not None


def _try_parse(candidate: str) -> Any:
    # JSON null is indistinguishable from "nothing found", so it never wins
    try:
        return json.loads(candidate)
    except (ValueError, RecursionError):
        return None
