"""
ParseLM: Result Projection

Small helpers for call sites that want the value rather than the envelope.
Compute the StructuredResponse once, then project it as often as needed.
"""

from __future__ import annotations

from typing import Any

from ._types import SafeValue, StructuredOutputError, StructuredResponse

__all__ = ["value", "safe_value"]


def value(response: StructuredResponse) -> Any:
    """Return the validated value. Raises StructuredOutputError if not valid."""
    if not response.valid:
        raise StructuredOutputError(response)
    return response.structured


def safe_value(response: StructuredResponse) -> SafeValue:
    """Non-raising variant of value()."""
    try:
        return SafeValue(success=True, value=value(response))
    except StructuredOutputError as err:
        return SafeValue(success=False, error=str(err))
