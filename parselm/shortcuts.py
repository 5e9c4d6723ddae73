"""
ParseLM: Decision Shortcuts

One-call helpers for common control-flow questions. Each one is a fixed
schema, a structured() call and a value() projection, so an invalid final
response raises StructuredOutputError.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Mapping, Sequence

from ._types import ConfigurationError, InvalidSchemaError, Provider, Schema, StructuredConfig
from .orchestrator import structured
from .results import value
from .schema import resolve_schema

__all__ = ["is_true", "one_of", "to_list", "to_list_of", "switch"]


def _wrapped(item_schema: Any) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"value": item_schema},
        "required": ["value"],
    }


def _enum_schema(options: Sequence[str]) -> dict[str, Any]:
    if not options:
        raise ConfigurationError("At least one option is required")
    return _wrapped({"type": "string", "enum": list(options)})


async def _ask(context: str, schema: Mapping[str, Any], provider: Provider, config: StructuredConfig | None) -> Any:
    response = await structured(context, schema, provider, config=config)
    return value(response)["value"]


async def is_true(context: str, provider: Provider, *, config: StructuredConfig | None = None) -> bool:
    """Whether the model judges the statement in context to be true."""
    schema = {
        "type": "object",
        "properties": {"isTrue": {"type": "boolean"}},
        "required": ["isTrue"],
    }
    response = await structured(context, schema, provider, config=config)
    return value(response)["isTrue"] is True


async def one_of(
    context: str, options: Sequence[str], provider: Provider, *, config: StructuredConfig | None = None
) -> str:
    """Pick exactly one of the given strings."""
    return await _ask(context, _enum_schema(options), provider, config)


async def to_list(context: str, provider: Provider, *, config: StructuredConfig | None = None) -> list[str]:
    """Turn the context into a list of strings."""
    return await _ask(context, _wrapped({"type": "array", "items": {"type": "string"}}), provider, config)


async def to_list_of(
    context: str, item_schema: Schema, provider: Provider, *, config: StructuredConfig | None = None
) -> list[Any]:
    """Turn the context into a list of items matching item_schema."""
    item = resolve_schema(item_schema)
    if not isinstance(item, Mapping):
        raise InvalidSchemaError(f"Item schema must be a mapping, got {type(item).__name__}")
    item = dict(item)
    # Lift nested definitions so refs inside the item still resolve from the root
    defs = item.pop("$defs", None)
    schema = _wrapped({"type": "array", "items": item})
    if defs:
        schema["$defs"] = defs
    return await _ask(context, schema, provider, config)


async def switch(
    context: str,
    handlers: Mapping[str, Callable[[str], Any]],
    provider: Provider,
    *,
    config: StructuredConfig | None = None,
) -> Any:
    """Let the model choose a handler by key, then call it with the context."""
    choice = await _ask(context, _enum_schema(list(handlers)), provider, config)
    result = handlers[choice](context)
    if inspect.isawaitable(result):
        result = await result
    return result
