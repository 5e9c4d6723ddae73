"""
ParseLM: Schema Helpers

Two jobs:
- minimal_schema() renders a JSON schema as a compact one-line type sketch
  for prompts. Cheaper in tokens than the verbatim schema, and advisory only.
- validate_json_schema() checks extracted values against the full schema
  with the jsonschema library. This is the authoritative check.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError, ValidationError
from jsonschema.validators import validator_for

from ._types import InvalidSchemaError, Schema, ValidationErrorDetail

__all__ = [
    "minimal_schema",
    "resolve_schema",
    "check_schema",
    "validate_json_schema",
]

# JSON type name -> compact type word. Numbers lose the int/float distinction.
_SCALAR_TYPES: dict[str, str] = {
    "string": "string",
    "number": "float",
    "integer": "float",
    "boolean": "boolean",
    "null": "null",
}

# Rendered for node kinds the compactor does not understand.
_PLACEHOLDER = "unknown"


# --- Compaction ---


def minimal_schema(schema: Any) -> str:
    """
    Render a JSON schema as a compact single-line type description.

    >>> minimal_schema({"type": "object", "properties": {
    ...     "user_id": {"type": "number"},
    ...     "status": {"type": "string", "enum": ["active", "inactive"]},
    ... }})
    "{ user_id: float, status: 'active' | 'inactive' }"
    """
    return _compact(schema, schema, ())


def _compact(node: Any, root: Any, seen: tuple[str, ...]) -> str:
    if node is True:
        return "any"
    if node is False:
        return "never"
    if not isinstance(node, Mapping):
        return _PLACEHOLDER
    if not node:
        return "any"

    ref = node.get("$ref")
    if isinstance(ref, str):
        # Cyclic or external refs render as the definition name
        if ref in seen:
            return _ref_name(ref)
        target = _resolve_ref(root, ref)
        if target is None:
            return _ref_name(ref)
        return _compact(target, root, seen + (ref,))

    if "const" in node:
        return _literal(node["const"])

    enum = node.get("enum")
    if isinstance(enum, list):
        return " | ".join(_literal(v) for v in enum) if enum else "never"

    for key in ("anyOf", "oneOf"):
        options = node.get(key)
        if isinstance(options, list) and options:
            return " | ".join(_compact(option, root, seen) for option in options)

    parts = node.get("allOf")
    if isinstance(parts, list) and parts:
        return " & ".join(_compact(part, root, seen) for part in parts)

    type_ = node.get("type")
    if isinstance(type_, list):
        if not type_:
            return "any"
        return " | ".join(_compact_type(t, node, root, seen) for t in type_)
    if isinstance(type_, str):
        return _compact_type(type_, node, root, seen)

    # Untyped nodes: infer from structural keywords
    if "properties" in node or "additionalProperties" in node:
        return _compact_type("object", node, root, seen)
    if "items" in node or "prefixItems" in node:
        return _compact_type("array", node, root, seen)
    return "any"


def _compact_type(type_: Any, node: Mapping[str, Any], root: Any, seen: tuple[str, ...]) -> str:
    if type_ == "object":
        return _compact_object(node, root, seen)
    if type_ == "array":
        return _compact_array(node, root, seen)
    if isinstance(type_, str) and type_ in _SCALAR_TYPES:
        return _SCALAR_TYPES[type_]
    return _PLACEHOLDER


def _compact_object(node: Mapping[str, Any], root: Any, seen: tuple[str, ...]) -> str:
    properties = node.get("properties")
    if isinstance(properties, Mapping) and properties:
        fields = ", ".join(
            f"{name}: {_compact(child, root, seen)}" for name, child in properties.items()
        )
        return f"{{ {fields} }}"

    additional = node.get("additionalProperties")
    if isinstance(additional, Mapping) and additional:
        return f"{{ [key: string]: {_compact(additional, root, seen)} }}"
    return "{}"


def _compact_array(node: Mapping[str, Any], root: Any, seen: tuple[str, ...]) -> str:
    items = node.get("items")
    prefix = node.get("prefixItems")

    # Tuple forms: 2020-12 prefixItems, or draft-07 list-valued items
    if isinstance(prefix, list):
        return "[" + ", ".join(_compact(item, root, seen) for item in prefix) + "]"
    if isinstance(items, list):
        return "[" + ", ".join(_compact(item, root, seen) for item in items) + "]"

    if items is None:
        return "any[]"
    item = _compact(items, root, seen)
    if " | " in item or " & " in item:
        return f"({item})[]"
    return f"{item}[]"


def _literal(value: Any) -> str:
    if isinstance(value, str):
        return f"'{value}'"
    return json.dumps(value)


def _resolve_ref(root: Any, ref: str) -> Any:
    """Resolve a local JSON pointer ref ("#/$defs/Name"). None if unresolvable."""
    if not ref.startswith("#"):
        return None
    pointer = ref[1:]
    node = root
    if not pointer:
        return node
    for token in pointer.lstrip("/").split("/"):
        token = token.replace("~1", "/").replace("~0", "~")
        if isinstance(node, Mapping) and token in node:
            node = node[token]
        elif isinstance(node, list) and token.isdigit() and int(token) < len(node):
            node = node[int(token)]
        else:
            return None
    return node


def _ref_name(ref: str) -> str:
    return ref.rstrip("/").rsplit("/", 1)[-1] or _PLACEHOLDER


# --- Validation ---


def resolve_schema(schema: Any) -> Any:
    """
    Turn a pydantic model class into its JSON schema; pass anything else through.

    Duck-typed on model_json_schema() so pydantic stays an optional extra.
    """
    if isinstance(schema, type) and callable(getattr(schema, "model_json_schema", None)):
        return schema.model_json_schema()
    return schema


def check_schema(schema: Any) -> None:
    """Raise InvalidSchemaError if the schema is unusable. Returns None otherwise."""
    if not isinstance(schema, Mapping):
        raise InvalidSchemaError(f"Schema must be a mapping, got {type(schema).__name__}")

    validator_cls = validator_for(schema, default=Draft202012Validator)
    try:
        validator_cls.check_schema(schema)
    except SchemaError as err:
        raise InvalidSchemaError(f"Invalid JSON schema: {err.message}") from err


def validate_json_schema(schema: Schema, instance: Any) -> tuple[bool, list[ValidationErrorDetail]]:
    """
    Validate an instance against the full JSON schema.

    The draft is picked from the schema's "$schema" keyword, defaulting to
    2020-12. Returns (valid, errors) with errors in the validator's order.
    """
    validator_cls = validator_for(schema, default=Draft202012Validator)
    validator = validator_cls(schema)
    errors = [_to_detail(err) for err in validator.iter_errors(instance)]
    return not errors, errors


def _to_detail(err: ValidationError) -> ValidationErrorDetail:
    path = ".".join(str(p) for p in err.absolute_path)
    return ValidationErrorDetail(path=path, message=err.message)
