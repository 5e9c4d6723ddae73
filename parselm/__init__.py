"""
ParseLM

Reliably structure LLM output: generate -> extract -> validate -> retry.
Package entry point, re-exports the public API.
"""

from .orchestrator import (
    BASE_DELAY_MS,
    MAX_DELAY_MS,
    StructuredCaller,
    structured,
    build_prompt,
    calculate_backoff,
)
from .extraction import parse_json_substring, find_fenced_blocks, find_json_regions
from .schema import minimal_schema, resolve_schema, check_schema, validate_json_schema
from .results import value, safe_value
from .shortcuts import is_true, one_of, to_list, to_list_of, switch
from ._types import (
    Schema,
    Provider,
    ProviderResponse,
    ExtractionResult,
    ValidationErrorDetail,
    StructuredResponse,
    StructuredConfig,
    RetryEvent,
    SafeValue,
    FailureKind,
    ConfigurationError,
    InvalidSchemaError,
    StructuredOutputError,
)
from .mock_provider import MockProvider, MockProviderConfig

__all__ = [
    "BASE_DELAY_MS",
    "MAX_DELAY_MS",
    "StructuredCaller",
    "structured",
    "build_prompt",
    "calculate_backoff",
    "parse_json_substring",
    "find_fenced_blocks",
    "find_json_regions",
    "minimal_schema",
    "resolve_schema",
    "check_schema",
    "validate_json_schema",
    "value",
    "safe_value",
    "is_true",
    "one_of",
    "to_list",
    "to_list_of",
    "switch",
    "Schema",
    "Provider",
    "ProviderResponse",
    "ExtractionResult",
    "ValidationErrorDetail",
    "StructuredResponse",
    "StructuredConfig",
    "RetryEvent",
    "SafeValue",
    "FailureKind",
    "ConfigurationError",
    "InvalidSchemaError",
    "StructuredOutputError",
    "MockProvider",
    "MockProviderConfig",
]
