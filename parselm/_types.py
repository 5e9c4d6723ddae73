"""
ParseLM: Type Definitions

Core types for the generate -> extract -> validate -> retry pipeline.
Provider-agnostic. The only runtime dependency is the schema validator.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Mapping, Union

# A JSON schema dictionary, or a pydantic model class (converted via model_json_schema()).
Schema = Union[Mapping[str, Any], type]

# Which step of an attempt failed.
FailureKind = Literal["extraction", "validation", "provider"]


@dataclass(frozen=True)
class ProviderResponse:
    """Provider output with an optional out-of-band cost figure."""

    content: str
    cost: float | None = None


# A provider callable: takes the assembled prompt, returns the model's text.
# Returning a ProviderResponse instead of a str attaches a cost to the envelope.
Provider = Callable[[str], Awaitable[Union[str, ProviderResponse]]]

# Injected delay function, in seconds. asyncio.sleep by default.
SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class ExtractionResult:
    """What the extractor found in one piece of model output."""

    # Parsed JSON value, or None when no candidate parsed.
    structured: Any
    # The provider text exactly as received.
    raw: str

    @property
    def found(self) -> bool:
        return self.structured is not None


@dataclass(frozen=True)
class ValidationErrorDetail:
    """One schema violation, located by a dotted instance path ("" = root)."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


@dataclass
class StructuredResponse:
    """The envelope returned by the orchestrator, success or failure."""

    # Extracted value from the returned attempt (None if extraction failed).
    structured: Any
    # Raw provider text from the returned attempt ("" if the provider raised).
    raw: str
    # Whether the returned attempt extracted and validated.
    valid: bool
    # Ordinal of the attempt that produced this state (1-based).
    attempts: int
    # Errors from the returned attempt; empty when valid.
    errors: list[ValidationErrorDetail] = field(default_factory=list)
    # Cost reported by the provider for the returned attempt, if any.
    cost: float | None = None
    # Which step failed on the returned attempt; None when valid.
    failure: FailureKind | None = None


@dataclass
class RetryEvent:
    """Information passed to the on_retry hook before each backoff sleep."""

    # Ordinal of the attempt about to run.
    attempt: int
    max_attempts: int
    failure: FailureKind
    errors: list[ValidationErrorDetail]
    delay_ms: float


@dataclass
class StructuredConfig:
    """Configuration for StructuredCaller."""

    # Additional attempts after the first. Default: 0 (one attempt total).
    retry_count: int = 0

    # Exponential backoff multiplier between attempts.
    backoff_factor: float = 2.0

    # Append the previous output and its errors to retry prompts.
    include_error_feedback: bool = False

    # Delay function awaited between attempts, called with seconds.
    sleep: SleepFn = asyncio.sleep

    # Callback fired before each retry's backoff delay.
    on_retry: Callable[[RetryEvent], None] | None = None

    # Callback fired when all attempts are exhausted.
    on_exhausted: Callable[[StructuredResponse], None] | None = None


@dataclass(frozen=True)
class SafeValue:
    """Non-raising projection of a StructuredResponse."""

    success: bool
    value: Any = None
    error: str | None = None


class ConfigurationError(ValueError):
    """Raised for caller bugs detected before any provider call."""


class InvalidSchemaError(ConfigurationError):
    """Raised when the schema cannot be used for prompting or validation."""


class StructuredOutputError(Exception):
    """Raised by value() when a response is not valid."""

    def __init__(self, response: StructuredResponse) -> None:
        self.response = response
        summary = "; ".join(str(e) for e in response.errors) if response.errors else "unknown error"
        super().__init__(
            f"No valid structured output after {response.attempts} attempt(s). "
            f"Last errors: {summary}"
        )
