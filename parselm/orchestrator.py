"""
ParseLM: Structured Call Orchestrator

Drives the generate -> extract -> validate cycle against a caller-supplied
provider, retrying the whole cycle with exponential backoff on failure.

Runtime failures never raise. Every call resolves to a StructuredResponse
describing the attempt that ended the loop: the first valid one, or the
last one if all attempts failed. Only caller bugs (bad config, unusable
schema) raise, and they raise before the provider is called.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import replace
from typing import Any

from ._types import (
    ConfigurationError,
    FailureKind,
    Provider,
    ProviderResponse,
    RetryEvent,
    Schema,
    StructuredConfig,
    StructuredResponse,
    ValidationErrorDetail,
)
from .extraction import parse_json_substring
from .schema import check_schema, minimal_schema, resolve_schema, validate_json_schema

__all__ = [
    "BASE_DELAY_MS",
    "MAX_DELAY_MS",
    "StructuredCaller",
    "structured",
    "build_prompt",
    "calculate_backoff",
]

logger = logging.getLogger(__name__)

# One backoff unit. Callers needing other timing wrap the provider.
BASE_DELAY_MS = 1000.0

# Upper bound on any single backoff delay.
MAX_DELAY_MS = 30_000.0

NO_JSON_MESSAGE = "No valid JSON found in model output"


# --- Prompt & Backoff ---


def build_prompt(input: str, compact_schema: str) -> str:
    """Assemble the prompt sent to the provider."""
    return "\n".join([
        input,
        "",
        "Respond with a JSON value matching this schema:",
        compact_schema,
        "",
        "Return the JSON in a ```json code block.",
    ])


def _feedback_prompt(base_prompt: str, previous_output: str, errors: list[ValidationErrorDetail]) -> str:
    """Append the previous attempt's output and errors for the next attempt."""
    return "\n".join([
        base_prompt,
        "",
        "---",
        "Previous output:",
        previous_output,
        "",
        "Your previous response had these errors:",
        json.dumps([str(e) for e in errors], indent=2),
        "Please fix these errors and return valid JSON matching the schema.",
    ])


def calculate_backoff(attempt: int, backoff_factor: float) -> float:
    """
    Delay in milliseconds awaited before the given attempt ordinal.

    Attempt 1 runs immediately, attempt 2 waits one unit, attempt 3 waits
    backoff_factor units, and so on.
    """
    if attempt < 2:
        return 0.0
    exponent = attempt - 2
    # Compare in log space so huge exponents never reach float conversion
    if backoff_factor > 1 and exponent * math.log(backoff_factor) >= math.log(MAX_DELAY_MS / BASE_DELAY_MS):
        return MAX_DELAY_MS
    return min(BASE_DELAY_MS * float(backoff_factor) ** exponent, MAX_DELAY_MS)


# --- Orchestrator ---


class StructuredCaller:
    """
    Runs structured calls with a fixed configuration.

    Holds no per-call state, so one instance can serve concurrent calls.
    """

    def __init__(self, config: StructuredConfig | None = None) -> None:
        self._config = config or StructuredConfig()
        _check_config(self._config)

    @property
    def config(self) -> StructuredConfig:
        return self._config

    async def execute(self, input: str, schema: Schema, provider: Provider) -> StructuredResponse:
        """
        Call the provider until its output extracts and validates, or attempts run out.

        Raises InvalidSchemaError for unusable schemas. Never raises for
        provider faults, missing JSON or schema mismatches.
        """
        schema = resolve_schema(schema)
        check_schema(schema)
        cfg = self._config
        max_attempts = cfg.retry_count + 1

        base_prompt = build_prompt(input, minimal_schema(schema))
        prompt = base_prompt
        attempt = 1
        response = await self._attempt(attempt, prompt, schema, provider)

        while not response.valid and attempt < max_attempts:
            logger.debug(
                "Attempt %d/%d failed (%s, %d error(s))",
                attempt,
                max_attempts,
                response.failure,
                len(response.errors),
            )
            attempt += 1

            delay_ms = calculate_backoff(attempt, cfg.backoff_factor)
            if cfg.on_retry:
                cfg.on_retry(
                    RetryEvent(
                        attempt=attempt,
                        max_attempts=max_attempts,
                        failure=response.failure or "validation",
                        errors=list(response.errors),
                        delay_ms=delay_ms,
                    )
                )
            logger.debug("Waiting %.0fms before attempt %d/%d", delay_ms, attempt, max_attempts)
            await cfg.sleep(delay_ms / 1000)

            if cfg.include_error_feedback:
                prompt = _feedback_prompt(base_prompt, response.raw, response.errors)
            response = await self._attempt(attempt, prompt, schema, provider)

        if response.valid:
            return response

        logger.warning(
            "Structured call failed after %d attempt(s): %s",
            response.attempts,
            "; ".join(str(e) for e in response.errors),
        )
        if cfg.on_exhausted:
            cfg.on_exhausted(response)
        return response

    async def _attempt(
        self, attempt: int, prompt: str, schema: Schema, provider: Provider
    ) -> StructuredResponse:
        """One generate -> extract -> validate cycle."""
        try:
            output = await provider(prompt)
        except Exception as err:
            return _failed(
                attempt,
                "provider",
                [ValidationErrorDetail(path="", message=f"Provider error: {err}")],
            )

        if isinstance(output, ProviderResponse):
            raw, cost = output.content, output.cost
        else:
            raw, cost = output, None

        extraction = parse_json_substring(raw)
        if not extraction.found:
            return _failed(
                attempt,
                "extraction",
                [ValidationErrorDetail(path="", message=NO_JSON_MESSAGE)],
                raw=raw,
                cost=cost,
            )

        valid, errors = validate_json_schema(schema, extraction.structured)
        if not valid:
            return _failed(
                attempt,
                "validation",
                errors,
                structured=extraction.structured,
                raw=raw,
                cost=cost,
            )

        return StructuredResponse(
            structured=extraction.structured,
            raw=raw,
            valid=True,
            attempts=attempt,
            cost=cost,
        )


def _failed(
    attempt: int,
    failure: FailureKind,
    errors: list[ValidationErrorDetail],
    *,
    structured: Any = None,
    raw: str = "",
    cost: float | None = None,
) -> StructuredResponse:
    return StructuredResponse(
        structured=structured,
        raw=raw,
        valid=False,
        attempts=attempt,
        errors=errors,
        cost=cost,
        failure=failure,
    )


def _check_config(config: StructuredConfig) -> None:
    if isinstance(config.retry_count, bool) or not isinstance(config.retry_count, int):
        raise ConfigurationError(f"retry_count must be an int, got {config.retry_count!r}")
    if config.retry_count < 0:
        raise ConfigurationError(f"retry_count must be >= 0, got {config.retry_count}")
    if isinstance(config.backoff_factor, bool) or not isinstance(config.backoff_factor, (int, float)):
        raise ConfigurationError(f"backoff_factor must be a number, got {config.backoff_factor!r}")
    if not math.isfinite(config.backoff_factor) or config.backoff_factor <= 0:
        raise ConfigurationError(f"backoff_factor must be a finite number > 0, got {config.backoff_factor}")


async def structured(
    input: str,
    schema: Schema,
    provider: Provider,
    retry_count: int | None = None,
    backoff_factor: float | None = None,
    *,
    config: StructuredConfig | None = None,
) -> StructuredResponse:
    """
    Get a schema-valid JSON value out of an LLM provider.

    retry_count is the number of additional attempts after the first
    (default 0). backoff_factor scales the delay between attempts
    (default 2). Both override the matching fields of config when given.
    """
    cfg = config or StructuredConfig()
    overrides: dict[str, Any] = {}
    if retry_count is not None:
        overrides["retry_count"] = retry_count
    if backoff_factor is not None:
        overrides["backoff_factor"] = backoff_factor
    if overrides:
        cfg = replace(cfg, **overrides)

    return await StructuredCaller(cfg).execute(input, schema, provider)
