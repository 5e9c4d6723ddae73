"""
ParseLM: Mock LLM Provider

Simulates the text shapes models actually return when asked for JSON:
- Bare JSON, JSON in ```json fences, JSON wrapped in prose
- A draft followed by a corrected answer
- Pseudo-JSON with unquoted keys, truncated output, plain refusals
- Provider faults, random or on the first N calls

No API keys needed. Used for testing and local experiments.
"""

from __future__ import annotations

import asyncio
import json
import math
import random
from dataclasses import dataclass, field
from typing import Literal

from ._types import ProviderResponse

# What kind of output the mock should produce.
OutputMode = Literal[
    "valid",              # Bare JSON matching the expected schema
    "fenced",             # Valid JSON inside a ```json code fence
    "extra_text",         # Valid JSON surrounded by prose text
    "draft_then_final",   # A wrong draft object, then the valid one
    "broken_fence_first", # A fenced pseudo-JSON draft, then a valid fence
    "braces_in_strings",  # Valid JSON with braces inside string values
    "missing_field",      # Valid JSON but missing the first field
    "wrong_type",         # Valid JSON but one field has the wrong type
    "truncated",          # JSON cut off mid-object (simulates max_tokens)
    "pseudo_json",        # Unquoted keys and values in a fence
    "non_json",           # Plain text, no JSON at all
    "empty",              # Empty completion
]

DEFAULT_VALID_OUTPUT: dict[str, object] = {"name": "Alice", "age": 30, "active": True}


@dataclass
class MockProviderConfig:
    """Configuration for the mock LLM provider."""

    # Simulated response latency in milliseconds.
    latency_ms: float = 10

    # Probability of raising an error (network/API failure).
    failure_rate: float = 0.0

    # Raise on the first N calls regardless of failure_rate.
    fail_first: int = 0

    # Error message when a failure triggers.
    error_message: str = "Provider unavailable"

    # Cost attached to each response. None returns a plain str.
    cost_per_call: float | None = None

    # Output mode controlling what the mock returns.
    # Can be a single mode or a list; a list cycles through its modes per call.
    output_mode: OutputMode | list[OutputMode] = "valid"

    # The valid JSON object responses are built from.
    valid_output: dict[str, object] = field(default_factory=lambda: dict(DEFAULT_VALID_OUTPUT))


class MockProvider:
    """Mock LLM provider with configurable output shapes."""

    def __init__(self, config: MockProviderConfig | None = None) -> None:
        self._config = config or MockProviderConfig()
        modes = self._config.output_mode
        self._output_modes: list[OutputMode] = list(modes) if isinstance(modes, list) else [modes]
        self._call_count = 0
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> str | ProviderResponse:
        return await self.call(prompt)

    async def call(self, prompt: str) -> str | ProviderResponse:
        self._call_count += 1
        self.prompts.append(prompt)

        if self._config.latency_ms > 0:
            await asyncio.sleep(self._config.latency_ms / 1000)

        if self._call_count <= self._config.fail_first or random.random() < self._config.failure_rate:
            raise RuntimeError(self._config.error_message)

        # Cycle through output modes
        mode = self._output_modes[(self._call_count - 1) % len(self._output_modes)]
        content = self._generate_output(mode)

        if self._config.cost_per_call is None:
            return content
        return ProviderResponse(content=content, cost=self._config.cost_per_call)

    def _generate_output(self, mode: OutputMode) -> str:
        valid = self._config.valid_output
        valid_json = json.dumps(valid)

        if mode == "valid":
            return valid_json

        if mode == "fenced":
            return f"```json\n{json.dumps(valid, indent=2)}\n```"

        if mode == "extra_text":
            return f"Here is the data you requested:\n{valid_json}\nI hope this helps!"

        if mode == "draft_then_final":
            draft = {k: None for k in valid}
            return f"First attempt:\n{json.dumps(draft)}\n\nCorrected:\n{valid_json}"

        if mode == "broken_fence_first":
            pseudo = ", ".join(f"{k}: {v}" for k, v in valid.items())
            return f"Draft:\n```json\n{{ {pseudo} }}\n```\nFinal:\n```json\n{valid_json}\n```"

        if mode == "braces_in_strings":
            mutated = dict(valid)
            mutated["note"] = 'use {braces} and [brackets] and "quotes" freely }'
            return f"Result: {json.dumps(mutated)} done."

        if mode == "missing_field":
            keys = list(valid.keys())
            if not keys:
                return "{}"
            partial = {k: v for k, v in valid.items() if k != keys[0]}
            return json.dumps(partial)

        if mode == "wrong_type":
            mutated = dict(valid)
            for key, value in mutated.items():
                if isinstance(value, bool):
                    continue
                if isinstance(value, (int, float)):
                    mutated[key] = str(value)
                    break
                if isinstance(value, str):
                    mutated[key] = 999
                    break
            return json.dumps(mutated)

        if mode == "truncated":
            cut_point = math.floor(len(valid_json) * 0.6)
            return valid_json[:cut_point]

        if mode == "pseudo_json":
            pseudo = ", ".join(f"{k}: {v}" for k, v in valid.items())
            return f"```json\n{{ {pseudo} }}\n```"

        if mode == "non_json":
            return "I apologize, but I cannot provide the requested information in the specified format."

        if mode == "empty":
            return ""

        return valid_json

    @property
    def call_count(self) -> int:
        """Total calls made to this provider instance."""
        return self._call_count

    def reset_call_count(self) -> None:
        """Reset the call counter and recorded prompts."""
        self._call_count = 0
        self.prompts.clear()
