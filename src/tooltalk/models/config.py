"""Configuration models for tooltalk.

GenerationParams holds per-request sampling settings shared by all adapters.
RetryConfig controls the backoff policy for one backend exchange.
SessionConfig is the full configuration surface consumed by a ChatSession.
"""

from __future__ import annotations

import os
import types
from dataclasses import dataclass, fields as dc_fields
from typing import Any, Callable, Optional

from pydantic import BaseModel, model_validator

from tooltalk.exceptions import ConfigError

# Cross-backend parameter spellings mapped onto GenerationParams fields.
_ALIASES: dict[str, str] = {
    "num_predict": "max_output_tokens",
    "max_tokens": "max_output_tokens",
    "max_completion_tokens": "max_output_tokens",
    "maxOutputTokens": "max_output_tokens",
    "num_ctx": "context_window",
    "topP": "top_p",
    "frequency_penalty": "repeat_penalty",
}


@dataclass(frozen=True)
class GenerationParams:
    """Sampling and context settings for backend requests.

    All fields are Optional -- None means 'not set, use the backend default'.
    ``context_window`` is not sent to typed backends; it is the token budget
    used by the ContextCompactor (and forwarded as ``num_ctx`` to Ollama).

    Example::

        params = GenerationParams(temperature=0.2, context_window=8192)
    """

    temperature: float | None = None
    top_p: float | None = None
    seed: int | None = None
    max_output_tokens: int | None = None
    context_window: int | None = None
    repeat_penalty: float | None = None
    extra: dict | None = None

    def __post_init__(self) -> None:
        if self.extra is not None:
            object.__setattr__(self, "extra", types.MappingProxyType(dict(self.extra)))

    def __hash__(self) -> int:
        extra_hashable = tuple(sorted(self.extra.items())) if self.extra else ()
        return hash((
            self.temperature, self.top_p, self.seed, self.max_output_tokens,
            self.context_window, self.repeat_penalty, extra_hashable,
        ))

    @classmethod
    def from_dict(cls, d: dict | None) -> GenerationParams:
        """Create GenerationParams from a dict, routing unknown keys to extra.

        Applies backend aliases (e.g. ``num_ctx`` -> ``context_window``).
        Returns the all-default instance if d is None.
        """
        if d is None:
            return cls()
        known = {f.name for f in dc_fields(cls)} - {"extra"}
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = dict(d.get("extra") or {})
        for key, value in d.items():
            if key == "extra":
                continue
            key = _ALIASES.get(key, key)
            if key in known:
                kwargs[key] = value
            else:
                extra[key] = value
        return cls(**kwargs, extra=extra or None)

    def to_dict(self) -> dict[str, Any]:
        """Return the non-None fields, with extra flattened in."""
        result: dict[str, Any] = {}
        for f in dc_fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is not None:
                result[f.name] = value
        if self.extra:
            result.update(self.extra)
        return result


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings for a single backend exchange.

    Attributes:
        max_attempts: Total attempts, including the first one.
        base_delay: Delay in seconds before the first retry.
        multiplier: Growth factor between consecutive delays.
        max_delay: Upper bound for any single delay.
        jitter: Upper bound of a random extra delay added to each wait.
            Zero keeps delays deterministic.
        retry_bad_request: Treat 400-class rejections as retryable. Off by
            default; some backends answer overload with a 400.
    """

    max_attempts: int = 6
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.0
    retry_bad_request: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigError("retry delays must be non-negative")

    def delay_for(self, retry_index: int) -> float:
        """Delay before retry number ``retry_index`` (0-based), without jitter."""
        return min(self.base_delay * self.multiplier ** retry_index, self.max_delay)

    def max_cumulative_delay(self) -> float:
        """Worst-case total sleep across all retries, jitter included."""
        retries = self.max_attempts - 1
        return sum(self.delay_for(k) + self.jitter for k in range(retries))


class SessionConfig(BaseModel):
    """Configuration for one chat session.

    Attributes:
        backend: Backend identifier ("openai", "ollama", "gemini").
        model: Model name sent to the backend.
        api_key: API key. Adapters fall back to TOOLTALK_<BACKEND>_API_KEY.
        base_url: Backend base URL override.
        system_prompt: Optional system message seeded into the transcript.
        params: Sampling settings and context window.
        max_turns: Dispatches allowed per round before a forced final answer
            (0 = unbounded).
        retry: Backoff settings for each backend exchange.
        request_timeout: Seconds one backend exchange may take, retries and
            backoff included. Also the httpx timeout of each request.
        tool_timeout: Per-call tool timeout, in seconds.
        tool_workers: Concurrent tool calls per round (1 = sequential).
        tools: Registry tool names exposed to the model (None = all).
        compact_words: Word limit given to the compaction instruction.
        compact_include_system: Count the system message toward the budget.
        summarize_words: Word limit for tool-output summaries.
        on_reply: Callback invoked with each delivered assistant reply.
        on_round_complete: Callback invoked exactly once per round with the
            RoundResult.
    """

    model_config = {"arbitrary_types_allowed": True}

    backend: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    system_prompt: Optional[str] = None
    params: GenerationParams = GenerationParams()
    max_turns: int = 0
    retry: RetryConfig = RetryConfig()
    request_timeout: float = 3600.0
    tool_timeout: float = 300.0
    tool_workers: int = 1
    tools: Optional[list[str]] = None
    compact_words: int = 5000
    compact_include_system: bool = True
    summarize_words: int = 5000
    on_reply: Optional[Callable[[str], None]] = None
    on_round_complete: Optional[Callable[[Any], None]] = None

    @model_validator(mode="after")
    def _check_limits(self) -> SessionConfig:
        if self.max_turns < 0:
            raise ValueError("max_turns must be >= 0")
        if self.tool_workers < 1:
            raise ValueError("tool_workers must be >= 1")
        if self.tool_timeout <= 0:
            raise ValueError("tool_timeout must be positive")
        worst = self.retry.max_cumulative_delay()
        if self.request_timeout < worst:
            raise ValueError(
                f"request_timeout ({self.request_timeout}s) must cover the "
                f"maximum cumulative retry delay ({worst}s)"
            )
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> SessionConfig:
        """Build a config from TOOLTALK_* environment variables.

        Recognized: TOOLTALK_BACKEND, TOOLTALK_MODEL, TOOLTALK_BASE_URL,
        TOOLTALK_SYSTEM_PROMPT, TOOLTALK_MAX_TURNS, TOOLTALK_CONTEXT_WINDOW,
        TOOLTALK_TEMPERATURE. Keyword overrides win over the environment.
        """
        values: dict[str, Any] = {}
        env = os.environ
        if env.get("TOOLTALK_BACKEND"):
            values["backend"] = env["TOOLTALK_BACKEND"]
        if env.get("TOOLTALK_MODEL"):
            values["model"] = env["TOOLTALK_MODEL"]
        if env.get("TOOLTALK_BASE_URL"):
            values["base_url"] = env["TOOLTALK_BASE_URL"]
        if env.get("TOOLTALK_SYSTEM_PROMPT"):
            values["system_prompt"] = env["TOOLTALK_SYSTEM_PROMPT"]
        try:
            if env.get("TOOLTALK_MAX_TURNS"):
                values["max_turns"] = int(env["TOOLTALK_MAX_TURNS"])
            param_values: dict[str, Any] = {}
            if env.get("TOOLTALK_CONTEXT_WINDOW"):
                param_values["context_window"] = int(env["TOOLTALK_CONTEXT_WINDOW"])
            if env.get("TOOLTALK_TEMPERATURE"):
                param_values["temperature"] = float(env["TOOLTALK_TEMPERATURE"])
        except ValueError as exc:
            raise ConfigError(f"Invalid TOOLTALK_* numeric value: {exc}") from exc
        if param_values:
            values["params"] = GenerationParams(**param_values)
        values.update(overrides)
        return cls(**values)
