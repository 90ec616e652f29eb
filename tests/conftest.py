"""Shared test fixtures for tooltalk.

Provides a scripted ProviderAdapter, a recording sleep, and small tool
registries. No test talks to a real backend.
"""

from __future__ import annotations

import threading

import pytest

from tooltalk.models.config import GenerationParams, RetryConfig, SessionConfig
from tooltalk.protocols import (
    CallStyle,
    ModelReply,
    TextPart,
    ToolCall,
    ToolCallPart,
    Usage,
)
from tooltalk.toolkit.models import ToolDefinition, ToolParameter
from tooltalk.toolkit.registry import ToolRegistry


# ------------------------------------------------------------------
# Reply builders
# ------------------------------------------------------------------


def text_reply(text: str, *, prompt_tokens: int = 1, completion_tokens: int = 1) -> ModelReply:
    """Backend reply carrying plain text."""
    return ModelReply(
        parts=(TextPart(text),),
        usage=Usage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


def make_call(name: str, arguments: dict | None = None, call_id: str | None = "call_1") -> ToolCall:
    return ToolCall(id=call_id, name=name, arguments=arguments or {})


def call_reply(*calls: ToolCall, text: str = "") -> ModelReply:
    """Backend reply carrying structured tool calls."""
    parts: list = [TextPart(text)] if text else []
    parts.extend(ToolCallPart(c) for c in calls)
    return ModelReply(parts=tuple(parts), usage=Usage(1, 1))


# ------------------------------------------------------------------
# Scripted adapter
# ------------------------------------------------------------------


class ScriptedAdapter:
    """ProviderAdapter that replays a script of replies.

    Each script entry is a ModelReply (returned) or an exception instance
    (raised). ``submissions`` records (transcript, tools) per submit call.
    """

    def __init__(
        self,
        script: list | None = None,
        *,
        call_style: CallStyle = CallStyle.TYPED,
        generations: list | None = None,
        backend: str = "scripted",
    ) -> None:
        self.backend = backend
        self.call_style = call_style
        self._script = list(script or [])
        self._generations = list(generations or [])
        self.submissions: list[tuple[tuple, list | None]] = []
        self.prompts: list[str] = []
        self.closed = False

    def submit(self, transcript, tools, params):
        self.submissions.append((tuple(transcript), list(tools) if tools else None))
        if not self._script:
            raise AssertionError("adapter script exhausted")
        item = self._script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def generate(self, prompt, *, system_prompt=None, params=None):
        self.prompts.append(prompt)
        if not self._generations:
            return "summary"
        item = self._generations.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def list_models(self):
        return ["scripted-1"]

    def close(self):
        self.closed = True

    @property
    def submit_count(self) -> int:
        return len(self.submissions)


class RecordingSleep:
    """Sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ------------------------------------------------------------------
# Tools
# ------------------------------------------------------------------


class CallCounter:
    """Tool handler that counts invocations and echoes its arguments."""

    def __init__(self, result="ok") -> None:
        self.calls: list[dict] = []
        self.result = result
        self._lock = threading.Lock()

    def __call__(self, **kwargs):
        with self._lock:
            self.calls.append(kwargs)
        return self.result


def make_tool(name: str, handler, *, summarize: bool = False, options: dict | None = None) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=f"The {name} tool.",
        parameters=(ToolParameter("path", "string", "A path.", required=False),),
        handler=handler,
        summarize=summarize,
        options=options or {},
    )


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def counter() -> CallCounter:
    return CallCounter()


@pytest.fixture()
def registry(counter) -> ToolRegistry:
    """Registry with one counting tool named 'read_file'."""
    return ToolRegistry([make_tool("read_file", counter)])


@pytest.fixture()
def fast_config() -> SessionConfig:
    """SessionConfig with a small, fast retry budget."""
    return SessionConfig(
        model="test-model",
        retry=RetryConfig(max_attempts=3, base_delay=0.01, max_delay=0.05),
        params=GenerationParams(),
    )
