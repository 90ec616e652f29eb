"""Protocol definitions for tooltalk.

Defines the pluggable ProviderAdapter and TokenCounter interfaces plus the
frozen dataclasses that flow between them: Message, ToolCall, Usage and the
tagged reply variant (TextPart | ToolCallPart | UnrecognizedPart).

No HTTP imports allowed in this module -- pure domain protocols.
"""

from __future__ import annotations

import enum
import json as _json
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol, Sequence, Union, runtime_checkable

from tooltalk.exceptions import MalformedToolCallError
from tooltalk.models.config import GenerationParams

if TYPE_CHECKING:
    from tooltalk.toolkit.models import ToolDefinition

Role = Literal["system", "user", "assistant", "tool"]


@dataclass(frozen=True)
class ToolCall:
    """A tool/function invocation requested by the backend.

    Provider-agnostic canonical representation. ``id`` is the backend's
    correlation token and is None for backends that correlate by position.
    ``raw_arguments`` keeps the exact wire text when the backend sent a JSON
    string, so it can be replayed unchanged.
    """

    id: str | None
    name: str
    arguments: dict = field(default_factory=dict)
    raw_arguments: str | None = None

    @classmethod
    def from_openai(cls, tc: dict) -> ToolCall:
        """Parse from OpenAI/compatible format.

        OpenAI sends arguments as a JSON string. Decoding is deferred to
        :meth:`decoded_arguments` so that a malformed payload turns into a
        tool error instead of a dropped call.
        """
        func = tc.get("function") or {}
        raw_args = func.get("arguments", "{}")
        if isinstance(raw_args, str):
            try:
                arguments = _json.loads(raw_args) if raw_args.strip() else {}
            except ValueError:
                arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}
            return cls(
                id=tc.get("id") or f"call_{uuid.uuid4().hex[:8]}",
                name=func.get("name", ""),
                arguments=arguments,
                raw_arguments=raw_args,
            )
        return cls(
            id=tc.get("id") or f"call_{uuid.uuid4().hex[:8]}",
            name=func.get("name", ""),
            arguments=dict(raw_args or {}),
        )

    def decoded_arguments(self) -> dict:
        """Return the arguments as a dict.

        Raises:
            MalformedToolCallError: If the backend sent argument text that is
                not a JSON object.
        """
        if self.raw_arguments is None:
            return dict(self.arguments)
        text = self.raw_arguments.strip()
        if not text:
            return {}
        try:
            decoded = _json.loads(text)
        except ValueError as exc:
            raise MalformedToolCallError(
                f"failed to parse tool arguments: {exc}", self.raw_arguments
            ) from exc
        if not isinstance(decoded, dict):
            raise MalformedToolCallError(
                "tool arguments must be a JSON object", self.raw_arguments
            )
        return decoded

    def arguments_json(self) -> str:
        """Arguments as JSON text, preferring the original wire text."""
        if self.raw_arguments is not None:
            return self.raw_arguments
        return _json.dumps(self.arguments, ensure_ascii=False)


@dataclass(frozen=True)
class Message:
    """One transcript entry.

    ``tool_calls`` is only populated on assistant messages. Tool messages
    carry the echoed ``tool_call_id`` (when the backend assigned one) and the
    tool ``name``. ``raw`` holds provider-native parts that an adapter
    replays verbatim when it resubmits history.
    """

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    name: str | None = None
    raw: tuple | None = None

    def __post_init__(self) -> None:
        if self.tool_calls and self.role != "assistant":
            raise ValueError("only assistant messages may carry tool calls")
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(role="system", content=text)

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", content=text)

    @classmethod
    def assistant(
        cls,
        text: str = "",
        tool_calls: Sequence[ToolCall] = (),
        raw: tuple | None = None,
    ) -> Message:
        return cls(role="assistant", content=text, tool_calls=tuple(tool_calls), raw=raw)

    @classmethod
    def tool(
        cls, text: str, *, tool_call_id: str | None = None, name: str | None = None
    ) -> Message:
        return cls(role="tool", content=text, tool_call_id=tool_call_id, name=name)


@dataclass(frozen=True)
class Usage:
    """Token usage reported by a backend for one exchange."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )


# ---------------------------------------------------------------------------
# Reply variant
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextPart:
    """Plain text emitted by the backend."""

    text: str


@dataclass(frozen=True)
class ToolCallPart:
    """A structured tool call emitted by the backend."""

    call: ToolCall


@dataclass(frozen=True)
class UnrecognizedPart:
    """A reply part the adapter could not map. Reported, never ignored."""

    kind: str
    payload: Any = None


ReplyPart = Union[TextPart, ToolCallPart, UnrecognizedPart]


@dataclass(frozen=True)
class ModelReply:
    """Normalized backend reply for one exchange.

    Attributes:
        parts: Ordered reply parts.
        usage: Token usage for this exchange, if reported.
        raw: Provider-native parts kept for verbatim history replay.
    """

    parts: tuple[ReplyPart, ...] = ()
    usage: Usage = field(default_factory=Usage)
    raw: tuple | None = None

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [p.call for p in self.parts if isinstance(p, ToolCallPart)]


class CallStyle(str, enum.Enum):
    """How a backend expresses tool calls on the wire.

    - ``TYPED``: structured calls carrying a correlation id.
    - ``TEXT_EMBEDDED``: calls may arrive as JSON inside free text.
    - ``TYPED_REPLAY``: structured calls; prior provider-native parts must be
      replayed verbatim when history is resubmitted.
    """

    TYPED = "typed"
    TEXT_EMBEDDED = "text_embedded"
    TYPED_REPLAY = "typed_replay"


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol for model backends.

    ``submit`` performs exactly one request/response exchange; it must not
    retry (RetryPolicy owns that) and must not retain the transcript.
    Failures are raised as TransientBackendError or PermanentBackendError
    subclasses.
    """

    backend: str
    call_style: CallStyle

    def submit(
        self,
        transcript: Sequence[Message],
        tools: Sequence[ToolDefinition] | None,
        params: GenerationParams,
    ) -> ModelReply:
        """Send the transcript (and tool declarations) and return the reply."""
        ...

    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        params: GenerationParams | None = None,
    ) -> str:
        """Single-prompt generation without tools (side-channel requests)."""
        ...

    def list_models(self) -> list[str]:
        """Model identifiers available on this backend."""
        ...

    def close(self) -> None:
        """Release underlying resources."""
        ...


@runtime_checkable
class TokenCounter(Protocol):
    """Protocol for token counting implementations."""

    def count_text(self, text: str) -> int:
        """Count tokens in a plain text string."""
        ...
