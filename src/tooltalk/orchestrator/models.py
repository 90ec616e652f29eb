"""Chat session state and round result models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from tooltalk.protocols import Usage
from tooltalk.toolkit.models import ToolResult


class SessionState(str, enum.Enum):
    """States a ChatSession moves through.

    ``IDLE -> AWAITING_INPUT -> DISPATCHING -> AWAITING_MODEL ->
    (EXECUTING_TOOLS -> DISPATCHING)* -> AWAITING_INPUT``; ``CLOSED`` is
    terminal and reachable from any state.
    """

    IDLE = "idle"
    AWAITING_INPUT = "awaiting_input"
    DISPATCHING = "dispatching"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    CLOSED = "closed"


@dataclass(frozen=True)
class RoundResult:
    """Outcome of one ``send`` round.

    Frozen: the result is immutable once the round completes.

    Attributes:
        replies: Assistant texts delivered to the caller (zero or one).
        usage: Token usage summed over every exchange in the round.
        turns: Number of dispatches made.
        tool_results: Results of every tool call executed in the round.
        compacted: Whether the transcript was compacted during the round.
        forced_final: Whether the turn limit forced a tool-less final request.
        error: The terminal error, for failed rounds.
    """

    replies: tuple[str, ...] = ()
    usage: Usage = field(default_factory=Usage)
    turns: int = 0
    tool_results: tuple[ToolResult, ...] = ()
    compacted: bool = False
    forced_final: bool = False
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def text(self) -> str:
        """All delivered replies joined by newlines."""
        return "\n".join(self.replies)
