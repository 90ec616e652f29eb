"""Context-length-triggered transcript compaction.

When the token estimate of a transcript exceeds the model's context window,
the non-system portion is replaced by a single model-written summary. This is
lossy on purpose: older tool output and turn detail are traded for the
ability to keep the conversation going.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence

from tooltalk.engine.tokens import TiktokenCounter
from tooltalk.prompts.compact import build_compact_prompt
from tooltalk.protocols import Message

if TYPE_CHECKING:
    from tooltalk.protocols import TokenCounter

logger = logging.getLogger(__name__)


def render_transcript(messages: Sequence[Message], *, include_system: bool = True) -> str:
    """Flatten a transcript into the text used for counting and compaction.

    Each message renders as ``{"Role": "<role>", "content": "<content>"}``
    and the renderings are concatenated. Tool calls on assistant messages are
    appended as ``name(arguments)`` so that tool-heavy turns are not
    undercounted.
    """
    chunks: list[str] = []
    for msg in messages:
        if not include_system and msg.role == "system":
            continue
        content = msg.content
        if msg.tool_calls:
            calls = " ".join(f"{tc.name}({tc.arguments_json()})" for tc in msg.tool_calls)
            content = f"{content} {calls}" if content else calls
        chunks.append(f'{{"Role": "{msg.role}", "content": "{content}"}}')
    return "".join(chunks)


@dataclass(frozen=True)
class CompactionResult:
    """Outcome of a compaction check.

    Attributes:
        messages: The transcript to use from here on.
        compacted: Whether a summary replaced the history.
        tokens_before: Estimated tokens before compaction.
        tokens_after: Estimated tokens of the returned transcript.
    """

    messages: tuple[Message, ...]
    compacted: bool
    tokens_before: int
    tokens_after: int


class ContextCompactor:
    """Keeps a transcript within a token budget.

    Args:
        counter: Token counter. Defaults to TiktokenCounter (cl100k_base).
        words: Word limit stated in the compaction instruction.
        include_system: Count the system message toward the budget.

    Example::

        compactor = ContextCompactor()
        result = compactor.compact(messages, context_window=8192, generate=gen)
    """

    def __init__(
        self,
        counter: TokenCounter | None = None,
        *,
        words: int = 5000,
        include_system: bool = True,
    ) -> None:
        self._counter = counter if counter is not None else TiktokenCounter()
        self.words = words
        self.include_system = include_system

    def estimate(self, messages: Sequence[Message]) -> int:
        """Estimated token count of the transcript."""
        text = render_transcript(messages, include_system=self.include_system)
        return self._counter.count_text(text)

    def compact(
        self,
        messages: Sequence[Message],
        *,
        context_window: int | None,
        generate: Callable[[str], str],
    ) -> CompactionResult:
        """Compact the transcript if its estimate exceeds the context window.

        Args:
            messages: Current transcript.
            context_window: Token budget. None or 0 disables compaction.
            generate: Single-prompt generation callable used for the summary.

        Returns:
            CompactionResult. A within-budget transcript comes back unchanged.
            Token counts are 0 when compaction is disabled.

        Raises:
            Whatever ``generate`` raises; the transcript is left untouched.
        """
        if not context_window:
            return CompactionResult(tuple(messages), False, 0, 0)
        before = self.estimate(messages)
        if before <= context_window:
            return CompactionResult(tuple(messages), False, before, before)

        logger.warning(
            "Context length %d exceeds window %d; compacting transcript. "
            "Earlier turns are replaced by a lossy summary.",
            before, context_window,
        )
        prompt = build_compact_prompt(
            render_transcript(messages, include_system=False), words=self.words
        )
        summary = generate(prompt)

        kept: list[Message] = []
        system = next((m for m in messages if m.role == "system"), None)
        if system is not None:
            kept.append(system)
        first_user = next((m for m in messages if m.role == "user"), None)
        if first_user is not None:
            kept.append(first_user)
        kept.append(Message.user(summary))

        after = self.estimate(kept)
        logger.info("Compaction reduced transcript from %d to %d tokens", before, after)
        return CompactionResult(tuple(kept), True, before, after)
