"""Tool-call extraction from free-text replies.

Backends without reliable structured tool calling often answer with a JSON
object such as ``{"name": "read_file", "arguments": {...}}`` inside the
message text, sometimes fenced, sometimes wrapped in ``<tool_call>`` tags,
and often with unescaped quotes inside string values.

The ToolCallExtractor Protocol keeps that heuristic swappable. The default
QuoteRepairExtractor locates the first call opening, assumes the call runs to
the end of the text, and retries a failed decode after repair_quotes().
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from tooltalk.exceptions import MalformedToolCallError
from tooltalk.protocols import ToolCall

logger = logging.getLogger(__name__)

TOOL_CALL_PATTERN = re.compile(r'\{"name":\s*"[^"]*",\s*"arguments":')

CODE_FENCE = "```"
CLOSING_TAG = "</tool_call>"
STRAY_MARKUP = "<tool_call>"

# Characters that must immediately follow a closing quote of a key or value.
_TERMINATORS = frozenset(":,}")


@dataclass(frozen=True)
class Extraction:
    """Outcome of scanning one reply text.

    Attributes:
        text: The reply text, unchanged.
        calls: Calls found in the text (empty for plain text).
        repaired: Whether quote repair was needed to decode the call.
    """

    text: str
    calls: tuple[ToolCall, ...] = ()
    repaired: bool = False

    @property
    def has_calls(self) -> bool:
        return bool(self.calls)


@runtime_checkable
class ToolCallExtractor(Protocol):
    """Finds tool calls embedded in reply text."""

    def extract(self, text: str) -> Extraction:
        """Return the calls found in ``text``.

        Raises:
            MalformedToolCallError: A call opening was found but the call
                could not be decoded.
        """
        ...


def repair_quotes(candidate: str) -> str:
    """Escape quotes that sit inside JSON string values.

    Scans left to right tracking whether the cursor is inside a string. An
    unescaped quote inside a string closes it only when the character right
    after it is one of ``: , }`` or the input ends there; any other quote is
    escaped. Quotes already escaped with a backslash are left alone.

    A closing quote has to touch its terminator: one followed by whitespace
    or ``]`` is read as part of the value.

    >>> repair_quotes('{"name": "say", "arguments": {"text": "he said "hi""}}')
    '{"name": "say", "arguments": {"text": "he said \\\\"hi\\\\""}}'
    """
    out: list[str] = []
    inside = False
    backslashes = 0
    for i, ch in enumerate(candidate):
        if ch == "\\":
            backslashes += 1
            out.append(ch)
            continue
        escaped = backslashes % 2 == 1
        backslashes = 0
        if ch != '"':
            out.append(ch)
            continue
        if not inside:
            inside = True
            out.append(ch)
            continue
        if escaped:
            out.append(ch)
            continue
        following = candidate[i + 1:i + 2]
        if not following or following in _TERMINATORS:
            inside = False
            out.append(ch)
        else:
            out.append('\\"')
    return "".join(out)


def _to_call(decoded: object, fragment: str) -> ToolCall:
    if not isinstance(decoded, dict):
        raise MalformedToolCallError("tool call must be a JSON object", fragment)
    name = decoded.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedToolCallError("tool call is missing a string 'name'", fragment)
    arguments = decoded.get("arguments", {})
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except ValueError as exc:
            raise MalformedToolCallError(
                f"tool call arguments are not valid JSON: {exc}", fragment
            ) from exc
    if not isinstance(arguments, dict):
        raise MalformedToolCallError("tool call 'arguments' must be an object", fragment)
    return ToolCall(id=None, name=name, arguments=arguments)


class QuoteRepairExtractor:
    """Regex-located, quote-repairing extractor.

    Only the first call in a reply is recognised; everything from its
    opening brace to the end of the text is taken as the call.
    """

    def __init__(self, pattern: re.Pattern[str] = TOOL_CALL_PATTERN) -> None:
        self._pattern = pattern

    def candidate(self, text: str) -> str | None:
        """The call fragment in ``text``, cleaned of fences and tags."""
        match = self._pattern.search(text)
        if match is None:
            return None
        fragment = text[match.start():].replace(CODE_FENCE, "").strip()
        if fragment.endswith(CLOSING_TAG):
            fragment = fragment[: -len(CLOSING_TAG)].rstrip()
        return fragment

    def extract(self, text: str) -> Extraction:
        fragment = self.candidate(text)
        if fragment is None:
            return Extraction(text=text)
        try:
            decoded = json.loads(fragment)
        except ValueError:
            repaired = repair_quotes(fragment)
            try:
                decoded = json.loads(repaired)
            except ValueError as exc:
                logger.warning("Failed to decode tool call after quote repair: %s", repaired)
                raise MalformedToolCallError(
                    f"failed to unmarshal tool call: {exc}", fragment
                ) from exc
            logger.info("Fixed quotes and decoded tool call")
            return Extraction(text=text, calls=(_to_call(decoded, repaired),), repaired=True)
        return Extraction(text=text, calls=(_to_call(decoded, fragment),))
