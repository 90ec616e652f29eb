"""Prompts for transcript compaction and tool-output summaries.

Both are sent through ``ProviderAdapter.generate`` as single-prompt requests
with no tool declarations. The corrective messages appended to a transcript
when the model misbehaves live here too, so every model-facing string is in
one place.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Compaction -- replaces an over-budget transcript with a single summary
# ---------------------------------------------------------------------------

COMPACT_INSTRUCTION: str = (
    "Compact this conversation into {words} words or less. "
    "Do not include any word counts or summarizing. "
    "Just return the summarized content.\n"
)


def build_compact_prompt(transcript_text: str, *, words: int = 5000) -> str:
    """Build the compaction prompt.

    Args:
        transcript_text: Flattened non-system portion of the transcript.
        words: Word limit stated in the instruction.

    Returns:
        The instruction followed by the transcript text.
    """
    return COMPACT_INSTRUCTION.format(words=words) + transcript_text


# ---------------------------------------------------------------------------
# Tool summaries -- compress verbose output of tools flagged summarize=True
# ---------------------------------------------------------------------------

TOOL_SUMMARY_INSTRUCTION: str = (
    "Summarize these tool results in {words} words or less. "
    "Your summarization must be shorter than the provided value\n"
    "If there appears to be an error, just return the error with no "
    "additional information\n"
    "Do not provide any reference to the word count or the fact that you "
    "summarized. Simply return your content.\n\n"
)


def build_tool_summary_prompt(output: str, *, words: int = 5000) -> str:
    """Build the summary prompt for one tool's raw output."""
    return TOOL_SUMMARY_INSTRUCTION.format(words=words) + output


# ---------------------------------------------------------------------------
# Corrective messages
# ---------------------------------------------------------------------------

INVALID_TOOL_CALL_TEMPLATE: str = "error: you provided an invalid tool call: {reason}"

STRAY_TOOL_MARKUP_NOTICE: str = (
    "Error: Invalid tool call format detected. Please use the proper tool "
    "calling mechanism instead of embedding tool calls in text."
)
