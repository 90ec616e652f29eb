"""Prompt templates for side-channel generation requests."""

from tooltalk.prompts.compact import (
    INVALID_TOOL_CALL_TEMPLATE,
    STRAY_TOOL_MARKUP_NOTICE,
    build_compact_prompt,
    build_tool_summary_prompt,
)

__all__ = [
    "INVALID_TOOL_CALL_TEMPLATE",
    "STRAY_TOOL_MARKUP_NOTICE",
    "build_compact_prompt",
    "build_tool_summary_prompt",
]
