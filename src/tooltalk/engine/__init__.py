"""Hashing, token counting and context compaction."""

from tooltalk.engine.compaction import CompactionResult, ContextCompactor, render_transcript
from tooltalk.engine.hashing import canonical_json, tool_call_hash
from tooltalk.engine.tokens import NullTokenCounter, TiktokenCounter

__all__ = [
    "CompactionResult",
    "ContextCompactor",
    "NullTokenCounter",
    "TiktokenCounter",
    "canonical_json",
    "render_transcript",
    "tool_call_hash",
]
