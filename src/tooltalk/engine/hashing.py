"""Deterministic hashing for tool-call deduplication.

Two calls are duplicates when their canonical JSON rendering of
``{"name", "arguments"}`` hashes to the same SHA-256 digest, regardless of
the key order the backend happened to emit.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(data: Any) -> bytes:
    """Serialize data to canonical JSON bytes.

    Uses sorted keys, compact separators, and UTF-8 encoding
    to ensure deterministic output.

    Args:
        data: Any JSON-serializable Python object.

    Returns:
        UTF-8 encoded bytes of the canonical JSON string.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    ).encode("utf-8")


def tool_call_hash(name: str, arguments: Any) -> str:
    """Compute the dedup key for a tool invocation.

    Args:
        name: Tool name.
        arguments: Decoded arguments (dict), or the raw argument text when it
            could not be decoded.

    Returns:
        Hex digest of SHA-256 hash.
    """
    return hashlib.sha256(
        canonical_json({"name": name, "arguments": arguments})
    ).hexdigest()
