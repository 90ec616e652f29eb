"""Token counting implementations.

Provides TiktokenCounter (production use) and NullTokenCounter (testing).
Both implement the TokenCounter protocol from protocols.py.
"""

from __future__ import annotations

DEFAULT_ENCODING = "cl100k_base"


class TiktokenCounter:
    """Token counter using tiktoken.

    The estimate only has to be close enough to decide when to compact, so
    one encoding serves every backend. Defaults to ``cl100k_base``.

    The encoding is loaded on first use; sessions that never compact never
    pay for it.

    Implements the TokenCounter protocol.
    """

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        self._encoding_name = encoding_name
        self._enc = None

    @property
    def encoding_name(self) -> str:
        """Name of the tiktoken encoding being used."""
        return self._encoding_name

    def _encoding(self):
        if self._enc is None:
            import tiktoken

            self._enc = tiktoken.get_encoding(self._encoding_name)
        return self._enc

    def count_text(self, text: str) -> int:
        """Count tokens in a plain text string.

        Returns 0 for the empty string.
        """
        if not text:
            return 0
        return len(self._encoding().encode(text, disallowed_special=()))


class NullTokenCounter:
    """Token counter that always returns 0.

    Useful for testing when token counts are irrelevant.
    """

    def count_text(self, text: str) -> int:
        return 0


class WordTokenCounter:
    """Counts whitespace-separated words. Deterministic stand-in for tests."""

    def count_text(self, text: str) -> int:
        return len(text.split())
