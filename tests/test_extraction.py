"""Tests for text-embedded tool-call extraction and quote repair."""

from __future__ import annotations

import json
import re

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tooltalk.exceptions import MalformedToolCallError
from tooltalk.extraction import (
    QuoteRepairExtractor,
    ToolCallExtractor,
    repair_quotes,
)


@pytest.fixture()
def extractor() -> QuoteRepairExtractor:
    return QuoteRepairExtractor()


# ---------------------------------------------------------------------------
# Locating calls
# ---------------------------------------------------------------------------


class TestExtract:
    def test_satisfies_protocol(self, extractor):
        assert isinstance(extractor, ToolCallExtractor)

    def test_plain_text_has_no_calls(self, extractor):
        result = extractor.extract("The directory is /tmp.")
        assert not result.has_calls
        assert result.calls == ()
        assert result.text == "The directory is /tmp."

    def test_fenced_call_with_apostrophe(self, extractor):
        text = '```json\n{"name":"pwd", "arguments": {"note":"it\'s"}}\n```'
        result = extractor.extract(text)

        assert len(result.calls) == 1
        call = result.calls[0]
        assert call.name == "pwd"
        assert call.arguments == {"note": "it's"}
        assert call.id is None
        assert result.repaired is False

    def test_fenced_call_with_unescaped_quotes(self, extractor):
        text = '```json\n{"name":"pwd", "arguments": {"note":"say "hi" please"}}\n```'
        result = extractor.extract(text)

        assert result.calls[0].arguments == {"note": 'say "hi" please'}
        assert result.repaired is True

    def test_leading_prose_ignored(self, extractor):
        text = 'Let me check. {"name": "read_file", "arguments": {"path": "a.txt"}}'
        call = extractor.extract(text).calls[0]
        assert call.name == "read_file"
        assert call.arguments == {"path": "a.txt"}

    def test_closing_tag_stripped(self, extractor):
        text = '<tool_call>{"name": "ls", "arguments": {}}</tool_call>'
        call = extractor.extract(text).calls[0]
        assert call.name == "ls"
        assert call.arguments == {}

    def test_string_arguments_decoded(self, extractor):
        text = '{"name": "ls", "arguments": "{\\"path\\": \\"/\\"}"}'
        assert extractor.extract(text).calls[0].arguments == {"path": "/"}

    def test_only_first_call_recognised(self, extractor):
        text = (
            '{"name": "a", "arguments": {}}\n'
            '{"name": "b", "arguments": {}}'
        )
        with pytest.raises(MalformedToolCallError):
            extractor.extract(text)

    def test_malformed_call_raises_with_fragment(self, extractor):
        text = '{"name": "ls", "arguments": {"path": '
        with pytest.raises(MalformedToolCallError) as exc_info:
            extractor.extract(text)
        assert "failed to unmarshal tool call" in str(exc_info.value)
        assert exc_info.value.fragment.startswith('{"name": "ls"')

    def test_non_object_arguments_rejected(self, extractor):
        with pytest.raises(MalformedToolCallError, match="must be an object"):
            extractor.extract('{"name": "ls", "arguments": [1, 2]}')

    def test_no_space_variant_matches(self, extractor):
        call = extractor.extract('{"name":"ls","arguments":{}}').calls[0]
        assert call.name == "ls"

    def test_candidate_none_without_opening(self, extractor):
        assert extractor.candidate('{"tool": "ls"}') is None


# ---------------------------------------------------------------------------
# Quote repair
# ---------------------------------------------------------------------------


# Value text mixing quotes with the characters that can close a string.
# The only excluded shape is a quote directly followed by ``: , }``, which
# the repair reads as the end of the value.
_value_text = st.text(
    alphabet=st.sampled_from(list("abcXYZ019 '\".!?-:,}]{[")), max_size=40
).filter(lambda v: re.search(r'"[:,}]', v) is None)

# Free of structural characters, so a strict decode can never succeed with a
# different reading of the value.
_plain_value_text = st.text(
    alphabet=st.sampled_from(list("abcXYZ019 '\".!?-")), max_size=40
)


def _say(value: str) -> str:
    return '{"name": "say", "arguments": {"text": "' + value + '"}}'


class TestRepairQuotes:
    def test_valid_json_unchanged(self):
        text = '{"name": "ls", "arguments": {"path": "/tmp", "n": 3}}'
        assert repair_quotes(text) == text

    def test_escaped_quotes_left_alone(self):
        text = '{"text": "a \\"quoted\\" word"}'
        assert repair_quotes(text) == text

    def test_end_of_input_closes(self):
        assert repair_quotes('{"a": "x"') == '{"a": "x"'

    @pytest.mark.parametrize(
        "value",
        [
            'a " , b',
            'he said "no" , then left',
            'see "x"] here',
            'trailing " }',
            '"quoted" at the start',
        ],
    )
    def test_quote_before_space_stays_in_value(self, value):
        assert json.loads(repair_quotes(_say(value)))["arguments"]["text"] == value

    def test_quote_touching_comma_closes(self):
        repaired = repair_quotes('{"a": "x", "b": "y"}')
        assert json.loads(repaired) == {"a": "x", "b": "y"}

    @given(value=_value_text)
    def test_repaired_value_round_trips(self, value):
        decoded = json.loads(repair_quotes(_say(value)))
        assert decoded["arguments"]["text"] == value

    @given(value=_plain_value_text)
    def test_extractor_recovers_value(self, value):
        call = QuoteRepairExtractor().extract("Sure.\n" + _say(value)).calls[0]
        assert call.arguments == {"text": value}
