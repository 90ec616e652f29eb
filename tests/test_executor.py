"""Tests for ToolExecutor: dedup, timeouts, ordering, options and summaries."""

from __future__ import annotations

import threading
import time

import pytest

from tooltalk.exceptions import SessionCancelledError
from tooltalk.protocols import ToolCall
from tooltalk.toolkit.executor import ToolExecutor, render_value
from tooltalk.toolkit.registry import ToolRegistry

from conftest import CallCounter, make_call, make_tool


def _run_one(executor: ToolExecutor, call: ToolCall):
    [result] = executor.execute_round([call])
    return result


# ---------------------------------------------------------------------------
# Basic execution
# ---------------------------------------------------------------------------


class TestExecute:
    def test_success_rendered_as_text(self, registry, counter):
        result = _run_one(ToolExecutor(registry), make_call("read_file", {"path": "a"}))

        assert result.success
        assert result.content == "ok"
        assert result.call_id == "call_1"
        assert counter.calls == [{"path": "a"}]

    def test_structured_value_dumped_as_json(self):
        reg = ToolRegistry([make_tool("pwd", lambda **kw: {"path": "/tmp"})])
        result = _run_one(ToolExecutor(reg), make_call("pwd"))
        assert result.output == '{"path": "/tmp"}'
        assert result.value == {"path": "/tmp"}

    def test_unknown_tool_is_failed_result(self, registry):
        result = _run_one(ToolExecutor(registry), make_call("nope"))
        assert not result.success
        assert result.value is None
        assert result.content == "Error: Tool nope does not exist"

    def test_handler_exception_is_failed_result(self):
        def boom(**kwargs):
            raise RuntimeError("disk on fire")

        reg = ToolRegistry([make_tool("boom", boom)])
        result = _run_one(ToolExecutor(reg), make_call("boom"))
        assert not result.success
        assert result.content == "Error: disk on fire"

    def test_malformed_arguments_is_failed_result(self, registry, counter):
        call = ToolCall(id="c1", name="read_file", raw_arguments="{not json")
        result = _run_one(ToolExecutor(registry), call)
        assert not result.success
        assert "failed to parse tool arguments" in result.error
        assert counter.calls == []

    def test_missing_handler(self):
        reg = ToolRegistry([make_tool("inert", None)])
        result = _run_one(ToolExecutor(reg), make_call("inert"))
        assert not result.success
        assert "does not have a handler" in result.error

    def test_options_override_model_arguments(self):
        counter = CallCounter()
        reg = ToolRegistry([make_tool("read_file", counter, options={"path": "/fixed", "limit": 5})])
        _run_one(ToolExecutor(reg), make_call("read_file", {"path": "/etc/passwd"}))
        assert counter.calls == [{"path": "/fixed", "limit": 5}]

    def test_invalid_worker_count(self, registry):
        with pytest.raises(ValueError):
            ToolExecutor(registry, max_workers=0)


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------


class TestDedup:
    def test_identical_calls_run_once(self, registry, counter):
        calls = [
            make_call("read_file", {"path": "a"}, call_id="c1"),
            make_call("read_file", {"path": "a"}, call_id="c2"),
        ]
        results = ToolExecutor(registry).execute_round(calls)

        assert len(counter.calls) == 1
        assert [r.call_id for r in results] == ["c1", "c2"]
        assert [r.duplicate for r in results] == [False, True]
        assert results[1].content == results[0].content

    def test_duplicate_carries_raw_value(self):
        reg = ToolRegistry([make_tool("ls", lambda **kw: ["a.txt", "b.txt"])])
        calls = [make_call("ls", call_id="c1"), make_call("ls", call_id="c2")]
        results = ToolExecutor(reg).execute_round(calls)
        assert [r.value for r in results] == [["a.txt", "b.txt"]] * 2

    def test_key_order_does_not_matter(self, registry, counter):
        calls = [
            ToolCall(id="c1", name="read_file", raw_arguments='{"path": "a", "n": 1}'),
            ToolCall(id="c2", name="read_file", raw_arguments='{"n": 1, "path": "a"}'),
        ]
        ToolExecutor(registry).execute_round(calls)
        assert len(counter.calls) == 1

    def test_idless_duplicate_dropped(self, registry, counter):
        calls = [
            make_call("read_file", {"path": "a"}, call_id=None),
            make_call("read_file", {"path": "a"}, call_id=None),
        ]
        results = ToolExecutor(registry).execute_round(calls)
        assert len(results) == 1
        assert len(counter.calls) == 1

    def test_different_arguments_both_run(self, registry, counter):
        calls = [
            make_call("read_file", {"path": "a"}, call_id="c1"),
            make_call("read_file", {"path": "b"}, call_id="c2"),
        ]
        ToolExecutor(registry).execute_round(calls)
        assert counter.calls == [{"path": "a"}, {"path": "b"}]

    def test_dedup_is_per_round(self, registry, counter):
        executor = ToolExecutor(registry)
        executor.execute_round([make_call("read_file", {"path": "a"})])
        executor.execute_round([make_call("read_file", {"path": "a"})])
        assert len(counter.calls) == 2


# ---------------------------------------------------------------------------
# Timeouts, concurrency and cancellation
# ---------------------------------------------------------------------------


class TestTimeoutsAndConcurrency:
    def test_hanging_tool_times_out(self):
        release = threading.Event()

        def hang(**kwargs):
            release.wait(10)
            return "late"

        reg = ToolRegistry([make_tool("hang", hang)])
        try:
            start = time.monotonic()
            result = _run_one(ToolExecutor(reg, timeout=0.2), make_call("hang"))
            elapsed = time.monotonic() - start
        finally:
            release.set()

        assert not result.success
        assert "timed out" in result.error
        assert elapsed < 5

    def test_timeout_does_not_block_later_calls(self):
        release = threading.Event()
        fast = CallCounter("fast")

        def hang(**kwargs):
            release.wait(10)

        reg = ToolRegistry([make_tool("hang", hang), make_tool("fast", fast)])
        try:
            results = ToolExecutor(reg, timeout=0.2).execute_round(
                [make_call("hang", call_id="c1"), make_call("fast", call_id="c2")]
            )
        finally:
            release.set()

        assert [r.success for r in results] == [False, True]
        assert results[1].output == "fast"

    def test_concurrent_results_keep_call_order(self):
        def slow(path="", **kwargs):
            time.sleep(0.1 if path == "first" else 0.0)
            return path

        reg = ToolRegistry([make_tool("echo", slow)])
        calls = [
            make_call("echo", {"path": "first"}, call_id="c1"),
            make_call("echo", {"path": "second"}, call_id="c2"),
            make_call("echo", {"path": "third"}, call_id="c3"),
        ]
        results = ToolExecutor(reg, max_workers=3).execute_round(calls)
        assert [r.output for r in results] == ["first", "second", "third"]
        assert [r.call_id for r in results] == ["c1", "c2", "c3"]

    def test_cancel_event_interrupts_wait(self):
        release = threading.Event()
        cancel = threading.Event()

        def hang(**kwargs):
            release.wait(10)

        reg = ToolRegistry([make_tool("hang", hang)])
        executor = ToolExecutor(reg, timeout=30, cancel_event=cancel)
        timer = threading.Timer(0.1, cancel.set)
        timer.start()
        try:
            with pytest.raises(SessionCancelledError):
                _run_one(executor, make_call("hang"))
        finally:
            release.set()
            timer.cancel()


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


class TestSummarize:
    def test_flagged_tool_output_summarized(self):
        prompts: list[str] = []

        def summarizer(prompt: str) -> str:
            prompts.append(prompt)
            return "short"

        reg = ToolRegistry([make_tool("big", lambda **kw: "x" * 100, summarize=True)])
        executor = ToolExecutor(reg, summarizer=summarizer, summarize_words=50)
        result = _run_one(executor, make_call("big"))

        assert result.output == "short"
        assert result.value == "x" * 100
        assert "50 words or less" in prompts[0]
        assert prompts[0].endswith("x" * 100)

    def test_summary_failure_keeps_raw_output(self):
        def summarizer(prompt: str) -> str:
            raise RuntimeError("backend down")

        reg = ToolRegistry([make_tool("big", lambda **kw: "raw", summarize=True)])
        result = _run_one(ToolExecutor(reg, summarizer=summarizer), make_call("big"))
        assert result.success
        assert result.output == "raw"

    def test_unflagged_tool_not_summarized(self, registry):
        def summarizer(prompt: str) -> str:
            raise AssertionError("should not be called")

        result = _run_one(ToolExecutor(registry, summarizer=summarizer), make_call("read_file"))
        assert result.output == "ok"

    def test_failed_tool_not_summarized(self):
        def summarizer(prompt: str) -> str:
            raise AssertionError("should not be called")

        def boom(**kwargs):
            raise ValueError("bad")

        reg = ToolRegistry([make_tool("boom", boom, summarize=True)])
        result = _run_one(ToolExecutor(reg, summarizer=summarizer), make_call("boom"))
        assert result.content == "Error: bad"


class TestRenderValue:
    def test_string_passthrough(self):
        assert render_value("hello") == "hello"

    def test_non_ascii_kept(self):
        assert render_value({"name": "café"}) == '{"name": "café"}'

    def test_list(self):
        assert render_value([1, 2]) == "[1, 2]"
