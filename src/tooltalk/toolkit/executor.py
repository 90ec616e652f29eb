"""ToolExecutor: runs one round's tool calls against a ToolRegistry.

Calls are deduplicated by a SHA-256 over their canonical ``{name,
arguments}`` JSON, executed on worker threads with a per-call timeout, and
folded into ToolResults in call order. Failures never raise; they come back
as ``success=False`` results whose content reads ``"Error: <reason>"``.
"""

from __future__ import annotations

import concurrent.futures
import json
import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Sequence

from tooltalk.engine.hashing import tool_call_hash
from tooltalk.exceptions import (
    MalformedToolCallError,
    SessionCancelledError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from tooltalk.prompts.compact import build_tool_summary_prompt
from tooltalk.toolkit.models import ToolResult

if TYPE_CHECKING:
    from tooltalk.protocols import ToolCall
    from tooltalk.toolkit.models import ToolDefinition
    from tooltalk.toolkit.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 300.0

# Granularity of cancellation checks while waiting on a tool.
_POLL_INTERVAL = 0.05


def render_value(value: Any) -> str:
    """Render a handler's return value as transcript text.

    Strings pass through unchanged; anything else is dumped as JSON.
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


class ToolExecutor:
    """Executes tool calls with dedup, timeout and optional concurrency.

    Args:
        registry: Tools available for resolution.
        timeout: Per-call timeout in seconds.
        max_workers: Calls run concurrently per round (1 = sequential).
        summarizer: Single-prompt generation callable used for tools flagged
            ``summarize=True``. Without one, output is kept raw.
        summarize_words: Word limit for the summary prompt.
        cancel_event: When set, waits stop and SessionCancelledError is
            raised.

    Usage::

        executor = ToolExecutor(registry, timeout=30)
        results = executor.execute_round(reply.tool_calls)
        for r in results:
            print(r.call_id, r.content)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        timeout: float = DEFAULT_TOOL_TIMEOUT,
        max_workers: int = 1,
        summarizer: Callable[[str], str] | None = None,
        summarize_words: int = 5000,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._registry = registry
        self.timeout = timeout
        self.max_workers = max_workers
        self._summarizer = summarizer
        self._summarize_words = summarize_words
        self._cancel = cancel_event or threading.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute_round(self, calls: Sequence[ToolCall]) -> list[ToolResult]:
        """Execute all calls of one model reply.

        Identical calls within the round run once. A repeat that carries a
        correlation id gets a copy of the first result (marked
        ``duplicate``); an id-less repeat is dropped.

        Returns:
            Results in call order, one per non-dropped call.

        Raises:
            SessionCancelledError: If the cancel event was set while waiting.
        """
        first_index: dict[str, int] = {}
        unique: list[ToolCall] = []
        slots: list[tuple[ToolCall, int, bool]] = []
        for call in calls:
            key = self._dedup_key(call)
            if key in first_index:
                if call.id is None:
                    logger.info("Skipping duplicate tool call %s", call.name)
                    continue
                logger.info("Duplicate tool call %s (%s); reusing result", call.name, call.id)
                slots.append((call, first_index[key], True))
                continue
            first_index[key] = len(unique)
            slots.append((call, len(unique), False))
            unique.append(call)

        outcomes = self._run_all(unique)

        results: list[ToolResult] = []
        for call, idx, is_dup in slots:
            base = outcomes[idx]
            results.append(ToolResult(
                tool_name=call.name,
                success=base.success,
                output=base.output,
                error=base.error,
                value=base.value,
                call_id=call.id,
                duplicate=is_dup,
            ))
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _dedup_key(call: ToolCall) -> str:
        try:
            args: Any = call.decoded_arguments()
        except MalformedToolCallError:
            args = call.raw_arguments
        return tool_call_hash(call.name, args)

    def _run_all(self, calls: list[ToolCall]) -> list[ToolResult]:
        if not calls:
            return []
        # Sized to the call count so an abandoned (timed-out) handler never
        # blocks a later call from starting.
        pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=len(calls), thread_name_prefix="tooltalk-tool"
        )
        results: list[ToolResult] = []
        try:
            for start in range(0, len(calls), self.max_workers):
                batch = calls[start:start + self.max_workers]
                prepared = [self._prepare(call) for call in batch]
                futures = [
                    pool.submit(self._invoke, tool, args) if tool is not None else None
                    for tool, args, _ in prepared
                ]
                for call, (tool, _, failure), future in zip(batch, prepared, futures):
                    if future is None:
                        results.append(failure)
                        continue
                    results.append(self._collect(call, tool, future))
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return results

    def _prepare(
        self, call: ToolCall
    ) -> tuple[ToolDefinition | None, dict, ToolResult | None]:
        """Resolve the tool and build its arguments, or a failure result."""
        try:
            tool = self._registry.resolve(call.name)
            args = call.decoded_arguments()
        except (ToolNotFoundError, MalformedToolCallError) as exc:
            logger.warning("Tool call %s rejected: %s", call.name, exc)
            return None, {}, ToolResult(tool_name=call.name, success=False, error=str(exc))
        if tool.handler is None:
            return None, {}, ToolResult(
                tool_name=call.name,
                success=False,
                error=f"tool {call.name} does not have a handler",
            )
        merged = dict(args)
        merged.update(tool.options)
        return tool, merged, None

    @staticmethod
    def _invoke(tool: ToolDefinition, args: dict) -> Any:
        logger.debug("Running tool %s with %s", tool.name, args)
        return tool.handler(**args)

    def _wait(self, future: concurrent.futures.Future) -> None:
        """Block until ``future`` finishes, the timeout passes, or cancel."""
        remaining = self.timeout
        while remaining > 0:
            if self._cancel.is_set():
                raise SessionCancelledError()
            step = min(_POLL_INTERVAL, remaining)
            done, _ = concurrent.futures.wait([future], timeout=step)
            if done:
                return
            remaining -= step
        if self._cancel.is_set():
            raise SessionCancelledError()

    def _collect(
        self,
        call: ToolCall,
        tool: ToolDefinition,
        future: concurrent.futures.Future,
    ) -> ToolResult:
        self._wait(future)
        if not future.done():
            future.cancel()
            exc = ToolTimeoutError(call.name, self.timeout)
            logger.warning("%s", exc)
            return ToolResult(tool_name=call.name, success=False, error=str(exc))
        try:
            value = future.result()
        except Exception as exc:
            logger.debug("Tool %s failed: %s", call.name, exc, exc_info=True)
            reason = str(exc) or type(exc).__name__
            return ToolResult(tool_name=call.name, success=False, error=reason)

        output = render_value(value)
        if tool.summarize and self._summarizer is not None:
            output = self._summarize(call.name, output)
        return ToolResult(tool_name=call.name, success=True, output=output, value=value)

    def _summarize(self, name: str, output: str) -> str:
        prompt = build_tool_summary_prompt(output, words=self._summarize_words)
        try:
            return self._summarizer(prompt)
        except SessionCancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "Summarizing output of tool %s failed, keeping raw output: %s", name, exc
            )
            return output
