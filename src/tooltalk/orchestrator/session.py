"""ChatSession: the conversation state machine.

A round starts with ``send(text)`` and runs as an explicit loop:

1. compact the transcript if it is over budget
2. dispatch it to the adapter (under RetryPolicy)
3. if the reply asks for tools, execute them, append the results and go to 1
4. otherwise deliver the reply text and return to AWAITING_INPUT

The round works on a copy of the transcript and commits it only on success,
so a failed or cancelled round leaves the session exactly as it was.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Sequence

from tooltalk.engine.compaction import ContextCompactor
from tooltalk.exceptions import (
    MalformedToolCallError,
    SessionCancelledError,
    SessionClosedError,
    SessionError,
    UnrecognizedReplyError,
)
from tooltalk.extraction import STRAY_MARKUP, QuoteRepairExtractor
from tooltalk.models.config import GenerationParams, SessionConfig
from tooltalk.orchestrator.models import RoundResult, SessionState
from tooltalk.prompts.compact import INVALID_TOOL_CALL_TEMPLATE, STRAY_TOOL_MARKUP_NOTICE
from tooltalk.protocols import CallStyle, Message, UnrecognizedPart, Usage
from tooltalk.retry import RetryPolicy
from tooltalk.toolkit.executor import ToolExecutor
from tooltalk.toolkit.registry import ToolRegistry

if TYPE_CHECKING:
    from tooltalk.extraction import ToolCallExtractor
    from tooltalk.protocols import ModelReply, ProviderAdapter, ToolCall
    from tooltalk.toolkit.models import ToolDefinition, ToolResult

logger = logging.getLogger(__name__)


class ChatSession:
    """One conversation with one backend.

    Sessions are synchronous and owned by a single thread; use ChatChannel
    to drive one from a worker thread. ``close()`` may be called from any
    thread and interrupts backoff sleeps and tool waits.

    Usage::

        adapter = OpenAIAdapter(model="gpt-4o-mini")
        with ChatSession(adapter, registry, SessionConfig(max_turns=8)) as chat:
            result = chat.send("What changed in the repo today?")
            print(result.text)
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        registry: ToolRegistry | None = None,
        config: SessionConfig | None = None,
        *,
        extractor: ToolCallExtractor | None = None,
        compactor: ContextCompactor | None = None,
        sleep: Callable[[float], None] | None = None,
        owns_adapter: bool = False,
    ) -> None:
        """Initialize the session.

        Args:
            adapter: Backend adapter.
            registry: Tools the model may call. None means no tools.
            config: Session configuration. Defaults to SessionConfig().
            extractor: Text-embedded call extractor. Defaults to
                QuoteRepairExtractor.
            compactor: Context compactor. Defaults to a ContextCompactor
                using the config's compaction settings.
            sleep: Backoff sleep override. Defaults to a wait on the close
                signal, so ``close()`` interrupts it.
            owns_adapter: Close the adapter when the session closes.

        Raises:
            ToolNotFoundError: If ``config.tools`` names an unregistered tool.
        """
        self._state = SessionState.IDLE
        self._config = config or SessionConfig()
        self._adapter = adapter
        self._registry = registry or ToolRegistry()
        self._extractor = extractor or QuoteRepairExtractor()
        self._compactor = compactor or ContextCompactor(
            words=self._config.compact_words,
            include_system=self._config.compact_include_system,
        )
        self._owns_adapter = owns_adapter
        self._closed = threading.Event()
        self._round_lock = threading.Lock()

        self._retry = RetryPolicy(
            self._config.retry,
            sleep=sleep or self._wait_or_cancel,
            deadline=self._config.request_timeout,
        )
        self._executor = ToolExecutor(
            self._registry,
            timeout=self._config.tool_timeout,
            max_workers=self._config.tool_workers,
            summarizer=self._summarize,
            summarize_words=self._config.summarize_words,
            cancel_event=self._closed,
        )
        self._tools: list[ToolDefinition] = self._registry.declarations(self._config.tools)

        self._last_result: RoundResult | None = None
        self._transcript: tuple[Message, ...] = ()
        if self._config.system_prompt:
            self._transcript = (Message.system(self._config.system_prompt),)
        self._state = SessionState.AWAITING_INPUT

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        if self._closed.is_set():
            return SessionState.CLOSED
        return self._state

    @property
    def transcript(self) -> tuple[Message, ...]:
        """Committed transcript (immutable snapshot)."""
        return self._transcript

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def adapter(self) -> ProviderAdapter:
        return self._adapter

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def last_result(self) -> RoundResult | None:
        """RoundResult of the most recent round, successful or not."""
        return self._last_result

    def send(self, text: str) -> RoundResult:
        """Run one round for a user utterance.

        Returns:
            RoundResult with the delivered replies and round statistics.

        Raises:
            SessionClosedError: If the session is closed.
            SessionError: If another round is already running.
            SessionCancelledError: If the session was closed mid-round.
            PermanentBackendError: On a non-retryable backend failure.
            RetryExhaustedError: When a transient failure outlasts the
                retry budget.
        """
        if self._closed.is_set():
            raise SessionClosedError()
        if not self._round_lock.acquire(blocking=False):
            raise SessionError("A round is already in progress")
        try:
            return self._run_round(text)
        finally:
            self._round_lock.release()

    def close(self) -> None:
        """Close the session. Safe to call more than once, from any thread."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._state = SessionState.CLOSED
        logger.info("Session closed")
        if self._owns_adapter:
            self._adapter.close()

    def __enter__(self) -> ChatSession:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Round loop
    # ------------------------------------------------------------------

    def _run_round(self, text: str) -> RoundResult:
        working: list[Message] = list(self._transcript)
        working.append(Message.user(text))

        turns = 0
        usage = Usage()
        compacted = False
        forced = False
        executed: list[ToolResult] = []
        replies: list[str] = []

        try:
            while True:
                self._check_cancelled()
                self._set_state(SessionState.DISPATCHING)
                turns += 1

                compaction = self._compactor.compact(
                    working,
                    context_window=self._config.params.context_window,
                    generate=self._side_generate,
                )
                if compaction.compacted:
                    working = list(compaction.messages)
                    compacted = True

                max_turns = self._config.max_turns
                forced = max_turns > 0 and turns > max_turns
                if forced:
                    logger.info("Turn limit %d reached; requesting a final answer", max_turns)

                self._set_state(SessionState.AWAITING_MODEL)
                reply = self._dispatch(working, forced)
                self._check_cancelled()
                usage = usage + reply.usage
                reply_text = reply.text

                if forced:
                    if reply.tool_calls:
                        logger.warning("Ignoring tool calls in the final reply")
                    working.append(Message.assistant(reply_text, raw=reply.raw))
                    if reply_text:
                        replies.append(reply_text)
                    break

                calls = reply.tool_calls
                if not calls and self._adapter.call_style == CallStyle.TEXT_EMBEDDED:
                    try:
                        calls = list(self._extractor.extract(reply_text).calls)
                    except MalformedToolCallError as exc:
                        logger.info("Received invalid tool call: %s", exc)
                        working.append(Message.assistant(reply_text, raw=reply.raw))
                        working.append(Message.tool(INVALID_TOOL_CALL_TEMPLATE.format(reason=exc)))
                        continue

                if calls:
                    self._set_state(SessionState.EXECUTING_TOOLS)
                    working.append(Message.assistant(reply_text, tool_calls=calls, raw=reply.raw))
                    results = self._execute(calls)
                    executed.extend(results)
                    working.extend(self._tool_messages(results))
                    continue

                if self._adapter.call_style != CallStyle.TEXT_EMBEDDED and STRAY_MARKUP in reply_text:
                    logger.info("Detected tool call markup in text reply")
                    working.append(Message.assistant(reply_text, raw=reply.raw))
                    working.append(Message.user(STRAY_TOOL_MARKUP_NOTICE))
                    continue

                working.append(Message.assistant(reply_text, raw=reply.raw))
                if reply_text:
                    replies.append(reply_text)
                break
        except BaseException as exc:
            if not self._closed.is_set():
                self._state = SessionState.AWAITING_INPUT
            logger.warning("Round failed after %d dispatch(es): %s", turns, exc)
            self._notify_complete(RoundResult(
                usage=usage,
                turns=turns,
                tool_results=tuple(executed),
                compacted=compacted,
                forced_final=forced,
                error=exc,
            ))
            raise

        self._transcript = tuple(working)
        self._set_state(SessionState.AWAITING_INPUT)
        result = RoundResult(
            replies=tuple(replies),
            usage=usage,
            turns=turns,
            tool_results=tuple(executed),
            compacted=compacted,
            forced_final=forced,
        )
        logger.info(
            "Round complete: %d dispatch(es), %d tool call(s), %d tokens",
            turns, len(executed), usage.total_tokens,
        )
        for reply_text in replies:
            self._notify_reply(reply_text)
        self._notify_complete(result)
        return result

    def _dispatch(self, working: Sequence[Message], forced: bool) -> ModelReply:
        tools = None if forced or not self._tools else self._tools
        reply = self._retry.call(
            self._adapter.submit, tuple(working), tools, self._config.params
        )
        for part in reply.parts:
            if isinstance(part, UnrecognizedPart):
                raise UnrecognizedReplyError(part.kind, part.payload)
        return reply

    def _execute(self, calls: Sequence[ToolCall]) -> list[ToolResult]:
        for call in calls:
            logger.info("Handling function call %s", call.name)
        return self._executor.execute_round(calls)

    def _tool_messages(self, results: Sequence[ToolResult]) -> list[Message]:
        messages: list[Message] = []
        for r in results:
            content = r.content
            if self._adapter.call_style == CallStyle.TEXT_EMBEDDED:
                content = f"Tool {r.tool_name} returned: {content}"
            logger.debug("Tool result: %s", content)
            messages.append(Message.tool(content, tool_call_id=r.call_id, name=r.tool_name))
        return messages

    # ------------------------------------------------------------------
    # Side channel and cancellation
    # ------------------------------------------------------------------

    def _side_generate(self, prompt: str) -> str:
        """Tool-less generation used for compaction."""
        return self._retry.call(
            self._adapter.generate,
            prompt,
            system_prompt=self._config.system_prompt,
            params=self._config.params,
        )

    def _summarize(self, prompt: str) -> str:
        params = GenerationParams(max_output_tokens=self._config.summarize_words)
        return self._retry.call(self._adapter.generate, prompt, params=params)

    def _set_state(self, state: SessionState) -> None:
        if not self._closed.is_set():
            self._state = state

    def _wait_or_cancel(self, seconds: float) -> None:
        if self._closed.wait(seconds):
            raise SessionCancelledError()

    def _check_cancelled(self) -> None:
        if self._closed.is_set():
            raise SessionCancelledError()

    def _notify_reply(self, text: str) -> None:
        if self._config.on_reply is None:
            return
        try:
            self._config.on_reply(text)
        except Exception:
            logger.warning("on_reply callback error", exc_info=True)

    def _notify_complete(self, result: RoundResult) -> None:
        self._last_result = result
        if self._config.on_round_complete is None:
            return
        try:
            self._config.on_round_complete(result)
        except Exception:
            logger.warning("on_round_complete callback error", exc_info=True)
