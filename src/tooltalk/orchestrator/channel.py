"""ChatChannel: drive a ChatSession from a dedicated worker thread.

The caller pushes utterances with ``send`` and reads assistant replies with
``recv``. ``wait_complete`` returns each round's RoundResult exactly once,
in round order, whether the round succeeded or failed. Terminal round
errors are also raised from ``recv`` so a reply reader never blocks on a
round that will not produce one.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Union

from tooltalk.exceptions import SessionClosedError
from tooltalk.orchestrator.models import RoundResult

if TYPE_CHECKING:
    from tooltalk.orchestrator.session import ChatSession

logger = logging.getLogger(__name__)

_STOP = object()


class ChatChannel:
    """Threaded send/recv interface over one ChatSession.

    Usage::

        with ChatChannel(session) as channel:
            channel.send("List my open issues")
            print(channel.recv())
            result = channel.wait_complete()
    """

    def __init__(self, session: ChatSession, *, join_timeout: float = 5.0) -> None:
        self._session = session
        self._join_timeout = join_timeout
        self._inbox: queue.Queue[object] = queue.Queue()
        self._outbox: queue.Queue[Union[str, BaseException, object]] = queue.Queue()
        self._completions: queue.Queue[Union[RoundResult, object]] = queue.Queue()
        self._closed = threading.Event()
        self._worker = threading.Thread(
            target=self._run, name="tooltalk-chat", daemon=True
        )
        self._worker.start()

    @property
    def session(self) -> ChatSession:
        return self._session

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, text: str) -> None:
        """Queue a user utterance. Rounds run strictly in send order.

        Raises:
            SessionClosedError: If the channel is closed.
        """
        if self._closed.is_set():
            raise SessionClosedError()
        self._inbox.put(text)

    def recv(self, timeout: float | None = None) -> str:
        """Next assistant reply.

        Raises:
            TimeoutError: If nothing arrives within ``timeout`` seconds.
            SessionClosedError: If the channel closed with no reply pending.
            ToolTalkError: The terminal error of a failed round.
        """
        try:
            item = self._outbox.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError(f"No reply within {timeout}s") from None
        if item is _STOP:
            self._outbox.put(_STOP)
            raise SessionClosedError()
        if isinstance(item, BaseException):
            raise item
        return item  # type: ignore[return-value]

    def wait_complete(self, timeout: float | None = None) -> RoundResult:
        """RoundResult of the next finished round (fires once per round).

        Raises:
            TimeoutError: If no round finishes within ``timeout`` seconds.
            SessionClosedError: If the channel closed with no round pending.
        """
        try:
            item = self._completions.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError(f"No round completed within {timeout}s") from None
        if item is _STOP:
            self._completions.put(_STOP)
            raise SessionClosedError()
        return item  # type: ignore[return-value]

    def close(self) -> None:
        """Close the session, stop the worker and join it."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._session.close()
        self._inbox.put(_STOP)
        self._worker.join(self._join_timeout)
        if self._worker.is_alive():
            logger.warning("Chat worker did not stop within %ss", self._join_timeout)

    def __enter__(self) -> ChatChannel:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _run(self) -> None:
        try:
            while True:
                text = self._inbox.get()
                if text is _STOP:
                    break
                try:
                    result = self._session.send(text)  # type: ignore[arg-type]
                except Exception as exc:
                    logger.debug("Round failed in worker", exc_info=True)
                    self._outbox.put(exc)
                    result = self._session.last_result or RoundResult(error=exc)
                    if result.error is not exc:
                        result = RoundResult(error=exc)
                else:
                    for reply in result.replies:
                        self._outbox.put(reply)
                self._completions.put(result)
        finally:
            self._outbox.put(_STOP)
            self._completions.put(_STOP)
