"""Tests for ChatChannel, the threaded send/recv front end."""

from __future__ import annotations

import pytest

from tooltalk.exceptions import AuthError, SessionClosedError
from tooltalk.orchestrator import ChatChannel, ChatSession

from conftest import ScriptedAdapter, text_reply


def _channel(script) -> ChatChannel:
    session = ChatSession(ScriptedAdapter(script), sleep=lambda seconds: None)
    return ChatChannel(session, join_timeout=2.0)


class TestChannel:
    def test_send_recv(self):
        with _channel([text_reply("hello")]) as channel:
            channel.send("hi")
            assert channel.recv(timeout=5) == "hello"
            result = channel.wait_complete(timeout=5)
            assert result.ok
            assert result.replies == ("hello",)

    def test_rounds_in_send_order(self):
        with _channel([text_reply("one"), text_reply("two"), text_reply("three")]) as channel:
            for text in ("a", "b", "c"):
                channel.send(text)
            assert [channel.recv(timeout=5) for _ in range(3)] == ["one", "two", "three"]
            assert [m.content for m in channel.session.transcript] == [
                "a", "one", "b", "two", "c", "three",
            ]

    def test_one_completion_per_round(self):
        with _channel([text_reply("one"), text_reply("two")]) as channel:
            channel.send("a")
            channel.send("b")
            first = channel.wait_complete(timeout=5)
            second = channel.wait_complete(timeout=5)
            assert (first.text, second.text) == ("one", "two")
            with pytest.raises(TimeoutError):
                channel.wait_complete(timeout=0.1)

    def test_round_error_surfaces_on_recv_and_completion(self):
        error = AuthError("denied", status_code=401)
        with _channel([error, text_reply("after")]) as channel:
            channel.send("a")
            with pytest.raises(AuthError):
                channel.recv(timeout=5)
            failed = channel.wait_complete(timeout=5)
            assert failed.error is error

            channel.send("b")
            assert channel.recv(timeout=5) == "after"

    def test_recv_timeout(self):
        with _channel([]) as channel:
            with pytest.raises(TimeoutError):
                channel.recv(timeout=0.1)

    def test_close(self):
        channel = _channel([])
        channel.close()
        channel.close()

        assert channel.closed
        assert channel.session.closed
        with pytest.raises(SessionClosedError):
            channel.send("hi")
        with pytest.raises(SessionClosedError):
            channel.recv(timeout=1)
        with pytest.raises(SessionClosedError):
            channel.wait_complete(timeout=1)
