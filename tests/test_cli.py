"""CLI tests for tooltalk -- drives both commands via Click's CliRunner.

Backends are replaced by ScriptedAdapter through monkeypatched factories in
tooltalk.api, so no test opens a network connection.
"""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from tooltalk.cli import cli
from tooltalk.exceptions import AuthError
from tooltalk.orchestrator import ChatSession

from conftest import ScriptedAdapter, text_reply


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner(monkeypatch):
    """Click runner with TOOLTALK_* variables cleared."""
    for name in (
        "TOOLTALK_BACKEND", "TOOLTALK_MODEL", "TOOLTALK_BASE_URL",
        "TOOLTALK_SYSTEM_PROMPT", "TOOLTALK_MAX_TURNS",
        "TOOLTALK_CONTEXT_WINDOW", "TOOLTALK_TEMPERATURE",
    ):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


@pytest.fixture
def sessions(monkeypatch):
    """Route open_session to ScriptedAdapter sessions; records configs."""
    opened: list = []
    script: list = []

    def fake_open_session(config=None, registry=None, **kwargs):
        opened.append(config)
        adapter = ScriptedAdapter(script)
        return ChatSession(adapter, registry, config, sleep=lambda s: None, owns_adapter=True)

    monkeypatch.setattr("tooltalk.api.open_session", fake_open_session)
    return opened, script


# ---------------------------------------------------------------------------
# chat
# ---------------------------------------------------------------------------


class TestChat:
    def test_reply_printed(self, runner, sessions):
        opened, script = sessions
        script.append(text_reply("hi back"))
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["chat"], input="hello\nexit\n")

        assert result.exit_code == 0, result.output
        assert "hi back" in result.output
        assert len(opened) == 1

    def test_eof_ends_session(self, runner, sessions):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["chat"], input="")
        assert result.exit_code == 0

    def test_options_reach_config(self, runner, sessions):
        opened, script = sessions
        with runner.isolated_filesystem():
            result = runner.invoke(
                cli,
                ["--backend", "ollama", "--model", "qwen-test", "chat",
                 "--system", "be brief", "--max-turns", "3", "--context-window", "2048"],
                input="quit\n",
            )

        assert result.exit_code == 0, result.output
        config = opened[0]
        assert config.backend == "ollama"
        assert config.model == "qwen-test"
        assert config.system_prompt == "be brief"
        assert config.max_turns == 3
        assert config.params.context_window == 2048

    def test_round_error_reported_and_loop_continues(self, runner, sessions):
        _, script = sessions
        script.extend([AuthError("denied", status_code=401), text_reply("recovered")])
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["chat"], input="one\ntwo\nexit\n")

        assert result.exit_code == 0, result.output
        assert "Error:" in result.output
        assert "denied" in result.output
        assert "recovered" in result.output

    def test_stats_line(self, runner, sessions):
        _, script = sessions
        script.append(text_reply("ok", prompt_tokens=3, completion_tokens=4))
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["chat", "--stats"], input="hi\nexit\n")
        assert "7 tokens" in result.output
        assert "1 dispatch(es)" in result.output

    def test_unsupported_backend_exits_nonzero(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["--backend", "anthropic", "chat"], input="")
        assert result.exit_code == 1
        assert "Unsupported backend: anthropic" in result.output


# ---------------------------------------------------------------------------
# models
# ---------------------------------------------------------------------------


class TestModels:
    def test_lists_models(self, runner, monkeypatch):
        adapter = ScriptedAdapter()
        monkeypatch.setattr("tooltalk.api.open_adapter", lambda config: adapter)
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["models"])

        assert result.exit_code == 0, result.output
        assert "scripted-1" in result.output
        assert adapter.closed

    def test_missing_key_reported(self, runner, monkeypatch):
        monkeypatch.delenv("TOOLTALK_GEMINI_API_KEY", raising=False)
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["--backend", "gemini", "models"])
        assert result.exit_code == 1
        assert "TOOLTALK_GEMINI_API_KEY" in result.output
