"""Tests for ToolRegistry and tool declaration rendering."""

from __future__ import annotations

import pytest

from tooltalk.exceptions import DuplicateToolError, ToolNotFoundError
from tooltalk.toolkit.models import ToolDefinition, ToolParameter, ToolResult
from tooltalk.toolkit.registry import ToolRegistry

from conftest import make_tool


def _noop(**kwargs):
    return None


class TestRegistry:
    def test_register_and_resolve(self):
        reg = ToolRegistry()
        tool = reg.register(make_tool("ls", _noop))
        assert reg.resolve("ls") is tool
        assert "ls" in reg
        assert len(reg) == 1

    def test_duplicate_name_rejected(self):
        reg = ToolRegistry([make_tool("ls", _noop)])
        with pytest.raises(DuplicateToolError, match="ls"):
            reg.register(make_tool("ls", _noop))

    def test_unknown_name(self):
        with pytest.raises(ToolNotFoundError) as exc_info:
            ToolRegistry().resolve("missing")
        assert str(exc_info.value) == "Tool missing does not exist"

    def test_declarations_in_registration_order(self):
        reg = ToolRegistry([make_tool("b", _noop), make_tool("a", _noop)])
        assert [t.name for t in reg.declarations()] == ["b", "a"]
        assert reg.names() == ["b", "a"]

    def test_declarations_restricted_by_name(self):
        reg = ToolRegistry([make_tool("a", _noop), make_tool("b", _noop), make_tool("c", _noop)])
        assert [t.name for t in reg.declarations(["c", "a"])] == ["c", "a"]

    def test_declarations_unknown_name(self):
        with pytest.raises(ToolNotFoundError):
            ToolRegistry().declarations(["ghost"])


# ---------------------------------------------------------------------------
# Declaration formats
# ---------------------------------------------------------------------------


@pytest.fixture()
def grep_tool() -> ToolDefinition:
    return ToolDefinition(
        name="grep",
        description="Search files.",
        parameters=(
            ToolParameter("pattern", "string", "Regex to search for.", required=True),
            ToolParameter("paths", "stringArray", "Files to search."),
            ToolParameter("mode", "string", enum=("fast", "full")),
        ),
        handler=_noop,
    )


class TestDeclarations:
    def test_openai_shape(self, grep_tool):
        decl = grep_tool.to_openai()
        assert decl["type"] == "function"
        fn = decl["function"]
        assert fn["name"] == "grep"
        assert fn["parameters"]["required"] == ["pattern"]
        assert fn["parameters"]["properties"]["paths"] == {
            "type": "array",
            "items": {"type": "string"},
            "description": "Files to search.",
        }
        assert fn["parameters"]["properties"]["mode"]["enum"] == ["fast", "full"]

    def test_ollama_matches_openai(self, grep_tool):
        assert grep_tool.to_ollama() == grep_tool.to_openai()

    def test_gemini_upper_case_types(self, grep_tool):
        decl = grep_tool.to_gemini()
        props = decl["parameters"]["properties"]
        assert decl["parameters"]["type"] == "OBJECT"
        assert props["pattern"]["type"] == "STRING"
        assert props["paths"] == {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "Files to search.",
        }

    def test_gemini_parameterless_omits_parameters(self):
        decl = ToolDefinition(name="pwd", description="Print cwd.").to_gemini()
        assert decl == {"name": "pwd", "description": "Print cwd."}

    def test_options_not_declared(self):
        tool = ToolDefinition(
            name="ls",
            description="List.",
            parameters=(ToolParameter("path"),),
            options={"hidden": True},
        )
        assert "hidden" not in tool.json_schema()["properties"]

    def test_unsupported_parameter_type(self):
        with pytest.raises(ValueError, match="Unsupported parameter type"):
            ToolParameter("x", "float")


class TestToolResult:
    def test_success_content(self):
        assert ToolResult("ls", True, output="a b").content == "a b"

    def test_failure_content(self):
        assert ToolResult("ls", False, error="nope").content == "Error: nope"
