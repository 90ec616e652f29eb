"""Toolkit data models.

Frozen dataclasses for tool parameters, tool definitions and execution
results. A ToolDefinition renders its declaration for each backend's wire
format; the handler is invoked with the decoded arguments as keywords.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

# Declared parameter type -> JSON Schema fragment.
_JSON_TYPES: dict[str, dict] = {
    "string": {"type": "string"},
    "integer": {"type": "integer"},
    "number": {"type": "number"},
    "boolean": {"type": "boolean"},
    "object": {"type": "object"},
    "stringArray": {"type": "array", "items": {"type": "string"}},
}


@dataclass(frozen=True)
class ToolParameter:
    """One named argument of a tool.

    Attributes:
        name: Argument name.
        type: One of "string", "integer", "number", "boolean", "object" or
            "stringArray" (an array of strings).
        description: Human-readable description for the model.
        required: Whether the model must supply it.
        enum: Allowed values, if restricted.
    """

    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    enum: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.type not in _JSON_TYPES:
            raise ValueError(
                f"Unsupported parameter type {self.type!r} for {self.name!r}; "
                f"expected one of {sorted(_JSON_TYPES)}"
            )

    def json_schema(self) -> dict:
        schema: dict[str, Any] = dict(_JSON_TYPES[self.type])
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema

    def gemini_schema(self) -> dict:
        """Schema using Gemini's upper-case type names."""
        schema: dict[str, Any] = {"type": _JSON_TYPES[self.type]["type"].upper()}
        if self.type == "stringArray":
            schema["items"] = {"type": "STRING"}
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


@dataclass(frozen=True)
class ToolDefinition:
    """A single tool exposed to the model.

    Attributes:
        name: Tool name, unique within a registry.
        description: When and why the model should use the tool.
        parameters: Declared arguments.
        handler: Callable invoked as ``handler(**arguments)``.
        summarize: Compress successful output through the model before it
            enters the transcript.
        options: Fixed arguments merged into every invocation. They win over
            model-supplied values of the same name and are not declared to
            the model.
    """

    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = ()
    handler: Callable[..., object] | None = None
    summarize: bool = False
    options: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.parameters, tuple):
            object.__setattr__(self, "parameters", tuple(self.parameters))

    def __hash__(self) -> int:
        return hash((self.name, self.description, self.parameters))

    def json_schema(self) -> dict:
        """JSON Schema object describing the declared parameters."""
        return {
            "type": "object",
            "properties": {p.name: p.json_schema() for p in self.parameters},
            "required": [p.name for p in self.parameters if p.required],
        }

    def to_openai(self) -> dict:
        """Convert to OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema(),
            },
        }

    def to_ollama(self) -> dict:
        """Convert to Ollama's ``tools`` format (OpenAI-shaped)."""
        return self.to_openai()

    def to_gemini(self) -> dict:
        """Convert to a Gemini ``functionDeclarations`` entry.

        Gemini rejects an empty ``properties`` object, so parameterless
        tools omit the parameters block entirely.
        """
        decl: dict[str, Any] = {"name": self.name, "description": self.description}
        if self.parameters:
            decl["parameters"] = {
                "type": "OBJECT",
                "properties": {p.name: p.gemini_schema() for p in self.parameters},
                "required": [p.name for p in self.parameters if p.required],
            }
        return decl


@dataclass(frozen=True)
class ToolResult:
    """Structured result from executing a tool call.

    Attributes:
        tool_name: Name of the tool that was called.
        success: Whether execution succeeded.
        output: Rendered output on success (summarized, if the tool asks).
        value: The handler's return value as-is, before rendering. None on
            failure.
        error: Failure reason.
        call_id: Correlation id of the call this answers, if any.
        duplicate: True when this repeats an earlier identical call's result
            without running the handler again.
    """

    tool_name: str
    success: bool
    output: str = ""
    error: str = ""
    call_id: str | None = None
    duplicate: bool = False
    value: Any = field(default=None, compare=False)

    @property
    def content(self) -> str:
        """Text placed in the tool-role message."""
        if self.success:
            return self.output
        return f"Error: {self.error}"
