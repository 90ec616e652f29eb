"""ToolRegistry: the name -> ToolDefinition table a session draws from."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Iterable

from tooltalk.exceptions import DuplicateToolError, ToolNotFoundError

if TYPE_CHECKING:
    from tooltalk.toolkit.models import ToolDefinition


class ToolRegistry:
    """Registry of invokable tools.

    Registration takes a lock; lookups are plain dict reads, so a registry
    can be shared by sessions on different threads once populated.

    Usage::

        registry = ToolRegistry([read_file_tool])
        registry.register(list_issues_tool)
        tool = registry.resolve("list_issues")
    """

    def __init__(self, tools: Iterable[ToolDefinition] = ()) -> None:
        self._lock = threading.Lock()
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> ToolDefinition:
        """Add a tool.

        Raises:
            DuplicateToolError: If a tool with the same name exists.
        """
        with self._lock:
            if tool.name in self._tools:
                raise DuplicateToolError(tool.name)
            self._tools[tool.name] = tool
        return tool

    def resolve(self, name: str) -> ToolDefinition:
        """Look up a tool by name.

        Raises:
            ToolNotFoundError: If no tool has that name.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def declarations(self, names: Iterable[str] | None = None) -> list[ToolDefinition]:
        """Definitions to declare to the model.

        Args:
            names: Restrict to these tools, in this order. None means all
                registered tools in registration order.

        Raises:
            ToolNotFoundError: If a requested name is not registered.
        """
        if names is None:
            return list(self._tools.values())
        return [self.resolve(n) for n in names]

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
