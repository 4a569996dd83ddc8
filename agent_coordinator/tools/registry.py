"""
Tool Registry - the set of tools one agent may call.

Each agent owns its own registry; tools are looked up purely by name.
"""

from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Callable, Iterator, Mapping, Optional

from ..cancellation import CancellationToken


class Tool(ABC):
    """
    Capability contract for anything an agent can call.

    Subclasses set ``name``, ``description`` and ``parameters``
    (param name -> constraint description) and implement ``run``.
    """

    name: str = ""
    description: str = ""
    parameters: Mapping[str, str] = MappingProxyType({})

    @abstractmethod
    def run(
        self, tool_input: dict, cancel: Optional[CancellationToken] = None
    ) -> str:
        """Execute the tool and return text for the model to read."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionTool(Tool):
    """Adapts a plain ``dict -> str`` callable into a Tool."""

    def __init__(
        self,
        name: str,
        description: str,
        parameters: dict[str, str],
        func: Callable[[dict], str],
    ):
        self.name = name
        self.description = description
        self.parameters = dict(parameters)
        self._func = func

    def run(
        self, tool_input: dict, cancel: Optional[CancellationToken] = None
    ) -> str:
        if cancel is not None:
            cancel.raise_if_cancelled()
        return str(self._func(tool_input))


class ToolRegistry:
    """Name-indexed tools available to a single agent."""

    def __init__(self, tools: Optional[list[Tool]] = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """
        Add a tool.

        Raises:
            ValueError: If the tool has no name or the name is taken.
        """
        if not tool.name:
            raise ValueError("Tool must have a name")
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self._tools.get(name)

    def names(self) -> list[str]:
        """Registered tool names in registration order."""
        return list(self._tools)

    def all_tools(self) -> dict[str, Tool]:
        """Get a copy of all registered tools."""
        return self._tools.copy()

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)
