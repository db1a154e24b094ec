"""Tool registry protocol as seen by the Agent Loop."""

from typing import Any, Protocol


class ToolRegistryProtocol(Protocol):
    def names(self) -> list[str]:
        """Registered tool names, in registration order."""
        ...

    def describe(self) -> list[dict[str, Any]]:
        """Name, description and parameter schema for every tool."""
        ...

    def is_terminal(self, name: str) -> bool:
        """Whether a successful call to ``name`` completes the task by itself."""
        ...

    async def invoke(self, name: str, parameters: Any) -> Any:
        """
        Run a tool.

        Raises:
            UnknownToolError: If ``name`` is not registered
            ToolParameterError: If ``parameters`` is not an object or misses
                required keys
        """
        ...
