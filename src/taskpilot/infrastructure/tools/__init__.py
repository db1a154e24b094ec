"""Tool registry and builtin tools."""

from taskpilot.infrastructure.tools.filesystem import filesystem_tools
from taskpilot.infrastructure.tools.registry import ToolRegistry, ToolSpec
from taskpilot.infrastructure.tools.shell import shell_tools


def build_default_registry(command_timeout: float = 30.0) -> ToolRegistry:
    """Registry holding every builtin tool, validated."""
    registry = ToolRegistry(shell_tools(command_timeout) + filesystem_tools())
    registry.validate()
    return registry


__all__ = ["ToolRegistry", "ToolSpec", "build_default_registry"]
