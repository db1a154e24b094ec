"""
Tool Registry

Explicit registration table of tools. Each entry declares its name,
description, JSON parameter schema and async handler up front; the table is
validated once at startup instead of probing handler shapes on every call.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

from taskpilot.core.domain.errors import (
    ToolParameterError,
    ToolRegistrationError,
    UnknownToolError,
)

ToolHandler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class ToolSpec:
    """
    One registered tool.

    Attributes:
        name: Name the model uses in ``nextAction.tool``
        description: One-line description shown in the system prompt
        handler: Async callable invoked with the parameters as keyword arguments
        parameters_schema: JSON schema of type ``object``
        terminal: A successful call answers the task on its own
    """

    name: str
    description: str
    handler: ToolHandler
    parameters_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )
    terminal: bool = False

    @property
    def required(self) -> list[str]:
        return list(self.parameters_schema.get("required", []))

    @property
    def properties(self) -> dict[str, Any]:
        return dict(self.parameters_schema.get("properties", {}))


class ToolRegistry:
    def __init__(self, specs: list[ToolSpec] | None = None):
        self._specs: dict[str, ToolSpec] = {}
        self.logger = structlog.get_logger().bind(component="tool_registry")
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            raise ToolRegistrationError(f"Duplicate tool name: {spec.name}")
        self._specs[spec.name] = spec

    def validate(self) -> None:
        """
        Check every entry once.

        Raises:
            ToolRegistrationError: If a name is empty, a handler is not a
                coroutine function, or a schema is malformed
        """
        for name, spec in self._specs.items():
            if not name or not name.strip():
                raise ToolRegistrationError("Tool name must not be empty")
            if not inspect.iscoroutinefunction(spec.handler):
                raise ToolRegistrationError(f"Tool {name}: handler must be an async function")
            schema = spec.parameters_schema
            if schema.get("type") != "object" or not isinstance(schema.get("properties", {}), dict):
                raise ToolRegistrationError(f"Tool {name}: schema must be an object schema")
            missing = set(spec.required) - set(spec.properties)
            if missing:
                raise ToolRegistrationError(
                    f"Tool {name}: required parameters not declared: {sorted(missing)}"
                )
        self.logger.debug("tools_validated", tools=self.names())

    def get(self, name: str) -> ToolSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def names(self) -> list[str]:
        return list(self._specs)

    def describe(self) -> list[dict[str, Any]]:
        return [
            {"name": spec.name, "description": spec.description, "parameters": spec.parameters_schema}
            for spec in self._specs.values()
        ]

    def is_terminal(self, name: str) -> bool:
        spec = self._specs.get(name)
        return spec is not None and spec.terminal

    async def invoke(self, name: str, parameters: Any) -> Any:
        spec = self.get(name)

        if not isinstance(parameters, dict):
            raise ToolParameterError(name, "parameters must be an object")

        missing = [key for key in spec.required if key not in parameters]
        if missing:
            raise ToolParameterError(name, f"missing required parameters: {', '.join(missing)}")

        unexpected = [key for key in parameters if key not in spec.properties]
        if unexpected:
            raise ToolParameterError(name, f"unexpected parameters: {', '.join(unexpected)}")

        self.logger.debug("tool_invoked", tool=name, parameters=list(parameters))
        return await spec.handler(**parameters)
