"""Unit tests for the explicit tool registry."""

import pytest

from taskpilot.core.domain.errors import ToolParameterError, ToolRegistrationError, UnknownToolError
from taskpilot.infrastructure.tools import build_default_registry
from taskpilot.infrastructure.tools.registry import ToolRegistry, ToolSpec


async def noop(**kwargs):
    return {"success": True, **kwargs}


def test_duplicate_names_are_rejected():
    registry = ToolRegistry([ToolSpec(name="a", description="", handler=noop)])
    with pytest.raises(ToolRegistrationError):
        registry.register(ToolSpec(name="a", description="", handler=noop))


def test_validate_rejects_sync_handler():
    def sync_handler():
        return {}

    registry = ToolRegistry([ToolSpec(name="sync", description="", handler=sync_handler)])
    with pytest.raises(ToolRegistrationError, match="async"):
        registry.validate()


def test_validate_rejects_undeclared_required_parameter():
    spec = ToolSpec(
        name="bad",
        description="",
        handler=noop,
        parameters_schema={"type": "object", "properties": {}, "required": ["path"]},
    )
    with pytest.raises(ToolRegistrationError, match="path"):
        ToolRegistry([spec]).validate()


def test_validate_rejects_non_object_schema():
    spec = ToolSpec(name="bad", description="", handler=noop, parameters_schema={"type": "string"})
    with pytest.raises(ToolRegistrationError):
        ToolRegistry([spec]).validate()


@pytest.mark.asyncio
async def test_invoke_passes_parameters_as_keywords(registry, tool_calls):
    result = await registry.invoke("lookup", {"key": "k1"})
    assert result == {"success": True, "value": "value-of-k1"}
    assert tool_calls == [("lookup", "k1")]


@pytest.mark.asyncio
async def test_invoke_unknown_tool(registry):
    with pytest.raises(UnknownToolError):
        await registry.invoke("missing", {})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "parameters,message",
    [
        (["k"], "must be an object"),
        ({}, "missing required"),
        ({"key": "k", "extra": 1}, "unexpected"),
    ],
)
async def test_invoke_rejects_bad_parameters(registry, parameters, message):
    with pytest.raises(ToolParameterError, match=message):
        await registry.invoke("lookup", parameters)


def test_describe_and_terminal_flags(registry):
    described = {tool["name"]: tool for tool in registry.describe()}
    assert set(described) == {"echo", "lookup", "fail"}
    assert described["lookup"]["parameters"]["required"] == ["key"]
    assert registry.is_terminal("lookup")
    assert not registry.is_terminal("echo")
    assert not registry.is_terminal("missing")


def test_default_registry_holds_builtins():
    registry = build_default_registry()
    assert registry.names() == [
        "executeCommand",
        "createFile",
        "writeFile",
        "readFile",
        "listDirectory",
        "searchFiles",
        "getSystemInfo",
    ]
    assert registry.is_terminal("readFile")
    assert not registry.is_terminal("executeCommand")
