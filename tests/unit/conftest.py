"""Shared fixtures: scripted LLM stub, tool registries and file stores."""

import json
from typing import Any

import pytest

from taskpilot.infrastructure.persistence.file_plan_store import FilePlanStore
from taskpilot.infrastructure.persistence.file_session_store import FileSessionStore
from taskpilot.infrastructure.tools.registry import ToolRegistry, ToolSpec


class ScriptedLLM:
    """LLM stub returning fixed responses in call order.

    A response may be a string, a dict (sent as JSON text) or an exception
    instance (raised). Once the script is used up the last response repeats.
    """

    def __init__(self, responses: list[Any]):
        self.responses = list(responses)
        self.calls: list[list[dict[str, str]]] = []

    async def chat(self, messages, options=None) -> str:
        self.calls.append(messages)
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


def think(conclusion="CONTINUE", tool=None, parameters=None, output=None, analysis="thinking"):
    """Build a THINK response dict."""
    return {
        "analysis": analysis,
        "considerations": ["one"],
        "plan": "do it",
        "confidence": "high",
        "conclusion": conclusion,
        "nextAction": {"tool": tool, "parameters": parameters or {}} if tool else None,
        "output": output,
    }


@pytest.fixture
def scripted_llm():
    """Factory fixture: ``scripted_llm([...])`` returns a ScriptedLLM."""
    return ScriptedLLM


@pytest.fixture
def think_response():
    return think


@pytest.fixture
def tool_calls():
    """Records every invocation of the test tools."""
    return []


@pytest.fixture
def registry(tool_calls):
    """Registry with a plain tool ``echo``, a terminal tool ``lookup`` and ``fail``."""

    async def echo(text: str = ""):
        tool_calls.append(("echo", text))
        return {"success": True, "echo": text}

    async def lookup(key: str):
        tool_calls.append(("lookup", key))
        return {"success": True, "value": f"value-of-{key}"}

    async def fail():
        tool_calls.append(("fail", None))
        return {"success": False, "error": "Command failed with code 1"}

    registry = ToolRegistry(
        [
            ToolSpec(
                name="echo",
                description="Echo text back",
                handler=echo,
                parameters_schema={
                    "type": "object",
                    "properties": {"text": {"type": "string"}},
                    "required": [],
                },
            ),
            ToolSpec(
                name="lookup",
                description="Look a key up",
                handler=lookup,
                parameters_schema={
                    "type": "object",
                    "properties": {"key": {"type": "string"}},
                    "required": ["key"],
                },
                terminal=True,
            ),
            ToolSpec(name="fail", description="Always fails", handler=fail),
        ]
    )
    registry.validate()
    return registry


@pytest.fixture
def session_store(tmp_path):
    return FileSessionStore(tmp_path / "sessions", max_lines=1000)


@pytest.fixture
def plan_store(tmp_path):
    return FilePlanStore(tmp_path / "plans")
