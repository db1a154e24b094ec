"""
Tests for the CLI commands.

Every invocation points ``--config`` at a YAML file whose workspace lives in
tmp_path; the LLM provider built by the factory is replaced by a scripted stub.
"""

import asyncio
import json
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from taskpilot.api.cli.main import app
from taskpilot.application.factory import AgentFactory
from taskpilot.core.domain.models import Plan, Step, StepStatus
from taskpilot.infrastructure.persistence.file_plan_store import FilePlanStore
from taskpilot.infrastructure.persistence.file_session_store import FileSessionStore

SINGLE_STEP = {"isMultiStep": False, "reasoning": "simple", "complexity": "low", "estimatedSteps": 1}


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace(tmp_path):
    return tmp_path / "ws"


@pytest.fixture
def config_file(tmp_path, workspace):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"workspace_dir": str(workspace)}), encoding="utf-8")
    return path


@pytest.fixture
def invoke(runner, config_file):
    def _invoke(*args, llm=None, input=None):
        with patch.object(AgentFactory, "create_llm_provider", return_value=llm):
            return runner.invoke(app, ["--config", str(config_file), *args], input=input)

    return _invoke


def json_events(output: str) -> list[dict]:
    events = []
    for line in output.splitlines():
        if line.startswith("{"):
            data = json.loads(line)
            if "mode" in data:
                events.append(data)
    return events


class TestMainCLI:
    def test_help_lists_commands(self, runner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "chat", "plans", "sessions", "config", "version"):
            assert command in result.stdout

    def test_version(self, runner):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestRunCommand:
    def test_json_mode_streams_events(self, invoke, scripted_llm, think_response):
        llm = scripted_llm([SINGLE_STEP, think_response("COMPLETE", output="done")])

        result = invoke("run", "say done", "--json", "--session", "cli-1", llm=llm)

        assert result.exit_code == 0
        events = json_events(result.stdout)
        assert [e["mode"] for e in events] == ["ANALYZE", "SINGLE_STEP", "START", "THINK", "OUTPUT"]
        assert events[-1]["finalOutput"] == "done"
        assert all("timestamp" in e for e in events)

    def test_fatal_error_exits_non_zero(self, invoke, scripted_llm):
        llm = scripted_llm([SINGLE_STEP, ValueError("model exploded")])

        result = invoke("run", "break", "--json", llm=llm)

        assert result.exit_code == 1
        events = json_events(result.stdout)
        assert events[-1]["mode"] == "FATAL_ERROR"
        assert events[-1]["error"]["message"] == "model exploded"
        assert "ERROR" in [e["mode"] for e in events]

    def test_human_mode_renders_output(self, invoke, scripted_llm, think_response):
        llm = scripted_llm([SINGLE_STEP, think_response("COMPLETE", output="rendered answer")])

        result = invoke("run", "answer me", "--no-interactive", llm=llm)

        assert result.exit_code == 0
        assert "ANALYZE" in result.stdout
        assert "rendered answer" in result.stdout

    def test_events_are_logged_to_session(self, invoke, scripted_llm, think_response, workspace):
        llm = scripted_llm([SINGLE_STEP, think_response("COMPLETE", output="done")])

        invoke("run", "say done", "--json", "--session", "logged", llm=llm)

        store = FileSessionStore(workspace / "sessions")
        entries = asyncio.run(store.read_entries("logged"))
        assert entries[-1]["mode"] == "OUTPUT"


class TestPlansCommand:
    @pytest.fixture
    def saved_plan(self, workspace):
        plan = Plan(
            plan_id="plan-cli",
            original_task="two steps",
            steps=[
                Step(id=1, description="first", status=StepStatus.COMPLETED, attempts=1),
                Step(id=2, description="second"),
            ],
        )
        asyncio.run(FilePlanStore(workspace / "plans").save_plan(plan))
        return plan

    def test_list_empty(self, invoke):
        result = invoke("plans", "list")
        assert result.exit_code == 0
        assert "No plans found" in result.stdout

    def test_list_json(self, invoke, saved_plan):
        result = invoke("plans", "list", "--format", "json")
        assert result.exit_code == 0
        listing = json.loads(result.stdout)
        assert listing[0]["id"] == "plan-cli"
        assert listing[0]["status"] == "IN_PROGRESS"

    def test_show(self, invoke, saved_plan):
        result = invoke("plans", "show", "plan-cli")
        assert result.exit_code == 0
        assert "two steps" in result.stdout
        assert "IN_PROGRESS" in result.stdout

    def test_show_missing(self, invoke):
        result = invoke("plans", "show", "plan-nothing")
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_resume(self, invoke, saved_plan, scripted_llm, think_response, workspace):
        llm = scripted_llm([think_response("COMPLETE", output="second done")])

        result = invoke("plans", "resume", "plan-cli", "--json", llm=llm)

        assert result.exit_code == 0
        events = json_events(result.stdout)
        assert events[0]["mode"] == "RESUME"
        assert events[-1]["finalOutput"]["status"] == "COMPLETED_SUCCESSFULLY"
        plan = asyncio.run(FilePlanStore(workspace / "plans").load_plan("plan-cli"))
        assert [s.status for s in plan.steps] == [StepStatus.COMPLETED, StepStatus.COMPLETED]

    def test_resume_missing_plan(self, invoke):
        result = invoke("plans", "resume", "plan-nothing", "--json")
        assert result.exit_code == 1
        assert json_events(result.stdout)[-1]["mode"] == "FATAL_ERROR"


class TestSessionsCommand:
    @pytest.fixture
    def store(self, workspace):
        store = FileSessionStore(workspace / "sessions")
        for entry in (
            {"mode": "START", "task": "count zebrafish"},
            {"mode": "THINK", "analysis": "unrelated"},
            {"mode": "OUTPUT", "finalOutput": "zebrafish counted"},
        ):
            asyncio.run(store.append_entry("sess-1", entry))
        return store

    def test_list(self, invoke, store):
        result = invoke("sessions", "list")
        assert result.exit_code == 0
        assert "sess-1" in result.stdout

    def test_show(self, invoke, store):
        result = invoke("sessions", "show", "sess-1")
        assert result.exit_code == 0
        assert "START" in result.stdout
        assert "OUTPUT" in result.stdout

    def test_show_missing(self, invoke):
        assert invoke("sessions", "show", "nobody").exit_code == 1

    def test_search(self, invoke, store):
        result = invoke("sessions", "search", "sess-1", "zebrafish")
        assert result.exit_code == 0
        assert "1.00" in result.stdout

    def test_clear(self, invoke, store):
        result = invoke("sessions", "clear", "sess-1", "--yes")
        assert result.exit_code == 0
        assert asyncio.run(store.read_entries("sess-1")) == []


class TestConfigCommand:
    def test_show_json_masks_api_key(self, invoke, workspace):
        with patch.dict("os.environ", {"TASKPILOT_API_KEY": "sk-very-secret"}):
            result = invoke("config", "show", "--output", "json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["workspace_dir"] == str(workspace)
        assert data["api_key"] == "********"

    def test_set_writes_config_file(self, invoke, config_file):
        result = invoke("config", "set", "max_iterations", "12")

        assert result.exit_code == 0
        saved = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        assert saved["max_iterations"] == 12

    def test_set_unknown_key(self, invoke):
        result = invoke("config", "set", "colour", "blue")
        assert result.exit_code == 1
        assert "Unknown configuration key" in result.stdout

    def test_set_invalid_value(self, invoke):
        assert invoke("config", "set", "max_iterations", "lots").exit_code == 1

    def test_path(self, invoke, config_file):
        result = invoke("config", "path")
        assert result.exit_code == 0
        assert str(config_file) in result.stdout


class TestChatCommand:
    def test_chat_runs_tasks_until_exit(self, invoke, scripted_llm, think_response):
        llm = scripted_llm([SINGLE_STEP, think_response("COMPLETE", output="hello there")])

        result = invoke("chat", "--session", "chat-1", llm=llm, input="say hello\nexit\n")

        assert result.exit_code == 0
        assert "hello there" in result.stdout
        assert "Goodbye" in result.stdout
