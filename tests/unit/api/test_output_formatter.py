"""Tests for EventRenderer, OutputFormatter and the prompting failure policy."""

import json
from io import StringIO
from unittest.mock import patch

import pytest
from rich.console import Console

from taskpilot.api.cli.interactive_policy import PromptFailurePolicy
from taskpilot.api.cli.output_formatter import EventRenderer, OutputFormat, OutputFormatter
from taskpilot.core.domain.events import Mode, ModeEvent
from taskpilot.core.domain.models import FailureDecision, Plan, Step


@pytest.fixture
def buffer():
    return StringIO()


@pytest.fixture
def console(buffer):
    return Console(file=buffer, width=200, force_terminal=False, color_system=None)


class TestEventRenderer:
    def test_json_mode_writes_one_object_per_line(self, console, buffer):
        renderer = EventRenderer(console, json_mode=True)

        renderer(ModeEvent(Mode.START, {"task": "a very long task " * 20}))
        renderer(ModeEvent(Mode.OBSERVE, {"status": "CONTINUE"}))

        lines = buffer.getvalue().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["mode"] == "START"
        assert json.loads(lines[1])["status"] == "CONTINUE"

    def test_text_mode_uses_mode_handlers(self, console, buffer):
        renderer = EventRenderer(console)

        renderer(ModeEvent(Mode.ACTION, {"action": {"tool": "echo", "durationMs": 3}, "success": True}))
        renderer(ModeEvent(Mode.ERROR, {"error": {"message": "boom", "recoverable": True}}))
        renderer(ModeEvent(Mode.OUTPUT, {"completed": True, "finalOutput": "the answer"}))

        text = buffer.getvalue()
        assert "ACTION echo ok" in text
        assert "(recoverable) boom" in text
        assert "the answer" in text

    def test_plan_progress(self, console, buffer):
        renderer = EventRenderer(console)

        renderer(ModeEvent(Mode.PLAN, {"status": "CREATED", "plan": {"id": "plan-1", "steps": 2}}))
        renderer(
            ModeEvent(
                Mode.EXECUTE_PLAN,
                {
                    "status": "STEP_STARTING",
                    "plan": {"currentStep": 1, "totalSteps": 2},
                    "step": {"description": "fetch", "attempt": 1, "maxAttempts": 3},
                },
            )
        )

        text = buffer.getvalue()
        assert "created plan-1 with 2 steps" in text
        assert "STEP 1/2 fetch (attempt 1/3)" in text

    def test_render_fatal_json(self, console, buffer):
        EventRenderer(console, json_mode=True).render_fatal(RuntimeError("gone"))

        payload = json.loads(buffer.getvalue())
        assert payload["mode"] == "FATAL_ERROR"
        assert payload["error"] == {"message": "gone", "type": "RuntimeError"}


class TestOutputFormatter:
    def test_json_output(self, console, buffer):
        OutputFormatter(console).format_data([{"id": "x", "path": "/tmp/" + "d" * 150}], OutputFormat.JSON)

        assert json.loads(buffer.getvalue())[0]["id"] == "x"

    def test_table_output(self, console, buffer):
        OutputFormatter(console).format_data([{"plan_id": "plan-7", "status": "FAILED"}], OutputFormat.TABLE)

        text = buffer.getvalue()
        assert "Plan Id" in text
        assert "plan-7" in text

    def test_empty_list(self, console, buffer):
        OutputFormatter(console).format_data([], OutputFormat.TABLE, title="Plans")
        assert "No plans found" in buffer.getvalue()

    def test_shorten(self):
        assert OutputFormatter.shorten("abcdef", limit=3) == "abc..."
        assert OutputFormatter.shorten({"a": 1}) == '{"a": 1}'


class TestPromptFailurePolicy:
    @pytest.fixture
    def plan(self):
        return Plan(plan_id="plan-p", original_task="t", steps=[Step(id=1, description="first")])

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("answer", "decision"),
        [
            ("retry", FailureDecision.RETRY),
            ("skip", FailureDecision.SKIP),
            ("continue", FailureDecision.CONTINUE_AS_FAILED),
            ("abort", FailureDecision.ABORT),
        ],
    )
    async def test_exhausted_answers(self, console, plan, answer, decision):
        policy = PromptFailurePolicy(console)

        with patch("taskpilot.api.cli.interactive_policy.Prompt.ask", return_value=answer):
            assert await policy.on_step_exhausted(plan, plan.steps[0]) is decision

    @pytest.mark.asyncio
    async def test_error_prompt_offers_no_continue(self, console, buffer, plan):
        policy = PromptFailurePolicy(console)

        with patch("taskpilot.api.cli.interactive_policy.Prompt.ask", return_value="skip") as ask:
            decision = await policy.on_step_error(plan, plan.steps[0], RuntimeError("disk full"))

        assert decision is FailureDecision.SKIP
        assert ask.call_args.kwargs["choices"] == ["retry", "skip", "abort"]
        assert ask.call_args.kwargs["default"] == "abort"
        assert "disk full" in buffer.getvalue()
