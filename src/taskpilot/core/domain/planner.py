"""
Planner

Turns a multi-step task into a persisted Plan with one LLM call.

The model is asked for the Plan JSON shape directly. Its reply is parsed with
the tolerant extractor and every Step is normalized: status PENDING, attempts
reset, defaults for tool, success criterion and error handling. A reply
without an extractable object or without a non-empty ``steps`` array is a
planning failure; no placeholder plan is ever produced.
"""

from typing import Any

import structlog

from taskpilot.core.domain.errors import PlanningError, PlanPersistenceError
from taskpilot.core.domain.event_sink import EventSink
from taskpilot.core.domain.events import Mode
from taskpilot.core.domain.models import (
    DEFAULT_MAX_ATTEMPTS,
    PLAN_ID_PATTERN,
    Plan,
    Step,
    StepStatus,
    new_plan_id,
)
from taskpilot.core.interfaces.llm import LLMProviderProtocol
from taskpilot.core.interfaces.persistence import PlanStoreProtocol
from taskpilot.core.prompts.agent_prompts import PLANNER_SYSTEM_PROMPT, build_planning_prompt
from taskpilot.core.utils.json_extract import parse_json_object


class Planner:
    def __init__(
        self,
        llm_provider: LLMProviderProtocol,
        plan_store: PlanStoreProtocol,
        tool_names: list[str],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        llm_options: dict[str, Any] | None = None,
    ):
        """
        Args:
            llm_provider: Chat completion capability
            plan_store: Where created plans are persisted
            tool_names: Tools the model may assign to steps
            max_attempts: Attempt budget given to every new step
            llm_options: Options passed through to the chat call
        """
        self.llm_provider = llm_provider
        self.plan_store = plan_store
        self.tool_names = tool_names
        self.max_attempts = max_attempts
        self.llm_options = llm_options or {}
        self.logger = structlog.get_logger().bind(component="planner")

    async def create_plan(self, task: str, sink: EventSink | None = None) -> Plan:
        """
        Produce, persist and return a Plan for ``task``.

        Emits PLAN events with status CREATING, then CREATED or FAILED.

        Raises:
            PlanningError: If the reply holds no usable plan, or the provider fails
        """
        if sink is not None:
            await sink.emit(Mode.PLAN, task=task, status="CREATING")

        try:
            plan = await self._request_plan(task)
        except PlanningError as exc:
            await self._report_failure(task, exc, sink)
            raise
        except Exception as exc:
            error = PlanningError(f"Planning failed: {exc}")
            await self._report_failure(task, error, sink)
            raise error from exc

        try:
            await self.plan_store.save_plan(plan)
        except PlanPersistenceError as exc:
            self.logger.error("plan_save_failed", plan_id=plan.plan_id, error=str(exc))

        self.logger.info("plan_created", plan_id=plan.plan_id, steps=len(plan.steps))
        if sink is not None:
            await sink.emit(
                Mode.PLAN,
                task=task,
                status="CREATED",
                plan={
                    "id": plan.plan_id,
                    "steps": len(plan.steps),
                    "strategy": plan.overall_strategy,
                    "risks": plan.risk_assessment,
                },
            )
        return plan

    async def _request_plan(self, task: str) -> Plan:
        messages = [
            {"role": "system", "content": PLANNER_SYSTEM_PROMPT},
            {"role": "user", "content": build_planning_prompt(task, self.tool_names)},
        ]
        raw = await self.llm_provider.chat(messages, self.llm_options)

        data = parse_json_object(raw)
        if data is None:
            raise PlanningError("Failed to extract valid JSON plan from model response")

        raw_steps = data.get("steps")
        if not isinstance(raw_steps, list) or not raw_steps:
            raise PlanningError("Invalid plan structure: missing or empty steps array")

        return self.normalize(data, task)

    def normalize(self, data: dict[str, Any], task: str) -> Plan:
        """Build a fresh Plan from model JSON, resetting all execution state."""
        steps: list[Step] = []
        for index, raw in enumerate(data["steps"], start=1):
            raw = raw if isinstance(raw, dict) else {"description": str(raw)}
            step = Step.from_dict(raw, index)
            step.description = step.description or f"Step {index}"
            step.status = StepStatus.PENDING
            step.attempts = 0
            step.max_attempts = self.max_attempts
            step.started_at = step.completed_at = step.failed_at = step.skipped_at = None
            step.result = None
            step.error = None
            step.estimated_time = step.estimated_time or "unknown"
            steps.append(step)

        plan_id = str(data.get("plan_id") or "")
        if not PLAN_ID_PATTERN.match(plan_id):
            plan_id = new_plan_id()

        return Plan(
            plan_id=plan_id,
            original_task=task,
            steps=steps,
            overall_strategy=str(data.get("overall_strategy") or ""),
            risk_assessment=str(data.get("risk_assessment") or ""),
            estimated_duration=data.get("estimated_duration"),
        )

    async def _report_failure(self, task: str, error: Exception, sink: EventSink | None) -> None:
        self.logger.error("plan_creation_failed", error=str(error))
        if sink is not None:
            await sink.emit(Mode.PLAN, task=task, status="FAILED", error=str(error))
