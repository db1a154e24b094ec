"""
Core Domain Models

This module defines the data the orchestration engine works on:
- Context: per-loop scratch state (task, history, observations)
- Plan / Step: the persisted decomposition of a multi-step task
- TaskClassification: the classifier's single/multi-step verdict
- FailureDecision / RunOptions: inputs to plan coordination

Step status changes go through ``Step.transition`` which enforces the legal
edge table. A Plan serializes to one JSON document (``to_dict``) and is
rebuilt with ``Plan.from_dict``; the same shape is what the planner asks the
model to produce, so loading tolerates missing and loosely typed fields.
"""

import json
import re
import secrets
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from taskpilot.core.domain.errors import IllegalTransitionError
from taskpilot.core.domain.events import Observation, utc_now_iso

DEFAULT_TOOL = "executeCommand"
DEFAULT_SUCCESS_CRITERIA = "Step completes without error"
DEFAULT_ERROR_HANDLING = "Retry once, then prompt user"
DEFAULT_MAX_ATTEMPTS = 3

PLAN_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")


class StepStatus(str, Enum):
    PENDING = "PENDING"
    EXECUTING = "EXECUTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


LEGAL_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({StepStatus.EXECUTING}),
    StepStatus.EXECUTING: frozenset(
        {StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED}
    ),
    StepStatus.FAILED: frozenset({StepStatus.PENDING}),
    StepStatus.COMPLETED: frozenset(),
    StepStatus.SKIPPED: frozenset(),
}

TERMINAL_STEP_STATUSES = frozenset(
    {StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED}
)


def _as_count(value: Any, default: int, minimum: int = 0) -> int:
    """Loose integer from stored JSON; unparseable or too-small values give ``default``."""
    try:
        count = int(value)
    except (TypeError, ValueError):
        return default
    return count if count >= minimum else default


def parse_step_status(value: Any) -> StepStatus:
    """Parse loose status strings, falling back to PENDING.

    Accepts aliases like "in_progress" -> EXECUTING and "done" -> COMPLETED.
    """
    text = str(value or "").strip().replace("-", "_").replace(" ", "_").upper()
    alias = {
        "OPEN": "PENDING",
        "TODO": "PENDING",
        "IN_PROGRESS": "EXECUTING",
        "RUNNING": "EXECUTING",
        "DONE": "COMPLETED",
        "COMPLETE": "COMPLETED",
        "FAIL": "FAILED",
    }
    try:
        return StepStatus[alias.get(text, text)]
    except KeyError:
        return StepStatus.PENDING


class PlanStatus(str, Enum):
    """Aggregate outcome of a coordinated plan run."""

    COMPLETED_SUCCESSFULLY = "COMPLETED_SUCCESSFULLY"
    COMPLETED_WITH_FAILURES = "COMPLETED_WITH_FAILURES"
    ABORTED = "ABORTED"


class FailureDecision(str, Enum):
    RETRY = "retry"
    SKIP = "skip"
    CONTINUE_AS_FAILED = "continueAsFailed"
    ABORT = "abort"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class TaskClassification:
    is_multi_step: bool
    reasoning: str
    complexity: Complexity = Complexity.LOW
    estimated_steps: int = 1

    @classmethod
    def default(cls, reasoning: str = "Analysis failed") -> "TaskClassification":
        return cls(
            is_multi_step=False,
            reasoning=reasoning,
            complexity=Complexity.LOW,
            estimated_steps=1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "isMultiStep": self.is_multi_step,
            "reasoning": self.reasoning,
            "complexity": self.complexity.value,
            "estimatedSteps": self.estimated_steps,
        }


@dataclass
class RunOptions:
    """Per-run options passed from the CLI to the coordinator."""

    session_id: str | None = None
    interactive: bool = False


@dataclass
class Context:
    """
    Scratch state for one Agent Loop invocation.

    Attributes:
        original_task: The task (or reframed step) being worked on
        history: Per-iteration action and observation records
        observations: Observations fed back into subsequent THINK prompts
        completed: True once the loop reached a COMPLETE conclusion
        final_output: Value reported in the OUTPUT event
        iteration: Number of THINK phases started
    """

    original_task: str
    history: list[dict[str, Any]] = field(default_factory=list)
    observations: list[Observation] = field(default_factory=list)
    completed: bool = False
    final_output: Any = None
    iteration: int = 0

    @property
    def failed_observation_count(self) -> int:
        return sum(1 for obs in self.observations if not obs.action_success)


@dataclass
class Step:
    id: int
    description: str
    tool: str = DEFAULT_TOOL
    parameters: dict[str, Any] = field(default_factory=dict)
    success_criteria: str = DEFAULT_SUCCESS_CRITERIA
    error_handling: str = DEFAULT_ERROR_HANDLING
    status: StepStatus = StepStatus.PENDING
    dependencies: list[int] = field(default_factory=list)
    estimated_time: str | None = None
    attempts: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    started_at: str | None = None
    completed_at: str | None = None
    failed_at: str | None = None
    skipped_at: str | None = None
    result: Any = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STEP_STATUSES

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def transition(self, target: StepStatus) -> None:
        """
        Move to ``target`` along a legal edge, stamping the matching timestamp.

        Entering EXECUTING counts an attempt. A FAILED -> PENDING re-arm is
        only allowed while attempts remain; exhausted steps must have their
        attempts reset first (see ``reset_attempts``).

        Raises:
            IllegalTransitionError: If the edge is not in LEGAL_TRANSITIONS,
                or a re-arm is attempted with no attempts left
        """
        if target not in LEGAL_TRANSITIONS[self.status]:
            raise IllegalTransitionError(self.id, self.status.value, target.value)
        if target is StepStatus.PENDING and self.attempts_exhausted:
            raise IllegalTransitionError(self.id, self.status.value, target.value)

        self.status = target
        timestamp = utc_now_iso()
        if target is StepStatus.EXECUTING:
            self.attempts += 1
            self.started_at = self.started_at or timestamp
            self.error = None
        elif target is StepStatus.COMPLETED:
            self.completed_at = timestamp
        elif target is StepStatus.FAILED:
            self.failed_at = timestamp
        elif target is StepStatus.SKIPPED:
            self.skipped_at = timestamp

    def reset_attempts(self) -> None:
        self.attempts = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "tool": self.tool,
            "parameters": self.parameters,
            "success_criteria": self.success_criteria,
            "error_handling": self.error_handling,
            "status": self.status.value,
            "dependencies": self.dependencies,
            "estimated_time": self.estimated_time,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "failed_at": self.failed_at,
            "skipped_at": self.skipped_at,
            "result": self.result,
            "error": self.error,
        }

    @staticmethod
    def from_dict(raw: dict[str, Any], index: int = 1) -> "Step":
        """Build a Step from stored or model-produced JSON with sane fallbacks."""
        try:
            step_id = int(raw.get("id", index))
        except (TypeError, ValueError):
            step_id = index

        parameters = raw.get("parameters")
        dependencies = raw.get("dependencies") or []

        return Step(
            id=step_id,
            description=str(raw.get("description", "")).strip(),
            tool=str(raw.get("tool") or DEFAULT_TOOL),
            parameters=parameters if isinstance(parameters, dict) else {},
            success_criteria=str(raw.get("success_criteria") or DEFAULT_SUCCESS_CRITERIA),
            error_handling=str(raw.get("error_handling") or DEFAULT_ERROR_HANDLING),
            status=parse_step_status(raw.get("status")),
            dependencies=[d for d in dependencies if isinstance(d, int)],
            estimated_time=raw.get("estimated_time"),
            attempts=_as_count(raw.get("attempts"), 0),
            max_attempts=_as_count(raw.get("max_attempts"), DEFAULT_MAX_ATTEMPTS, minimum=1),
            started_at=raw.get("started_at"),
            completed_at=raw.get("completed_at"),
            failed_at=raw.get("failed_at"),
            skipped_at=raw.get("skipped_at"),
            result=raw.get("result"),
            error=raw.get("error"),
        )


def new_plan_id() -> str:
    return f"plan-{uuid.uuid4().hex[:12]}"


def new_session_id() -> str:
    """Session id of the form ``<epoch-millis>-<6 url-safe chars>``."""
    return f"{int(time.time() * 1000)}-{secrets.token_urlsafe(6)[:6]}"


@dataclass
class Plan:
    original_task: str
    steps: list[Step]
    plan_id: str = field(default_factory=new_plan_id)
    created_at: str = field(default_factory=utc_now_iso)
    overall_strategy: str = ""
    risk_assessment: str = ""
    estimated_duration: str | None = None

    @property
    def is_finished(self) -> bool:
        return all(step.is_terminal for step in self.steps)

    def resume_index(self) -> int:
        """Index of the first step still needing work, or len(steps)."""
        for index, step in enumerate(self.steps):
            if step.status not in (StepStatus.COMPLETED, StepStatus.SKIPPED):
                return index
        return len(self.steps)

    def status_label(self) -> str:
        """Coarse listing status: FAILED, COMPLETED, IN_PROGRESS or PENDING."""
        statuses = [step.status for step in self.steps]
        if StepStatus.FAILED in statuses:
            return "FAILED"
        if statuses and all(s in TERMINAL_STEP_STATUSES for s in statuses):
            return "COMPLETED"
        if any(s is not StepStatus.PENDING for s in statuses):
            return "IN_PROGRESS"
        return "PENDING"

    def count(self, status: StepStatus) -> int:
        return sum(1 for step in self.steps if step.status is status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan_id": self.plan_id,
            "original_task": self.original_task,
            "created_at": self.created_at,
            "estimated_duration": self.estimated_duration,
            "overall_strategy": self.overall_strategy,
            "risk_assessment": self.risk_assessment,
            "steps": [step.to_dict() for step in self.steps],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2, default=str)

    @staticmethod
    def from_dict(data: dict[str, Any], original_task: str | None = None) -> "Plan":
        """
        Create a Plan from stored JSON or decoded model output.

        Every step is normalized (status, attempts, defaults). A fresh
        ``plan_id`` is assigned when none is present.
        """
        raw_steps = data.get("steps") or []
        steps = [
            Step.from_dict(raw, index)
            for index, raw in enumerate(raw_steps, start=1)
            if isinstance(raw, dict)
        ]
        return Plan(
            plan_id=str(data.get("plan_id") or new_plan_id()),
            original_task=str(data.get("original_task") or original_task or ""),
            created_at=str(data.get("created_at") or utc_now_iso()),
            steps=steps,
            overall_strategy=str(data.get("overall_strategy") or ""),
            risk_assessment=str(data.get("risk_assessment") or ""),
            estimated_duration=data.get("estimated_duration"),
        )
