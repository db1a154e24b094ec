"""
Plan Coordinator

Entry point for task execution. The coordinator:
1. Classifies the task (single vs multi-step)
2. Runs single-step tasks through the Agent Loop directly
3. For multi-step tasks, has the Planner create a Plan, then drives each
   Step through a step-scoped Agent Loop

Step lifecycle (see ``Step.transition`` for the legal edges):
- success: EXECUTING -> COMPLETED, advance
- failure with attempts left: EXECUTING -> FAILED -> PENDING, same index again
- failure with attempts exhausted, or a fatal loop error: ask the failure
  policy for retry, skip, continueAsFailed or abort

The Plan is persisted after every Step mutation. Resuming is just loading the
last persisted Plan and running it again: completed and skipped Steps are
never re-executed, failed ones are re-armed, and a Step found EXECUTING was
interrupted by a crash and is treated as failed.

Plans are assumed to have a single writer; two coordinators running the same
plan id concurrently can overwrite each other's updates.
"""

from datetime import datetime
from typing import Any

import structlog

from taskpilot.core.domain.agent_loop import LoopRunner
from taskpilot.core.domain.classifier import TaskClassifier
from taskpilot.core.domain.errors import PlanPersistenceError
from taskpilot.core.domain.event_sink import EventListener, EventSink
from taskpilot.core.domain.events import Mode, ModeEvent
from taskpilot.core.domain.models import (
    FailureDecision,
    Plan,
    PlanStatus,
    RunOptions,
    Step,
    StepStatus,
    new_session_id,
)
from taskpilot.core.domain.planner import Planner
from taskpilot.core.domain.policies import AbortOnFailurePolicy
from taskpilot.core.interfaces.persistence import PlanStoreProtocol, SessionStoreProtocol
from taskpilot.core.interfaces.policies import FailurePolicyProtocol
from taskpilot.core.prompts.agent_prompts import build_step_task

DEFAULT_STEP_MAX_ITERATIONS = 5
STEP_FAILURE_MESSAGE = "Step did not complete successfully"


class PlanCoordinator:
    """
    Drives tasks and Plans to a terminal state.

    All dependencies are injected. The failure policy answers both
    exhaustion and fatal-error decisions; ``interactive_policy`` replaces it
    for runs with ``RunOptions.interactive`` set.
    """

    def __init__(
        self,
        classifier: TaskClassifier,
        planner: Planner,
        loop_runner: LoopRunner,
        plan_store: PlanStoreProtocol,
        session_store: SessionStoreProtocol | None = None,
        failure_policy: FailurePolicyProtocol | None = None,
        interactive_policy: FailurePolicyProtocol | None = None,
        step_max_iterations: int = DEFAULT_STEP_MAX_ITERATIONS,
    ):
        self.classifier = classifier
        self.planner = planner
        self.loop_runner = loop_runner
        self.plan_store = plan_store
        self.session_store = session_store
        self.failure_policy = failure_policy or AbortOnFailurePolicy()
        self.interactive_policy = interactive_policy
        self.step_max_iterations = step_max_iterations
        self.logger = structlog.get_logger().bind(component="plan_coordinator")

    async def execute(
        self,
        task: str,
        options: RunOptions | None = None,
        listener: EventListener | None = None,
    ) -> ModeEvent:
        """
        Classify and execute ``task``.

        Args:
            task: Natural-language task
            options: Session id and interactivity for this run
            listener: Receives every Mode Event after it is logged

        Returns:
            The final OUTPUT Mode Event (the loop's for single-step tasks,
            a plan summary for multi-step tasks)

        Raises:
            PlanningError: If a multi-step task cannot be planned
            Exception: Fatal errors from the single-step loop
        """
        options = options or RunOptions()
        sink = self._sink(options, listener)
        self.logger.info("task_started", session_id=sink.session_id, task=task[:100])

        try:
            classification = await self.classifier.classify(task)
            await sink.emit(Mode.ANALYZE, task=task, analysis=classification.to_dict())

            if not classification.is_multi_step:
                await sink.emit(Mode.SINGLE_STEP, task=task, status="EXECUTING")
                return await self.loop_runner.run(
                    task, session_id=sink.session_id, listener=sink.listener
                )

            plan = await self.planner.create_plan(task, sink)
            return await self._run_plan(plan, sink, options)
        except Exception as exc:
            await self._report_error(sink, exc, "Task execution")
            raise

    async def resume_plan(
        self,
        plan_id: str,
        options: RunOptions | None = None,
        listener: EventListener | None = None,
    ) -> ModeEvent:
        """
        Continue a persisted Plan from its last saved state.

        Raises:
            PlanNotFoundError: If no plan with ``plan_id`` exists
        """
        options = options or RunOptions()
        sink = self._sink(options, listener)

        try:
            plan = await self.plan_store.load_plan(plan_id)
            self.logger.info("plan_resumed", plan_id=plan_id, resume_index=plan.resume_index())
            await sink.emit(
                Mode.RESUME,
                plan={
                    "id": plan.plan_id,
                    "originalTask": plan.original_task,
                    "totalSteps": len(plan.steps),
                    "pendingSteps": plan.count(StepStatus.PENDING),
                    "resumeFrom": plan.resume_index() + 1,
                },
            )
            return await self._run_plan(plan, sink, options)
        except Exception as exc:
            await self._report_error(sink, exc, f"Resuming plan {plan_id}")
            raise

    async def list_plans(self) -> list[dict[str, Any]]:
        plans = await self.plan_store.list_plans()
        return [
            {
                "id": plan.plan_id,
                "task": plan.original_task,
                "created": plan.created_at,
                "steps": len(plan.steps),
                "status": plan.status_label(),
            }
            for plan in plans
        ]

    async def show_plan(self, plan_id: str) -> dict[str, Any]:
        plan = await self.plan_store.load_plan(plan_id)
        return {**plan.to_dict(), "status": plan.status_label()}

    async def _run_plan(self, plan: Plan, sink: EventSink, options: RunOptions) -> ModeEvent:
        policy = self._policy_for(options)
        await sink.emit(
            Mode.EXECUTE_PLAN,
            status="STARTING",
            plan={
                "id": plan.plan_id,
                "totalSteps": len(plan.steps),
                "strategy": plan.overall_strategy,
            },
        )

        aborted = await self._execute_steps(plan, sink, policy)
        status = self.aggregate_status(plan, aborted)
        self.logger.info("plan_finished", plan_id=plan.plan_id, status=status.value)

        await sink.emit(
            Mode.EXECUTE_PLAN,
            status="ABORTED" if aborted else "COMPLETED",
            plan={"id": plan.plan_id, "status": status.value},
            results={
                "totalSteps": len(plan.steps),
                "completedSteps": plan.count(StepStatus.COMPLETED),
                "skippedSteps": plan.count(StepStatus.SKIPPED),
                "failedSteps": plan.count(StepStatus.FAILED),
            },
        )
        return await sink.emit(
            Mode.OUTPUT,
            task=plan.original_task,
            completed=status is PlanStatus.COMPLETED_SUCCESSFULLY,
            plan={"id": plan.plan_id, "totalSteps": len(plan.steps)},
            finalOutput={
                "planId": plan.plan_id,
                "status": status.value,
                "steps": [
                    {"id": step.id, "status": step.status.value, "result": step.result}
                    for step in plan.steps
                ],
            },
            summary=self.summarize(plan, status),
        )

    async def _execute_steps(
        self, plan: Plan, sink: EventSink, policy: FailurePolicyProtocol
    ) -> bool:
        """Run steps from the resume point. Returns True if the plan was aborted."""
        index = plan.resume_index()

        while index < len(plan.steps):
            step = plan.steps[index]

            if step.status in (StepStatus.COMPLETED, StepStatus.SKIPPED):
                index += 1
                continue

            if step.status is StepStatus.EXECUTING:
                step.error = step.error or "Interrupted before completion"
                step.transition(StepStatus.FAILED)
                await self._persist(plan)

            if step.status is StepStatus.FAILED:
                self._rearm(step)
                await self._persist(plan)

            step.transition(StepStatus.EXECUTING)
            await self._persist(plan)
            await sink.emit(
                Mode.EXECUTE_PLAN,
                status="STEP_STARTING",
                plan={"id": plan.plan_id, "currentStep": index + 1, "totalSteps": len(plan.steps)},
                step={
                    "id": step.id,
                    "description": step.description,
                    "attempt": step.attempts,
                    "maxAttempts": step.max_attempts,
                },
            )

            try:
                output = await self.loop_runner.run(
                    build_step_task(step.id, step.description, step.tool, step.parameters),
                    session_id=sink.session_id,
                    listener=sink.listener,
                    max_iterations=self.step_max_iterations,
                )
            except Exception as exc:
                step.error = str(exc)
                self.logger.error("step_error", plan_id=plan.plan_id, step_id=step.id, error=str(exc))
                decision = await policy.on_step_error(plan, step, exc)
                outcome = await self._apply_decision(plan, step, decision, sink)
                if outcome == "abort":
                    return True
                if outcome == "advance":
                    index += 1
                continue

            if self.is_step_success(output):
                step.transition(StepStatus.COMPLETED)
                step.result = output.get("finalOutput")
                await self._persist(plan)
                await sink.emit(
                    Mode.EXECUTE_PLAN,
                    status="STEP_COMPLETED",
                    step={"id": step.id, "description": step.description, "attempt": step.attempts},
                )
                index += 1
                continue

            step.error = output.get("error") or STEP_FAILURE_MESSAGE
            if not step.attempts_exhausted:
                step.transition(StepStatus.FAILED)
                step.transition(StepStatus.PENDING)
                await self._persist(plan)
                await sink.emit(
                    Mode.EXECUTE_PLAN,
                    status="STEP_RETRYING",
                    step={
                        "id": step.id,
                        "description": step.description,
                        "attempt": step.attempts,
                        "nextAttempt": step.attempts + 1,
                    },
                    error=step.error,
                )
                continue

            decision = await policy.on_step_exhausted(plan, step)
            outcome = await self._apply_decision(plan, step, decision, sink)
            if outcome == "abort":
                return True
            if outcome == "advance":
                index += 1

        return False

    async def _apply_decision(
        self, plan: Plan, step: Step, decision: FailureDecision, sink: EventSink
    ) -> str:
        """
        Apply a failure decision to an EXECUTING step.

        Returns "retry" (stay on this index), "advance" or "abort".
        """
        self.logger.info(
            "failure_decision", plan_id=plan.plan_id, step_id=step.id, decision=decision.value
        )

        if decision is FailureDecision.SKIP:
            step.transition(StepStatus.SKIPPED)
            await self._persist(plan)
            await sink.emit(
                Mode.EXECUTE_PLAN,
                status="STEP_SKIPPED",
                step={"id": step.id, "description": step.description},
                error=step.error,
            )
            return "advance"

        step.transition(StepStatus.FAILED)

        if decision is FailureDecision.RETRY:
            self._rearm(step)
            await self._persist(plan)
            await sink.emit(
                Mode.EXECUTE_PLAN,
                status="STEP_RETRYING",
                step={
                    "id": step.id,
                    "description": step.description,
                    "attempt": step.attempts,
                    "nextAttempt": step.attempts + 1,
                },
                error=step.error,
            )
            return "retry"

        await self._persist(plan)
        await sink.emit(
            Mode.EXECUTE_PLAN,
            status="STEP_FAILED",
            step={"id": step.id, "description": step.description, "attempt": step.attempts},
            error=step.error,
        )
        return "abort" if decision is FailureDecision.ABORT else "advance"

    @staticmethod
    def _rearm(step: Step) -> None:
        """FAILED -> PENDING, granting a fresh attempt budget if it was used up."""
        if step.attempts_exhausted:
            step.reset_attempts()
        step.transition(StepStatus.PENDING)

    async def _persist(self, plan: Plan) -> None:
        try:
            await self.plan_store.save_plan(plan)
        except PlanPersistenceError as exc:
            self.logger.error("plan_persist_failed", plan_id=plan.plan_id, error=str(exc))

    async def _report_error(self, sink: EventSink, exc: Exception, context: str) -> None:
        self.logger.error("execution_failed", context=context, error=str(exc))
        await sink.emit(
            Mode.ERROR,
            error={"message": str(exc), "type": type(exc).__name__, "context": context},
        )

    def _sink(self, options: RunOptions, listener: EventListener | None) -> EventSink:
        session_id = options.session_id or new_session_id()
        options.session_id = session_id
        return EventSink(self.session_store, session_id, listener)

    def _policy_for(self, options: RunOptions) -> FailurePolicyProtocol:
        if options.interactive and self.interactive_policy is not None:
            return self.interactive_policy
        return self.failure_policy

    @staticmethod
    def is_step_success(output: ModeEvent) -> bool:
        return output.get("completed") is True and not output.get("error")

    @staticmethod
    def aggregate_status(plan: Plan, aborted: bool) -> PlanStatus:
        if aborted:
            return PlanStatus.ABORTED
        if plan.count(StepStatus.FAILED):
            return PlanStatus.COMPLETED_WITH_FAILURES
        return PlanStatus.COMPLETED_SUCCESSFULLY

    @classmethod
    def summarize(cls, plan: Plan, status: PlanStatus) -> dict[str, Any]:
        total = len(plan.steps)
        completed = plan.count(StepStatus.COMPLETED)
        skipped = plan.count(StepStatus.SKIPPED)
        rate = ((completed + skipped) / total * 100) if total else 0.0
        return {
            "totalSteps": total,
            "completed": completed,
            "skipped": skipped,
            "failed": plan.count(StepStatus.FAILED),
            "successRate": f"{rate:.1f}%",
            "executionTime": cls.execution_time(plan),
            "status": status.value,
        }

    @staticmethod
    def execution_time(plan: Plan) -> str:
        """Seconds between the earliest step start and the latest step end."""
        starts = [datetime.fromisoformat(s.started_at) for s in plan.steps if s.started_at]
        ends = [
            datetime.fromisoformat(s.completed_at or s.failed_at)
            for s in plan.steps
            if s.completed_at or s.failed_at
        ]
        if not starts or not ends:
            return "unknown"
        return f"{(max(ends) - min(starts)).total_seconds():.1f}s"
