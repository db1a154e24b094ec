"""
Default continuation and failure-decision policies.

HeuristicContinuationPolicy decides what happens after OBSERVE. Tools flag
themselves as terminal in the registry (a successful directory listing or file
read answers the task on its own); the policy reads that flag rather than
matching tool names.

AbortOnFailurePolicy is the non-interactive failure policy: both hooks answer
ABORT.
"""

import structlog

from taskpilot.core.domain.events import ActionResult
from taskpilot.core.domain.models import Context, FailureDecision, Plan, Step
from taskpilot.core.interfaces.policies import ObserveStatus
from taskpilot.core.interfaces.tools import ToolRegistryProtocol

DEFAULT_FAILURE_LIMIT = 3
DEFAULT_ITERATION_CAP = 3


class HeuristicContinuationPolicy:
    """
    Decide CONTINUE, COMPLETE or HALT for one observed action.

    Rules, in order:
    1. Failed action: CONTINUE while fewer than ``failure_limit`` failed
       observations have accumulated (the current one included), else HALT.
    2. Successful call to a terminal tool: COMPLETE.
    3. Otherwise CONTINUE while the loop is below ``iteration_cap``, else HALT.

    HALT ends the loop with ``completed=False``.
    """

    def __init__(
        self,
        tools: ToolRegistryProtocol,
        iteration_cap: int = DEFAULT_ITERATION_CAP,
        failure_limit: int = DEFAULT_FAILURE_LIMIT,
    ):
        self.tools = tools
        self.iteration_cap = iteration_cap
        self.failure_limit = failure_limit

    def decide(self, action_result: ActionResult, context: Context) -> ObserveStatus:
        if not action_result.success:
            failures = context.failed_observation_count + 1
            if failures < self.failure_limit:
                return ObserveStatus.CONTINUE
            return ObserveStatus.HALT

        if self.tools.is_terminal(action_result.tool):
            return ObserveStatus.COMPLETE

        if context.iteration < self.iteration_cap:
            return ObserveStatus.CONTINUE
        return ObserveStatus.HALT


class AbortOnFailurePolicy:
    """Failure policy for non-interactive and structured-output runs."""

    def __init__(self):
        self.logger = structlog.get_logger().bind(component="failure_policy")

    async def on_step_exhausted(self, plan: Plan, step: Step) -> FailureDecision:
        self.logger.info(
            "step_exhausted_abort", plan_id=plan.plan_id, step_id=step.id, attempts=step.attempts
        )
        return FailureDecision.ABORT

    async def on_step_error(
        self, plan: Plan, step: Step, error: BaseException
    ) -> FailureDecision:
        self.logger.info(
            "step_error_abort", plan_id=plan.plan_id, step_id=step.id, error=str(error)
        )
        return FailureDecision.ABORT
