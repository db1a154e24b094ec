"""
Policy Protocols

Two decisions are left to pluggable policies:
- continuation: after OBSERVE, whether the Agent Loop goes on, completes or halts
- failure: what the coordinator does when a Step runs out of attempts, or when
  its scoped loop raises a fatal error

The two failure hooks are deliberately separate; callers may answer them
differently.
"""

from enum import Enum
from typing import Protocol

from taskpilot.core.domain.events import ActionResult
from taskpilot.core.domain.models import Context, FailureDecision, Plan, Step


class ObserveStatus(str, Enum):
    CONTINUE = "CONTINUE"
    COMPLETE = "COMPLETE"
    HALT = "HALT"


class ContinuationPolicyProtocol(Protocol):
    def decide(self, action_result: ActionResult, context: Context) -> ObserveStatus:
        ...


class FailurePolicyProtocol(Protocol):
    async def on_step_exhausted(self, plan: Plan, step: Step) -> FailureDecision:
        """Step failed with ``attempts == max_attempts``."""
        ...

    async def on_step_error(
        self, plan: Plan, step: Step, error: BaseException
    ) -> FailureDecision:
        """The scoped loop for ``step`` raised a fatal error."""
        ...
