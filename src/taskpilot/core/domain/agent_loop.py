"""
Agent Loop - THINK → ACTION → OBSERVE

This module implements the bounded single-task loop. ``LoopRunner`` drives one
task (or one plan Step reframed as a task) until either:
1. THINK concludes COMPLETE
2. OBSERVE reports COMPLETE (terminal tool succeeded)
3. OBSERVE reports HALT (failure limit or secondary iteration cap reached)
4. ``max_iterations`` is exhausted

Every phase produces a Mode Event that is appended to the session log before
the loop moves on. The runner holds no per-run state, so one instance serves
both whole tasks and step-scoped runs with different iteration caps.
"""

import time
from typing import Any, Callable

import structlog

from taskpilot.core.domain.errors import is_recoverable
from taskpilot.core.domain.event_sink import EventListener, EventSink
from taskpilot.core.domain.events import (
    ActionResult,
    Conclusion,
    Mode,
    ModeEvent,
    NextAction,
    Observation,
    ThinkResult,
)
from taskpilot.core.domain.models import Context
from taskpilot.core.domain.policies import HeuristicContinuationPolicy
from taskpilot.core.interfaces.llm import LLMProviderProtocol
from taskpilot.core.interfaces.persistence import SessionStoreProtocol
from taskpilot.core.interfaces.policies import ContinuationPolicyProtocol, ObserveStatus
from taskpilot.core.interfaces.retrieval import RetrieverProtocol
from taskpilot.core.interfaces.tools import ToolRegistryProtocol
from taskpilot.core.prompts.agent_prompts import build_think_prompt, build_think_system_prompt
from taskpilot.core.utils.json_extract import parse_json_object

DEFAULT_FINAL_OUTPUT = "Task execution completed"
MAX_SNIPPET_CHARS = 500


def is_successful_result(result: Any) -> bool:
    """A tool result counts as success unless it is None or says ``success: False``."""
    if result is None:
        return False
    if isinstance(result, dict):
        return result.get("success") is not False
    return True


class LoopRunner:
    """
    Bounded THINK/ACTION/OBSERVE loop with protocol-based dependencies.

    Errors raised while thinking are classified with ``is_recoverable``:
    recoverable ones become an ERROR event plus an error observation and the
    loop continues; fatal ones emit ERROR and propagate. Tool failures never
    raise; they are reported in the ACTION event.
    """

    DEFAULT_MAX_ITERATIONS = 10

    def __init__(
        self,
        llm_provider: LLMProviderProtocol,
        tools: ToolRegistryProtocol,
        session_store: SessionStoreProtocol | None = None,
        retriever: RetrieverProtocol | None = None,
        continuation_policy: ContinuationPolicyProtocol | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        llm_options: dict[str, Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize LoopRunner with injected collaborators.

        Args:
            llm_provider: Chat completion capability
            tools: Tool registry used for ACTION
            session_store: Where Mode Events are appended (optional)
            retriever: Source of relevant session snippets for THINK (optional)
            continuation_policy: OBSERVE decision; defaults to the heuristic policy
            max_iterations: Default iteration bound per run
            llm_options: Options passed through to every chat call
            clock: Monotonic clock in seconds, used for action durations
        """
        self.llm_provider = llm_provider
        self.tools = tools
        self.session_store = session_store
        self.retriever = retriever
        self.continuation_policy = continuation_policy or HeuristicContinuationPolicy(tools)
        self.max_iterations = max_iterations
        self.llm_options = llm_options or {}
        self.clock = clock
        self.logger = structlog.get_logger().bind(component="agent_loop")

    async def run(
        self,
        task: str,
        session_id: str | None = None,
        listener: EventListener | None = None,
        max_iterations: int | None = None,
    ) -> ModeEvent:
        """
        Drive ``task`` to an OUTPUT event.

        Args:
            task: Natural-language task
            session_id: Session to log to and retrieve from
            listener: Called with every Mode Event after it is logged
            max_iterations: Override of the runner's default bound

        Returns:
            The OUTPUT Mode Event

        Raises:
            Exception: Any fatal (non-recoverable) error from THINK or ACTION,
                after an ERROR event has been emitted
        """
        limit = max_iterations or self.max_iterations
        sink = EventSink(self.session_store, session_id, listener)
        context = Context(original_task=task)

        self.logger.info("loop_started", session_id=session_id, task=task[:100], max_iterations=limit)
        await sink.emit(Mode.START, task=task, iteration=0)

        while not context.completed and context.iteration < limit:
            context.iteration += 1
            try:
                halted = await self._iterate(context, sink, session_id, limit)
            except Exception as exc:
                recoverable = is_recoverable(exc)
                self.logger.warning(
                    "loop_iteration_error",
                    iteration=context.iteration,
                    error=str(exc),
                    recoverable=recoverable,
                )
                await sink.emit(
                    Mode.ERROR,
                    iteration=context.iteration,
                    error={
                        "message": str(exc),
                        "type": type(exc).__name__,
                        "recoverable": recoverable,
                        "context": "Agent loop execution",
                    },
                )
                if not recoverable:
                    raise
                context.observations.append(
                    Observation(
                        action_success=False,
                        action_tool=None,
                        result=None,
                        error={"message": str(exc), "recoverable": True},
                    )
                )
                continue

            if halted:
                break

        final_output = context.final_output
        if final_output is None or final_output == "":
            final_output = DEFAULT_FINAL_OUTPUT

        self.logger.info(
            "loop_finished",
            session_id=session_id,
            completed=context.completed,
            iterations=context.iteration,
        )
        return await sink.emit(
            Mode.OUTPUT,
            completed=context.completed,
            iterations=context.iteration,
            finalOutput=final_output,
            summary=self.summarize(context),
        )

    async def _iterate(
        self, context: Context, sink: EventSink, session_id: str | None, limit: int
    ) -> bool:
        """Run one THINK (and maybe ACTION/OBSERVE). Returns True when OBSERVE halts."""
        thought = await self.think(context, session_id, limit)
        await sink.emit(
            Mode.THINK,
            iteration=context.iteration,
            thinking={
                "analysis": thought.analysis,
                "considerations": list(thought.considerations),
                "plan": thought.plan,
                "confidence": thought.confidence.value,
            },
            conclusion=thought.conclusion.value,
            nextAction=thought.next_action.to_dict() if thought.next_action else None,
            output=thought.output,
        )

        if thought.conclusion is Conclusion.COMPLETE:
            context.completed = True
            context.final_output = thought.output
            return False

        if thought.next_action is None:
            return False

        action_result = await self.act(thought.next_action)
        await sink.emit(
            Mode.ACTION,
            iteration=context.iteration,
            action={
                "tool": action_result.tool,
                "parameters": action_result.to_dict()["parameters"],
                "durationMs": action_result.duration_ms,
            },
            result=action_result.result,
            success=action_result.success,
            **({"error": action_result.error} if action_result.error else {}),
        )

        status = self.observe(action_result, context)
        observation = Observation(
            action_success=action_result.success,
            action_tool=action_result.tool,
            result=action_result.result,
        )
        final_output = (
            self.extract_final_output(action_result, context)
            if status is ObserveStatus.COMPLETE
            else None
        )
        await sink.emit(
            Mode.OBSERVE,
            iteration=context.iteration,
            observation=observation.to_dict(),
            status=status.value,
            finalOutput=final_output,
        )

        context.observations.append(observation)
        context.history.append(
            {
                "iteration": context.iteration,
                "action": action_result.to_dict(),
                "observation": observation.to_dict(),
            }
        )

        if status is ObserveStatus.COMPLETE:
            context.completed = True
            context.final_output = final_output
        return status is ObserveStatus.HALT

    async def think(
        self, context: Context, session_id: str | None = None, max_iterations: int | None = None
    ) -> ThinkResult:
        """
        Ask the model for the next move.

        Relevant snippets for the original task are retrieved from the session
        log and embedded in the prompt. Unparseable replies become a
        low-confidence CONTINUE result.
        """
        snippets: list[str] = []
        if self.retriever is not None and session_id:
            matches = await self.retriever.retrieve(session_id, context.original_task)
            snippets = [match.text[:MAX_SNIPPET_CHARS] for match in matches]

        messages = [
            {
                "role": "system",
                "content": build_think_system_prompt(
                    self.tools.describe(), max_iterations or self.max_iterations
                ),
            },
            {
                "role": "user",
                "content": build_think_prompt(
                    context.original_task,
                    context.iteration,
                    [obs.to_dict() for obs in context.observations],
                    context.history,
                    snippets,
                ),
            },
        ]
        raw = await self.llm_provider.chat(messages, self.llm_options)
        return self.parse_think_response(raw)

    @staticmethod
    def parse_think_response(raw: str | None) -> ThinkResult:
        data = parse_json_object(raw)
        if data is None:
            return ThinkResult.fallback(raw or "")
        return ThinkResult.from_dict(data)

    async def act(self, action: NextAction) -> ActionResult:
        """Invoke one tool; any invocation error becomes a failed ActionResult."""
        started = self.clock()
        try:
            result = await self.tools.invoke(action.tool, action.parameters)
        except Exception as exc:
            self.logger.warning("tool_invocation_failed", tool=action.tool, error=str(exc))
            return ActionResult(
                tool=action.tool,
                parameters=action.parameters,
                duration_ms=int((self.clock() - started) * 1000),
                result=None,
                success=False,
                error={"message": str(exc), "type": type(exc).__name__},
            )

        success = is_successful_result(result)
        if not success:
            self.logger.info("tool_reported_failure", tool=action.tool)
        return ActionResult(
            tool=action.tool,
            parameters=action.parameters,
            duration_ms=int((self.clock() - started) * 1000),
            result=result,
            success=success,
        )

    def observe(self, action_result: ActionResult, context: Context) -> ObserveStatus:
        return self.continuation_policy.decide(action_result, context)

    @staticmethod
    def extract_final_output(action_result: ActionResult, context: Context) -> Any:
        if action_result.success and isinstance(action_result.result, dict):
            return action_result.result
        return {
            "message": "Task completed",
            "iterations": context.iteration,
            "lastAction": action_result.tool,
        }

    @staticmethod
    def summarize(context: Context) -> dict[str, Any]:
        actions = [entry["action"] for entry in context.history]
        return {
            "totalIterations": context.iteration,
            "actionsPerformed": len(actions),
            "successfulActions": sum(1 for action in actions if action["success"]),
            "finalStatus": "completed" if context.completed else "incomplete",
        }
