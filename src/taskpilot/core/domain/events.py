"""
Mode Events and Loop Records

This module defines the immutable records produced while the agent runs:
- ModeEvent: one timestamped state transition, the atomic unit of the trace log
- ThinkResult: the parsed reasoning returned by the LLM during THINK
- ActionResult: the outcome of one tool invocation during ACTION
- Observation: what the loop remembers about an action for later iterations

Mode Events are appended verbatim to the session log, so ``to_dict`` always
yields a flat JSON-serializable mapping with at least ``mode`` and
``timestamp``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Mode(str, Enum):
    """Kind of state transition recorded by a Mode Event."""

    START = "START"
    THINK = "THINK"
    ACTION = "ACTION"
    OBSERVE = "OBSERVE"
    OUTPUT = "OUTPUT"
    ERROR = "ERROR"
    ANALYZE = "ANALYZE"
    SINGLE_STEP = "SINGLE_STEP"
    PLAN = "PLAN"
    EXECUTE_PLAN = "EXECUTE_PLAN"
    RESUME = "RESUME"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Conclusion(str, Enum):
    CONTINUE = "CONTINUE"
    COMPLETE = "COMPLETE"


@dataclass(frozen=True)
class ModeEvent:
    """
    One structured, timestamped record of a state transition.

    Attributes:
        mode: Which transition happened
        payload: Mode-specific fields (read-only view)
        timestamp: ISO 8601 emission time
    """

    mode: Mode
    payload: Mapping[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now_iso)

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the session log record shape."""
        return {"mode": self.mode.value, "timestamp": self.timestamp, **self.payload}


@dataclass(frozen=True)
class NextAction:
    """Tool call requested by the model. ``parameters`` is kept as sent; the
    registry rejects anything that is not an object."""

    tool: str
    parameters: Any = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        parameters = dict(self.parameters) if isinstance(self.parameters, dict) else self.parameters
        return {"tool": self.tool, "parameters": parameters}


@dataclass(frozen=True)
class ThinkResult:
    """
    Parsed output of a THINK call.

    Attributes:
        analysis: The model's reading of the current situation
        considerations: Factors the model weighed
        plan: Short description of the intended approach
        confidence: high, medium or low
        conclusion: CONTINUE to act again, COMPLETE to finish
        next_action: Tool call to perform, or None
        output: Final answer when the conclusion is COMPLETE
    """

    analysis: str
    considerations: tuple[str, ...] = ()
    plan: str = ""
    confidence: Confidence = Confidence.MEDIUM
    conclusion: Conclusion = Conclusion.CONTINUE
    next_action: NextAction | None = None
    output: Any = None

    @classmethod
    def fallback(cls, raw_text: str) -> "ThinkResult":
        """Low-confidence CONTINUE result used when the model output is unparseable."""
        return cls(
            analysis=raw_text,
            considerations=("AI provided unstructured response",),
            plan="Continue with best effort interpretation",
            confidence=Confidence.LOW,
            conclusion=Conclusion.CONTINUE,
            next_action=None,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ThinkResult":
        """
        Build a ThinkResult from decoded model JSON, coercing loose values.

        Unknown confidence values become ``medium``; anything other than
        ``COMPLETE`` is treated as ``CONTINUE``; a ``nextAction`` without a
        string ``tool`` is dropped.
        """
        considerations = data.get("considerations") or []
        if isinstance(considerations, str):
            considerations = [considerations]

        try:
            confidence = Confidence(str(data.get("confidence", "medium")).lower())
        except ValueError:
            confidence = Confidence.MEDIUM

        conclusion = (
            Conclusion.COMPLETE
            if str(data.get("conclusion", "")).upper() == Conclusion.COMPLETE.value
            else Conclusion.CONTINUE
        )

        next_action = None
        raw_action = data.get("nextAction")
        if isinstance(raw_action, dict) and isinstance(raw_action.get("tool"), str):
            parameters = raw_action.get("parameters")
            next_action = NextAction(
                tool=raw_action["tool"],
                parameters={} if parameters is None else parameters,
            )

        return cls(
            analysis=str(data.get("analysis", "")),
            considerations=tuple(str(c) for c in considerations),
            plan=str(data.get("plan", "")),
            confidence=confidence,
            conclusion=conclusion,
            next_action=next_action,
            output=data.get("output"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis": self.analysis,
            "considerations": list(self.considerations),
            "plan": self.plan,
            "confidence": self.confidence.value,
            "conclusion": self.conclusion.value,
            "nextAction": self.next_action.to_dict() if self.next_action else None,
            "output": self.output,
        }


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one tool invocation."""

    tool: str
    parameters: Any
    duration_ms: int
    result: Any
    success: bool
    error: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "tool": self.tool,
            "parameters": dict(self.parameters) if isinstance(self.parameters, dict) else self.parameters,
            "durationMs": self.duration_ms,
            "result": self.result,
            "success": self.success,
        }
        if self.error is not None:
            data["error"] = dict(self.error)
        return data


@dataclass(frozen=True)
class Observation:
    """
    What the loop remembers about a past action.

    Error observations (recoverable failures raised during THINK or ACTION)
    carry ``error`` and have ``action_tool`` set to None.
    """

    action_success: bool
    action_tool: str | None
    result: Any
    timestamp: str = field(default_factory=utc_now_iso)
    error: dict[str, Any] | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"type": "error", "timestamp": self.timestamp, **self.error}
        return {
            "actionSuccess": self.action_success,
            "actionTool": self.action_tool,
            "result": self.result,
            "timestamp": self.timestamp,
        }
