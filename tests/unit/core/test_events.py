"""Unit tests for Mode Events and the loop records."""

import pytest

from taskpilot.core.domain.events import (
    ActionResult,
    Confidence,
    Conclusion,
    Mode,
    ModeEvent,
    Observation,
    ThinkResult,
)


def test_mode_event_flattens_payload():
    event = ModeEvent(mode=Mode.START, payload={"task": "t", "iteration": 0})
    data = event.to_dict()
    assert data["mode"] == "START"
    assert data["task"] == "t"
    assert data["iteration"] == 0
    assert "timestamp" in data


def test_mode_event_is_immutable():
    event = ModeEvent(mode=Mode.THINK, payload={"iteration": 1})
    with pytest.raises(TypeError):
        event.payload["iteration"] = 2
    with pytest.raises(AttributeError):
        event.mode = Mode.ACTION


def test_mode_event_copies_payload():
    payload = {"iteration": 1}
    event = ModeEvent(mode=Mode.THINK, payload=payload)
    payload["iteration"] = 5
    assert event.get("iteration") == 1


def test_think_result_from_dict_coerces_values():
    result = ThinkResult.from_dict(
        {
            "analysis": "a",
            "considerations": "single",
            "confidence": "HIGH",
            "conclusion": "complete",
            "nextAction": {"tool": "echo", "parameters": None},
            "output": "done",
        }
    )
    assert result.considerations == ("single",)
    assert result.confidence is Confidence.HIGH
    assert result.conclusion is Conclusion.COMPLETE
    assert result.next_action.tool == "echo"
    assert result.next_action.parameters == {}
    assert result.output == "done"


def test_think_result_unknown_values_fall_back():
    result = ThinkResult.from_dict(
        {"confidence": "certain", "conclusion": "MAYBE", "nextAction": {"parameters": {}}}
    )
    assert result.confidence is Confidence.MEDIUM
    assert result.conclusion is Conclusion.CONTINUE
    assert result.next_action is None


def test_think_result_keeps_non_object_parameters():
    result = ThinkResult.from_dict({"nextAction": {"tool": "echo", "parameters": ["x"]}})
    assert result.next_action.parameters == ["x"]


def test_fallback_is_low_confidence_continue():
    result = ThinkResult.fallback("free text")
    assert result.analysis == "free text"
    assert result.confidence is Confidence.LOW
    assert result.conclusion is Conclusion.CONTINUE
    assert result.next_action is None
    assert result.to_dict()["considerations"] == ["AI provided unstructured response"]


def test_action_result_to_dict_includes_error_only_when_set():
    ok = ActionResult(tool="echo", parameters={"text": "x"}, duration_ms=3, result={}, success=True)
    assert "error" not in ok.to_dict()
    assert ok.to_dict()["durationMs"] == 3

    failed = ActionResult(
        tool="echo", parameters={}, duration_ms=1, result=None, success=False, error={"message": "m"}
    )
    assert failed.to_dict()["error"] == {"message": "m"}


def test_error_observation_serialization():
    observation = Observation(
        action_success=False, action_tool=None, result=None, error={"message": "boom", "recoverable": True}
    )
    data = observation.to_dict()
    assert observation.is_error
    assert data["type"] == "error"
    assert data["message"] == "boom"
