"""
Task Classifier

One LLM call deciding whether a task should be planned as several dependent
steps. Classification can only downgrade execution to the simpler single-step
path: any failure, whether the provider raises or the reply is unusable,
yields the single-step default.
"""

from typing import Any

import structlog

from taskpilot.core.domain.models import Complexity, TaskClassification
from taskpilot.core.interfaces.llm import LLMProviderProtocol
from taskpilot.core.prompts.agent_prompts import (
    CLASSIFIER_SYSTEM_PROMPT,
    build_classification_prompt,
)
from taskpilot.core.utils.json_extract import parse_json_object


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


class TaskClassifier:
    def __init__(self, llm_provider: LLMProviderProtocol, llm_options: dict[str, Any] | None = None):
        self.llm_provider = llm_provider
        self.llm_options = llm_options or {}
        self.logger = structlog.get_logger().bind(component="task_classifier")

    async def classify(self, task: str) -> TaskClassification:
        messages = [
            {"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT},
            {"role": "user", "content": build_classification_prompt(task)},
        ]
        try:
            raw = await self.llm_provider.chat(messages, self.llm_options)
        except Exception as exc:
            self.logger.warning("classification_failed", error=str(exc))
            return TaskClassification.default("Analysis failed")

        data = parse_json_object(raw)
        if data is None:
            self.logger.warning("classification_unparseable", response=(raw or "")[:200])
            return TaskClassification.default("Failed to analyze")

        return self.parse_classification(data)

    @staticmethod
    def parse_classification(data: dict[str, Any]) -> TaskClassification:
        """Coerce decoded model JSON, defaulting each field independently."""
        try:
            complexity = Complexity(str(data.get("complexity", "low")).lower())
        except ValueError:
            complexity = Complexity.LOW

        try:
            estimated_steps = max(1, int(data.get("estimatedSteps", 1)))
        except (TypeError, ValueError):
            estimated_steps = 1

        return TaskClassification(
            is_multi_step=_as_bool(data.get("isMultiStep", False)),
            reasoning=str(data.get("reasoning", "")),
            complexity=complexity,
            estimated_steps=estimated_steps,
        )
