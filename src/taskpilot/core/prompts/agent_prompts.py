"""
Agent Prompts - THINK, Classification and Planning

This module builds the messages sent to the LLM:
- build_think_system_prompt / build_think_prompt: one THINK phase of the loop
- CLASSIFIER_SYSTEM_PROMPT / build_classification_prompt: single vs multi-step
- PLANNER_SYSTEM_PROMPT / build_planning_prompt: decomposition into Steps

Every prompt asks for a single JSON object. The reply is still parsed with the
tolerant extractor, so the wording here only shapes the response; it does not
guarantee it.
"""

import json
import os
import platform
from typing import Any

THINK_RESPONSE_FORMAT = """{
  "analysis": "Your analysis of the current situation",
  "considerations": ["consideration 1", "consideration 2"],
  "plan": "Your plan for the next step",
  "confidence": "high|medium|low",
  "conclusion": "CONTINUE|COMPLETE",
  "nextAction": {"tool": "toolName", "parameters": {"param": "value"}},
  "output": "Final output when conclusion is COMPLETE"
}"""


def build_think_system_prompt(tools: list[dict[str, Any]], max_iterations: int) -> str:
    """System prompt listing the loop modes and every registered tool."""
    tool_lines = "\n".join(
        f"- {tool['name']}({', '.join(tool.get('parameters', {}).get('properties', {}))}): "
        f"{tool.get('description', '')}"
        for tool in tools
    )
    return f"""You are a command line agent that works in a loop of modes:

1. START: receive the task
2. THINK: analyze the situation and decide the next action (you are here)
3. ACTION: a tool is executed on your behalf
4. OBSERVE: the tool result is recorded
5. OUTPUT: the final result is reported

Available tools:
{tool_lines}

Respond with exactly one JSON object in the requested format. Set "conclusion"
to "COMPLETE" and fill "output" once the task is done; otherwise set
"nextAction" to the single tool call that moves the task forward.

Current working directory: {os.getcwd()}
Operating system: {platform.system()}
Max iterations: {max_iterations}"""


def build_think_prompt(
    task: str,
    iteration: int,
    observations: list[dict[str, Any]],
    history: list[dict[str, Any]],
    snippets: list[str],
) -> str:
    """User prompt for one THINK phase."""
    relevant = "\n".join(f"- {snippet}" for snippet in snippets) or "- none"
    return f"""TASK: {task}

CONTEXT:
- Current iteration: {iteration}
- Previous observations: {json.dumps(observations, indent=2, default=str)}
- History: {json.dumps(history, indent=2, default=str)}

RELEVANT SESSION HISTORY:
{relevant}

Respond in this JSON format:
{THINK_RESPONSE_FORMAT}"""


CLASSIFIER_SYSTEM_PROMPT = """You classify tasks for a command line agent.
Respond with exactly one JSON object and nothing else."""


def build_classification_prompt(task: str) -> str:
    return f"""Decide whether this task needs several dependent steps or a single action.

TASK: {task}

Signals for a multi-step task:
- sequencing words such as "then", "after", "next", "finally", "and then"
- several distinct operations (create, then modify, then verify)
- one operation depending on the output of another
- setup or installation followed by configuration or use

Single-step tasks ask for one operation, a simple question, or one lookup.

Respond in this JSON format:
{{
  "isMultiStep": true,
  "reasoning": "Why the task is or is not multi-step",
  "complexity": "low|medium|high",
  "estimatedSteps": 3
}}"""


PLANNER_SYSTEM_PROMPT = """You are a task planner. Break complex tasks into clear,
sequential, atomic steps. Each step performs one tool call, states how success
is recognized and what to do on failure. Order steps so that every step only
depends on steps before it. Respond with exactly one JSON object."""


def build_planning_prompt(task: str, tools: list[str]) -> str:
    return f"""Create an execution plan for this task.

TASK: {task}

Available tools: {", ".join(tools)}

Respond in this JSON format:
{{
  "estimated_duration": "5 minutes",
  "overall_strategy": "How the steps achieve the task",
  "risk_assessment": "What could go wrong",
  "steps": [
    {{
      "id": 1,
      "description": "What this step does",
      "tool": "executeCommand",
      "parameters": {{"command": "echo hello"}},
      "success_criteria": "How to tell the step succeeded",
      "error_handling": "What to do if it fails",
      "dependencies": [],
      "estimated_time": "30s"
    }}
  ]
}}"""


def build_step_task(step_id: int, description: str, tool: str, parameters: dict[str, Any]) -> str:
    """Reframe one plan Step as a standalone task for a scoped loop."""
    return (
        f"Execute plan step #{step_id}: {description}\n"
        f"Suggested tool: {tool}\n"
        f"Parameters: {json.dumps(parameters, default=str)}"
    )
