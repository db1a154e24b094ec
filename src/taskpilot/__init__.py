"""Taskpilot: LLM-driven task agent with resumable plan coordination."""

__version__ = "0.1.0"
