"""
Persistence Protocols

Two stores back the engine:
- PlanStoreProtocol: one document per Plan keyed by plan id; the only durable
  state the coordinator relies on for resumption
- SessionStoreProtocol: bounded append-only log of Mode Events per session
"""

from typing import Any, Protocol

from taskpilot.core.domain.models import Plan


class PlanStoreProtocol(Protocol):
    async def save_plan(self, plan: Plan) -> None:
        """
        Durably write ``plan``, replacing any previous version.

        Raises:
            PlanPersistenceError: If the write fails
        """
        ...

    async def load_plan(self, plan_id: str) -> Plan:
        """
        Raises:
            PlanNotFoundError: If no plan with this id exists
        """
        ...

    async def list_plans(self) -> list[Plan]:
        ...


class SessionStoreProtocol(Protocol):
    async def append_entry(self, session_id: str, entry: dict[str, Any]) -> None:
        """Append and prune to the size bound. Never raises."""
        ...

    async def read_entries(self, session_id: str) -> list[dict[str, Any]]:
        """Entries in insertion order; malformed lines come back as ``{"raw": line}``."""
        ...

    async def clear(self, session_id: str) -> None:
        ...

    async def list_sessions(self) -> list[str]:
        ...
