"""
File-Based Plan Store
=====================

One JSON document per Plan at ``<plans_dir>/<plan_id>.json``.

Writes go to a temp file in the same directory which then replaces the
target, so a crash mid-write leaves the previous version intact. There is no
locking: the store assumes a single writer per plan id.
"""

import json
import os
import tempfile
from pathlib import Path

import aiofiles
import structlog

from taskpilot.core.domain.errors import PlanNotFoundError, PlanPersistenceError
from taskpilot.core.domain.models import PLAN_ID_PATTERN, Plan


class FilePlanStore:
    def __init__(self, plans_dir: str | Path = ".taskpilot/plans"):
        self.plans_dir = Path(plans_dir)
        self.logger = structlog.get_logger().bind(component="plan_store")

    def get_plan_path(self, plan_id: str) -> Path:
        if not PLAN_ID_PATTERN.match(plan_id):
            raise PlanNotFoundError(plan_id)
        return self.plans_dir / f"{plan_id}.json"

    async def save_plan(self, plan: Plan) -> None:
        """
        Atomically write ``plan``.

        Raises:
            PlanPersistenceError: On any filesystem or serialization failure
        """
        try:
            path = self.get_plan_path(plan.plan_id)
        except PlanNotFoundError as exc:
            raise PlanPersistenceError(plan.plan_id, "invalid plan id") from exc

        temp_path = None
        try:
            self.plans_dir.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.plans_dir, prefix=f".{plan.plan_id}.", suffix=".tmp"
            )
            os.close(temp_fd)

            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(plan.to_json())

            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            if temp_path and Path(temp_path).exists():
                Path(temp_path).unlink()
            self.logger.error("plan_save_failed", plan_id=plan.plan_id, error=str(exc))
            raise PlanPersistenceError(plan.plan_id, str(exc)) from exc

        self.logger.debug("plan_saved", plan_id=plan.plan_id, path=str(path))

    async def load_plan(self, plan_id: str) -> Plan:
        """
        Raises:
            PlanNotFoundError: If the file does not exist or is not a valid plan
        """
        path = self.get_plan_path(plan_id)
        if not path.exists():
            raise PlanNotFoundError(plan_id)

        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                data = json.loads(await f.read())
            if not isinstance(data, dict):
                raise ValueError("plan document is not a JSON object")
            return Plan.from_dict(data)
        except (TypeError, ValueError) as exc:
            self.logger.warning("plan_file_corrupt", plan_id=plan_id, error=str(exc))
            raise PlanNotFoundError(plan_id) from exc

    async def list_plans(self) -> list[Plan]:
        """All readable plans, oldest first. Corrupt files are logged and skipped."""
        if not self.plans_dir.exists():
            return []

        plans: list[Plan] = []
        for path in sorted(self.plans_dir.glob("*.json")):
            try:
                async with aiofiles.open(path, "r", encoding="utf-8") as f:
                    data = json.loads(await f.read())
                plans.append(Plan.from_dict(data))
            except (OSError, AttributeError, TypeError, ValueError) as exc:
                self.logger.warning("plan_file_unreadable", file=path.name, error=str(exc))

        return sorted(plans, key=lambda plan: plan.created_at)
