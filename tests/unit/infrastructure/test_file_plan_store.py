"""Unit tests for the file plan store."""

from unittest.mock import patch

import pytest

from taskpilot.core.domain.errors import PlanNotFoundError, PlanPersistenceError
from taskpilot.core.domain.models import Plan, Step, StepStatus


def sample_plan(**kwargs) -> Plan:
    return Plan(
        original_task="deploy",
        steps=[Step(id=1, description="build"), Step(id=2, description="ship")],
        **kwargs,
    )


@pytest.mark.asyncio
async def test_save_and_load(plan_store):
    plan = sample_plan()
    plan.steps[0].status = StepStatus.COMPLETED

    await plan_store.save_plan(plan)
    loaded = await plan_store.load_plan(plan.plan_id)

    assert loaded.to_dict() == plan.to_dict()


@pytest.mark.asyncio
async def test_save_overwrites_previous_version(plan_store):
    plan = sample_plan()
    await plan_store.save_plan(plan)
    plan.steps[1].error = "later"
    await plan_store.save_plan(plan)

    loaded = await plan_store.load_plan(plan.plan_id)
    assert loaded.steps[1].error == "later"
    assert [p.name for p in plan_store.plans_dir.iterdir()] == [f"{plan.plan_id}.json"]


@pytest.mark.asyncio
async def test_failed_replace_keeps_previous_version(plan_store):
    plan = sample_plan()
    await plan_store.save_plan(plan)
    plan.steps[0].error = "never written"

    with patch("os.replace", side_effect=OSError("disk full")):
        with pytest.raises(PlanPersistenceError):
            await plan_store.save_plan(plan)

    loaded = await plan_store.load_plan(plan.plan_id)
    assert loaded.steps[0].error is None
    assert [p.name for p in plan_store.plans_dir.iterdir()] == [f"{plan.plan_id}.json"]


@pytest.mark.asyncio
async def test_load_missing_plan(plan_store):
    with pytest.raises(PlanNotFoundError):
        await plan_store.load_plan("plan-000000000000")


@pytest.mark.asyncio
async def test_path_traversal_ids_are_rejected(plan_store):
    with pytest.raises(PlanNotFoundError):
        await plan_store.load_plan("../secrets")
    with pytest.raises(PlanPersistenceError):
        await plan_store.save_plan(sample_plan(plan_id="../secrets"))


@pytest.mark.asyncio
async def test_corrupt_plan_is_not_found(plan_store):
    plan_store.plans_dir.mkdir(parents=True)
    (plan_store.plans_dir / "plan-broken.json").write_text("{oops", encoding="utf-8")

    with pytest.raises(PlanNotFoundError):
        await plan_store.load_plan("plan-broken")


@pytest.mark.asyncio
async def test_list_plans_skips_corrupt_files_and_sorts(plan_store):
    newer = sample_plan(plan_id="plan-b", created_at="2025-01-02T00:00:00+00:00")
    older = sample_plan(plan_id="plan-a", created_at="2025-01-01T00:00:00+00:00")
    await plan_store.save_plan(newer)
    await plan_store.save_plan(older)
    (plan_store.plans_dir / "plan-c.json").write_text("not json", encoding="utf-8")

    plans = await plan_store.list_plans()

    assert [p.plan_id for p in plans] == ["plan-a", "plan-b"]


@pytest.mark.asyncio
async def test_non_numeric_attempts_do_not_break_listing(plan_store):
    await plan_store.save_plan(sample_plan(plan_id="plan-good"))
    (plan_store.plans_dir / "plan-odd.json").write_text(
        '{"plan_id": "plan-odd", "steps": [{"id": 1, "attempts": "two", "max_attempts": null}]}',
        encoding="utf-8",
    )

    plans = await plan_store.list_plans()
    odd = await plan_store.load_plan("plan-odd")

    assert sorted(p.plan_id for p in plans) == ["plan-good", "plan-odd"]
    assert odd.steps[0].attempts == 0
    assert odd.steps[0].max_attempts == 3


@pytest.mark.asyncio
async def test_invalid_step_list_is_not_found(plan_store):
    plan_store.plans_dir.mkdir(parents=True)
    (plan_store.plans_dir / "plan-bad.json").write_text('{"steps": 5}', encoding="utf-8")

    with pytest.raises(PlanNotFoundError):
        await plan_store.load_plan("plan-bad")
    assert await plan_store.list_plans() == []


@pytest.mark.asyncio
async def test_list_plans_without_directory(plan_store):
    assert await plan_store.list_plans() == []
