"""User plan API endpoints.

Anonymous callers get empty results from the read endpoints; every change
requires a signed-in user.
"""

from datetime import datetime, timezone
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_current_user_id, get_db, get_optional_user_id
from app.config import get_game_config
from app.services import plans
from app.services.plans.boundaries import local_date

router = APIRouter(prefix="/api/plans", tags=["plans"])


class PlanArticle(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    project_name: str


class PlanTask(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    article_id: int
    title: str
    description: str | None = None
    frequency: str
    link_url: str | None = None
    article: PlanArticle | None = None


class PlanResponse(BaseModel):
    """A task in a user's plan."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    task_id: int
    added_at: datetime | None = None
    completed: bool
    completed_at: datetime | None = None
    cost: Decimal | None = None
    task: PlanTask | None = None


class AddTaskRequest(BaseModel):
    task_id: int


class CompleteTaskRequest(BaseModel):
    cost: Decimal | None = Field(None, ge=0)


class CompleteTaskResponse(BaseModel):
    plan: PlanResponse
    points_awarded: int
    message: str


class UncompleteTaskResponse(BaseModel):
    plan: PlanResponse
    message: str


class UserStatsResponse(BaseModel):
    total_points: int
    total_cost: Decimal
    completed_count: int


class MessageResponse(BaseModel):
    message: str


def _plan(plan) -> PlanResponse:
    return PlanResponse.model_validate(plan)


@router.get("", response_model=list[PlanResponse])
async def list_plan(
    db: AsyncSession = Depends(get_db),
    user_id: int | None = Depends(get_optional_user_id),
):
    """The caller's plan, newest first."""
    if user_id is None:
        return []
    return [_plan(p) for p in await plans.list_plan(db, user_id)]


@router.get("/task-ids", response_model=list[int])
async def task_ids(
    db: AsyncSession = Depends(get_db),
    user_id: int | None = Depends(get_optional_user_id),
):
    """Ids of the tasks in the caller's plan."""
    if user_id is None:
        return []
    return await plans.get_task_ids(db, user_id)


@router.post("", response_model=PlanResponse, status_code=201)
async def add_task(
    request: AddTaskRequest,
    db: AsyncSession = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Add a task to the caller's plan."""
    plan = await plans.add_task(db, user_id, request.task_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return _plan(plan)


@router.delete("/{task_id}", response_model=MessageResponse)
async def remove_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Remove a task from the caller's plan."""
    if not await plans.remove_task(db, user_id, task_id):
        raise HTTPException(status_code=404, detail="Task not found in plan")
    return MessageResponse(message="Task removed from plan")


@router.patch("/{task_id}/toggle", response_model=PlanResponse)
async def toggle_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Flip a task's completion, awarding or reversing its points."""
    plan = await plans.toggle_task(db, user_id, task_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="Task not found in plan")
    return _plan(plan)


@router.post("/{task_id}/complete", response_model=CompleteTaskResponse)
async def complete_task(
    task_id: int,
    request: CompleteTaskRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Complete a task, optionally recording what it cost."""
    cost = request.cost if request else None
    result = await plans.complete_task(db, user_id, task_id, cost=cost)
    if result is None:
        raise HTTPException(status_code=404, detail="Task not found in plan")

    message = (
        f"Task completed! +{result.points_awarded} points"
        if result.points_awarded > 0
        else "Task already completed"
    )
    return CompleteTaskResponse(
        plan=_plan(result.plan),
        points_awarded=result.points_awarded,
        message=message,
    )


@router.post("/{task_id}/uncomplete", response_model=UncompleteTaskResponse)
async def uncomplete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Mark a task incomplete, taking its points back."""
    plan = await plans.uncomplete_task(db, user_id, task_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="Task not found or not completed")
    return UncompleteTaskResponse(plan=_plan(plan), message="Task marked as incomplete")


@router.get("/stats", response_model=UserStatsResponse)
async def user_stats(
    db: AsyncSession = Depends(get_db),
    user_id: int | None = Depends(get_optional_user_id),
):
    """Points, total spend and completed task count."""
    if user_id is None:
        return UserStatsResponse(total_points=0, total_cost=Decimal("0"), completed_count=0)
    stats = await plans.get_user_stats(db, user_id)
    return UserStatsResponse(
        total_points=stats.total_points,
        total_cost=stats.total_cost,
        completed_count=stats.completed_count,
    )


@router.get("/point-values", response_model=dict[str, int])
async def point_values():
    """Points awarded per task frequency."""
    return {f.value: points for f, points in get_game_config().task_points.items()}


@router.get("/calendar", response_model=list[PlanResponse])
async def calendar(
    db: AsyncSession = Depends(get_db),
    user_id: int | None = Depends(get_optional_user_id),
    year: int | None = Query(None, ge=2000, le=2100),
    month: int | None = Query(None, ge=1, le=12),
):
    """Plan activity for a month in the reset timezone (defaults to now)."""
    if user_id is None:
        return []
    today = local_date(datetime.now(timezone.utc))
    rows = await plans.get_calendar_data(
        db, user_id, year or today.year, month or today.month
    )
    return [_plan(p) for p in rows]
