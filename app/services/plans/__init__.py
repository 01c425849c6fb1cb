"""Task plan module: plan membership, point awards and periodic resets."""

from app.services.plans.awarder import (
    CompletionResult,
    complete_task,
    toggle_task,
    uncomplete_task,
)
from app.services.plans.plans import (
    UserStats,
    add_task,
    get_calendar_data,
    get_task_ids,
    get_user_stats,
    list_plan,
    remove_task,
)
from app.services.plans.reset import ResetResult, run_task_reset

__all__ = [
    "CompletionResult",
    "ResetResult",
    "UserStats",
    "add_task",
    "complete_task",
    "get_calendar_data",
    "get_task_ids",
    "get_user_stats",
    "list_plan",
    "remove_task",
    "run_task_reset",
    "toggle_task",
    "uncomplete_task",
]
