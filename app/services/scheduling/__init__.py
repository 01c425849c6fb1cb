"""Scheduled job bookkeeping."""

from app.services.scheduling.job_runs import record_job_run
from app.services.scheduling.markers import get_marker, set_marker
from app.services.scheduling.status import (
    BacklogEntry,
    last_success,
    recent_job_runs,
    settlement_backlog,
)

__all__ = [
    "BacklogEntry",
    "get_marker",
    "last_success",
    "recent_job_runs",
    "record_job_run",
    "set_marker",
    "settlement_backlog",
]
