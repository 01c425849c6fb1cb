"""Celery application for DropQuest's two pollers.

Both jobs are idempotent and run on a fixed interval instead of a cron
window. A late or missed tick is caught up on the next one:

- check-bet-settlement: settle finished races (UTC days)
- check-task-reset: daily and weekly plan resets (KST boundaries)
"""

import structlog
from celery import Celery
from celery.signals import task_postrun, task_prerun, worker_process_init

from app.config import get_settings
from app.config.logs import configure_logging

settings = get_settings()
configure_logging(settings)

celery_app = Celery(
    "dropquest",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks.betting", "app.tasks.task_reset"],
)

poll_seconds = settings.scheduler_poll_seconds

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    result_expires=3600,
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
    beat_schedule={
        "check-bet-settlement": {
            "task": "app.tasks.betting.check_bet_settlement",
            "schedule": poll_seconds,
            "options": {"expires": max(poll_seconds - 5, 1)},
        },
        "check-task-reset": {
            "task": "app.tasks.task_reset.check_task_reset",
            "schedule": poll_seconds,
            "options": {"expires": max(poll_seconds - 5, 1)},
        },
    },
)


@worker_process_init.connect
def _init_worker_logging(**kwargs) -> None:
    configure_logging(get_settings())


@task_prerun.connect
def _bind_task_context(task_id=None, task=None, **kwargs) -> None:
    structlog.contextvars.bind_contextvars(task_id=task_id, task_name=task.name)


@task_postrun.connect
def _clear_task_context(**kwargs) -> None:
    structlog.contextvars.clear_contextvars()
