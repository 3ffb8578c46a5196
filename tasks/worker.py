"""Celery application factory."""

from __future__ import annotations

import ssl
from typing import Any

import structlog
from celery import Celery, signals

from app.backend.src.core.config import get_settings

LOGGER = structlog.get_logger(__name__)

settings = get_settings()


def _build_ssl_options() -> dict[str, Any]:
    """Return SSL options for ``rediss://`` connections."""

    return {"ssl_cert_reqs": ssl.CERT_REQUIRED}


celery = Celery(
    "graph_approvals",
    broker=settings.broker_url,
    backend=settings.result_backend,
)

celery_conf: dict[str, object] = {
    "include": ["tasks.reconcile_tasks"],
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "worker_prefetch_multiplier": 1,
    "broker_connection_retry_on_startup": True,
    "beat_schedule": {
        "reconcile-approval-metadata": {
            "task": "tasks.reconcile_metadata",
            "schedule": float(settings.reconcile_interval_seconds),
        },
    },
}

if settings.broker_url.startswith("rediss://"):
    celery_conf["broker_use_ssl"] = _build_ssl_options()

if settings.result_backend.startswith("rediss://"):
    celery_conf["redis_backend_use_ssl"] = _build_ssl_options()

celery.conf.update(**celery_conf)

LOGGER.info(
    "celery_bootstrap_ready",
    broker=settings.broker_url,
    backend=settings.result_backend,
)

# Registers the task definitions for workers started from any entrypoint
from . import reconcile_tasks  # noqa: F401,E402  # isort: skip


@signals.worker_ready.connect
def _log_worker_configuration(sender: Any | None = None, **_: Any) -> None:
    """Emit structured worker configuration details after startup."""

    app = sender.app if sender is not None else celery
    registered_tasks = sorted(
        task_name for task_name in app.tasks.keys() if task_name.startswith("tasks.")
    )
    LOGGER.info(
        "celery_worker_configuration",
        registered_tasks=registered_tasks,
        beat_schedule=sorted(app.conf.beat_schedule or {}),
    )


__all__ = ["celery"]
