"""Celery tasks keeping the metadata store aligned with Graph."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from app.backend.src.core.config import get_settings
from app.backend.src.core.security import get_app_token_provider
from app.backend.src.db import session_scope
from app.backend.src.services.graph_approvals import GraphApprovalsClient
from app.backend.src.services.metadata_store import SqlMetadataStore
from app.backend.src.services.reconciliation import reconcile_orphaned_metadata
from .worker import celery

LOGGER = structlog.get_logger(__name__)


@celery.task(name="tasks.reconcile_metadata")
def reconcile_metadata() -> dict[str, Any]:
    """Delete metadata documents whose approval was canceled or removed."""

    settings = get_settings()
    with httpx.Client() as http_client, session_scope() as session:
        client = GraphApprovalsClient(
            http_client,
            get_app_token_provider(),
            base_url=settings.graph_base_url,
            version=settings.graph_approvals_version,
        )
        summary = reconcile_orphaned_metadata(SqlMetadataStore(session), client)
    LOGGER.info("celery_reconcile_finished", deleted=summary.deleted, errors=summary.errors)
    return summary.as_dict()


__all__ = ["reconcile_metadata"]
