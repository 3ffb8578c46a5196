"""Remove metadata documents whose Graph approval item is gone or canceled."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

import structlog
from fastapi import status

from app.backend.src.core.errors import UpstreamError
from app.backend.src.schemas.approval import ApprovalState
from app.backend.src.services.graph_approvals import GraphApprovalsClient
from app.backend.src.services.metadata_store import MetadataStore
from app.backend.src.services.metrics import reconciled_metadata_total

LOGGER = structlog.get_logger(__name__)


@dataclass
class ReconcileSummary:
    checked: int = 0
    deleted: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def reconcile_orphaned_metadata(
    store: MetadataStore, client: GraphApprovalsClient
) -> ReconcileSummary:
    """Delete metadata for approvals that Graph reports missing or canceled."""

    summary = ReconcileSummary()
    for document in store.list():
        approval_id = document.get("approvalId") or document.get("id")
        if not approval_id:
            continue
        summary.checked += 1
        try:
            approval = client.get_approval(approval_id)
        except UpstreamError as exc:
            if exc.upstream_status != status.HTTP_404_NOT_FOUND:
                summary.errors[approval_id] = exc.message
                continue
            approval = None

        if approval is not None and approval.get("state") != ApprovalState.CANCELED.value:
            continue
        if store.delete(approval_id):
            summary.deleted.append(approval_id)
            reconciled_metadata_total.inc()

    LOGGER.info(
        "metadata_reconciled",
        checked=summary.checked,
        deleted=len(summary.deleted),
        errors=len(summary.errors),
    )
    return summary


__all__ = ["ReconcileSummary", "reconcile_orphaned_metadata"]
