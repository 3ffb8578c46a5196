"""Route an approve/reject decision from the caller to Graph."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from app.backend.src.core.errors import (
    AlreadyCompletedError,
    NoRequestsError,
    RequestNotFoundError,
    UpstreamError,
)
from app.backend.src.schemas.approval import Decision, normalize_identity
from app.backend.src.services.graph_approvals import GraphApprovalsClient

LOGGER = structlog.get_logger(__name__)


@dataclass
class RespondOutcome:
    response: dict[str, Any]
    approval: dict[str, Any] | None


def respond(
    client: GraphApprovalsClient,
    approval_id: str,
    decision: Decision,
    current_user_id: str,
    comments: str | None = None,
) -> RespondOutcome:
    """Submit ``decision`` for the caller after checking their request is open.

    The per-approver requests are only consulted for the precondition checks;
    the decision itself goes to the item-level ``responses`` endpoint. The
    follow-up refresh is best-effort and never undoes a submitted response.
    """

    requests = client.list_requests(approval_id)
    if not requests:
        raise NoRequestsError(f"No approval requests found for approval: {approval_id}")

    canonical = normalize_identity(current_user_id)
    match = next(
        (
            request
            for request in requests
            if request.approver is not None and request.approver.canonical_id == canonical
        ),
        None,
    )
    if canonical == "" or match is None:
        raise RequestNotFoundError(
            f"No approval request found for user {current_user_id} on approval: {approval_id}"
        )

    if not match.is_open:
        raise AlreadyCompletedError(
            f"Approval request {match.id or approval_id} is already {match.status or 'completed'}"
        )

    response = client.post_response(approval_id, decision, comments)

    approval: dict[str, Any] | None = None
    try:
        approval = client.get_approval(approval_id)
    except UpstreamError as exc:
        LOGGER.warning("approval_refresh_failed", approval_id=approval_id, error=exc.message)

    return RespondOutcome(response=response, approval=approval)


__all__ = ["RespondOutcome", "respond"]
