"""Approval endpoints proxying the Graph Approvals API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status

from app.backend.src.core.clients import get_graph_client, get_metadata_store
from app.backend.src.core.errors import UpstreamError, ValidationError
from app.backend.src.core.security import get_current_user_identity
from app.backend.src.schemas.approval import (
    ApprovalDashboard,
    ApprovalWithActions,
    CreateApprovalRequest,
    Decision,
    RespondPayload,
)
from app.backend.src.services.classifier import (
    Bucket,
    allowed_actions,
    classify,
    is_overdue,
    stage_for,
)
from app.backend.src.services.graph_approvals import GraphApprovalsClient
from app.backend.src.services.metadata_store import MetadataStore
from app.backend.src.services.responder import respond

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("")
def list_approvals(client: GraphApprovalsClient = Depends(get_graph_client)) -> dict[str, Any]:
    """Return every approval item visible to the caller."""

    try:
        return client.list_approvals()
    except UpstreamError as exc:
        raise exc.with_label("Failed to fetch approvals")


@router.get("/dashboard", response_model=ApprovalDashboard)
def approvals_dashboard(
    client: GraphApprovalsClient = Depends(get_graph_client),
    store: MetadataStore = Depends(get_metadata_store),
    current_user: str = Depends(get_current_user_identity),
) -> ApprovalDashboard:
    """Return the caller's approvals split into approver/owner tabs."""

    try:
        items = client.list_approval_items()
    except UpstreamError as exc:
        raise exc.with_label("Failed to fetch approvals")

    classified = classify(items, current_user)
    metadata_by_id = {doc.get("approvalId"): doc for doc in store.list()}

    def _entries(bucket: Bucket) -> list[ApprovalWithActions]:
        actions = allowed_actions(bucket)
        return [
            ApprovalWithActions(
                item=item.model_dump(by_alias=True, mode="json", exclude_none=True),
                actions=actions,
                overdue=is_overdue(item, metadata_by_id.get(item.id)),
                stage=stage_for(metadata_by_id.get(item.id), current_user),
            )
            for item in classified.bucket(bucket)
        ]

    return ApprovalDashboard(
        approver_pending=_entries(Bucket.APPROVER_PENDING),
        approver_completed=_entries(Bucket.APPROVER_COMPLETED),
        owner_pending=_entries(Bucket.OWNER_PENDING),
        owner_completed=_entries(Bucket.OWNER_COMPLETED),
    )


@router.get("/{approval_id}")
def get_approval(
    approval_id: str, client: GraphApprovalsClient = Depends(get_graph_client)
) -> dict[str, Any]:
    try:
        return client.get_approval(approval_id)
    except UpstreamError as exc:
        raise exc.with_label("Failed to fetch approval")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_approval(
    payload: CreateApprovalRequest,
    client: GraphApprovalsClient = Depends(get_graph_client),
) -> dict[str, Any]:
    """Create an approval item with the given approvers."""

    try:
        return client.create_approval(
            payload.model_dump(by_alias=True, mode="json", exclude_none=True)
        )
    except UpstreamError as exc:
        raise exc.with_label("Failed to create approval")


@router.post("/{approval_id}/respond")
def respond_to_approval(
    approval_id: str,
    payload: RespondPayload,
    client: GraphApprovalsClient = Depends(get_graph_client),
    current_user: str = Depends(get_current_user_identity),
) -> dict[str, Any]:
    """Approve or reject on behalf of the caller."""

    try:
        decision = Decision.parse(payload.response)
    except ValueError as exc:
        raise ValidationError(
            f"Unsupported response '{payload.response}'; expected approve or reject"
        ) from exc

    try:
        outcome = respond(client, approval_id, decision, current_user, payload.comments)
    except UpstreamError as exc:
        raise exc.with_label("Failed to respond to approval")
    return {"response": outcome.response, "approval": outcome.approval}


@router.post("/{approval_id}/cancel")
def cancel_approval(
    approval_id: str, client: GraphApprovalsClient = Depends(get_graph_client)
) -> dict[str, Any]:
    try:
        return client.cancel_approval(approval_id)
    except UpstreamError as exc:
        raise exc.with_label("Failed to cancel approval")


@router.get("/{approval_id}/responses")
def list_approval_responses(
    approval_id: str, client: GraphApprovalsClient = Depends(get_graph_client)
) -> dict[str, Any]:
    try:
        return client.list_responses(approval_id)
    except UpstreamError as exc:
        raise exc.with_label("Failed to fetch approval responses")


@router.get("/{approval_id}/requests")
def list_approval_requests(
    approval_id: str, client: GraphApprovalsClient = Depends(get_graph_client)
) -> dict[str, Any]:
    """Return the per-approver requests of an approval item."""

    try:
        requests = client.list_requests(approval_id)
    except UpstreamError as exc:
        raise exc.with_label("Failed to fetch approval requests")
    return {"value": [request.model_dump(by_alias=True, mode="json") for request in requests]}
