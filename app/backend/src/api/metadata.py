"""Custom approval metadata and attachment endpoints."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, File, Form, UploadFile, status

from app.backend.src.core.clients import get_app_graph_client, get_metadata_store, get_onedrive_client
from app.backend.src.core.config import get_settings
from app.backend.src.core.errors import NotFoundError, UpstreamError, ValidationError
from app.backend.src.core.security import get_access_token
from app.backend.src.schemas.metadata import SaveMetadataRequest
from app.backend.src.services.graph_approvals import GraphApprovalsClient
from app.backend.src.services.metadata_store import SqlMetadataStore
from app.backend.src.services.onedrive import OneDriveClient, UploadedFile, upload_and_share
from app.backend.src.services.reconciliation import reconcile_orphaned_metadata

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/metadata", tags=["metadata"])


def _parse_approver_emails(raw: str | None) -> list[str]:
    """Decode the JSON-encoded ``approverEmails`` form field."""

    if not raw:
        return []
    try:
        emails = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError("approverEmails must be a JSON array of strings") from exc
    if not isinstance(emails, list) or not all(isinstance(email, str) for email in emails):
        raise ValidationError("approverEmails must be a JSON array of strings")
    return [email.strip() for email in emails if email.strip()]


def _read_uploads(files: list[UploadFile], max_bytes: int) -> list[UploadedFile]:
    uploads: list[UploadedFile] = []
    for upload in files:
        content = upload.file.read()
        if len(content) > max_bytes:
            raise ValidationError(
                f"File {upload.filename} exceeds the {max_bytes} byte upload limit"
            )
        uploads.append(
            UploadedFile(
                filename=upload.filename or "attachment",
                content=content,
                content_type=upload.content_type,
            )
        )
    return uploads


@router.post("")
def save_metadata(
    payload: SaveMetadataRequest,
    store: SqlMetadataStore = Depends(get_metadata_store),
) -> dict[str, Any]:
    """Create or replace the metadata document for an approval."""

    if not payload.approval_id:
        raise ValidationError("approvalId is required")
    try:
        document = store.save(
            payload.approval_id,
            payload.metadata.model_dump(by_alias=True, mode="json", exclude_none=True),
        )
    except UpstreamError as exc:
        raise exc.with_label("Failed to save metadata")
    return {"success": True, "data": document}


@router.get("")
def list_metadata(
    creatorEmail: str | None = None,  # noqa: N803
    store: SqlMetadataStore = Depends(get_metadata_store),
) -> dict[str, Any]:
    try:
        documents = store.list(creator_email=creatorEmail)
    except UpstreamError as exc:
        raise exc.with_label("Failed to get metadata")
    return {"success": True, "data": documents}


@router.post("/reconcile")
def reconcile_metadata(
    store: SqlMetadataStore = Depends(get_metadata_store),
    client: GraphApprovalsClient = Depends(get_app_graph_client),
) -> dict[str, Any]:
    """Drop metadata whose approval item was canceled or no longer exists."""

    try:
        summary = reconcile_orphaned_metadata(store, client)
    except UpstreamError as exc:
        raise exc.with_label("Failed to reconcile metadata")
    return {"success": True, "data": summary.as_dict()}


@router.get("/{approval_id}")
def get_metadata(
    approval_id: str,
    store: SqlMetadataStore = Depends(get_metadata_store),
) -> dict[str, Any]:
    try:
        document = store.get(approval_id)
    except UpstreamError as exc:
        raise exc.with_label("Failed to get metadata")
    if document is None:
        raise NotFoundError(f"Metadata not found for approval: {approval_id}", error="Metadata not found")
    return {"success": True, "data": document}


@router.patch("/{approval_id}")
def update_metadata(
    approval_id: str,
    updates: dict[str, Any] = Body(...),
    store: SqlMetadataStore = Depends(get_metadata_store),
) -> dict[str, Any]:
    """Shallow-merge fields into an existing metadata document."""

    try:
        document = store.patch(approval_id, updates)
    except NotFoundError as exc:
        raise exc.with_label("Metadata not found")
    except UpstreamError as exc:
        raise exc.with_label("Failed to update metadata")
    return {"success": True, "data": document}


@router.delete("/{approval_id}")
def delete_metadata(
    approval_id: str,
    store: SqlMetadataStore = Depends(get_metadata_store),
) -> dict[str, Any]:
    try:
        deleted = store.delete(approval_id)
    except UpstreamError as exc:
        raise exc.with_label("Failed to delete metadata")
    if not deleted:
        raise NotFoundError(f"Metadata not found for approval: {approval_id}", error="Metadata not found")
    return {"success": True, "message": "Metadata deleted successfully"}


@router.post("/{approval_id}/attachments")
def upload_attachments(
    approval_id: str,
    files: list[UploadFile] | None = File(default=None),
    accessToken: str | None = Form(default=None),  # noqa: N803
    approverEmails: str | None = Form(default=None),  # noqa: N803
    store: SqlMetadataStore = Depends(get_metadata_store),
    onedrive: OneDriveClient = Depends(get_onedrive_client),
) -> dict[str, Any]:
    """Upload files to the owner's OneDrive and record them as attachments."""

    settings = get_settings()
    if not accessToken:
        raise ValidationError("Access token is required")
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > settings.max_upload_files:
        raise ValidationError(f"At most {settings.max_upload_files} files can be uploaded at once")

    emails = _parse_approver_emails(approverEmails)
    uploads = _read_uploads(files, settings.max_upload_bytes)

    try:
        results = upload_and_share(
            onedrive,
            accessToken,
            uploads,
            emails,
            approval_id,
            root_folder=settings.onedrive_root_folder,
        )
        uploaded_at = datetime.now(timezone.utc)
        attachments = [
            result.to_attachment(uploaded_at).model_dump(by_alias=True, mode="json")
            for result in results
            if result.succeeded
        ]
        document = store.append_attachments(approval_id, attachments)
    except UpstreamError as exc:
        raise exc.with_label("Failed to upload attachments")

    LOGGER.info(
        "attachments_recorded",
        approval_id=approval_id,
        uploaded=len(attachments),
        failed=len(results) - len(attachments),
    )
    return {
        "success": True,
        "data": {
            "metadata": document,
            "uploadedFiles": [
                result.model_dump(by_alias=True, mode="json", exclude_none=True) for result in results
            ],
        },
    }


@router.delete("/{approval_id}/attachments/{file_id}")
def delete_attachment(
    approval_id: str,
    file_id: str,
    access_token: str | None = Depends(get_access_token),
    store: SqlMetadataStore = Depends(get_metadata_store),
    onedrive: OneDriveClient = Depends(get_onedrive_client),
) -> dict[str, Any]:
    """Delete an attachment from OneDrive and drop it from the metadata."""

    if not access_token:
        raise ValidationError("Access token is required")

    document = store.get(approval_id)
    if document is None:
        raise NotFoundError(f"Metadata not found for approval: {approval_id}", error="Metadata not found")
    if not any(item.get("id") == file_id for item in document.get("attachments") or []):
        raise NotFoundError(
            f"Attachment {file_id} not found for approval: {approval_id}",
            error="Attachment not found",
        )

    try:
        onedrive.delete_file(access_token, file_id)
    except UpstreamError as exc:
        if exc.upstream_status != status.HTTP_404_NOT_FOUND:
            raise exc.with_label("Failed to delete attachment")
        LOGGER.warning("attachment_already_removed", approval_id=approval_id, file_id=file_id)

    try:
        updated = store.remove_attachment(approval_id, file_id)
    except UpstreamError as exc:
        raise exc.with_label("Failed to delete attachment")
    return {"success": True, "data": updated}
