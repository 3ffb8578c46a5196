"""OneDrive helpers for approval attachments."""

from __future__ import annotations

import mimetypes
import re
import urllib.parse
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from app.backend.src.core.errors import UpstreamError, ValidationError
from app.backend.src.schemas.metadata import AttachmentResult, SharingGrant
from app.backend.src.services.graph_approvals import extract_error_message
from app.backend.src.services.metrics import attachment_uploads_total

LOGGER = structlog.get_logger(__name__)

INVITATION_MESSAGE = "This file is attached to an approval request that requires your review."


@dataclass
class UploadedFile:
    """In-memory file received from a multipart request."""

    filename: str
    content: bytes
    content_type: str | None = None


def sanitize_filename(filename: str) -> str:
    """Return a drive-safe file name without path separators."""

    safe_name = re.sub(r"[\\/:]+", "_", filename or "").strip()
    safe_name = re.sub(r"_+", "_", safe_name)
    return safe_name or "attachment"


def _determine_content_type(filename: str, content_type: str | None = None) -> str:
    """Infer a best-effort content type for uploads."""
    return (
        content_type
        or mimetypes.guess_type(filename)[0]
        or "application/octet-stream"
    )


def approval_folder(approval_id: str, root_folder: str = "/Approvals") -> str:
    return f"/{root_folder.strip('/')}/{approval_id}"


class OneDriveClient:
    """Upload and sharing primitives against the signed-in user's drive."""

    def __init__(
        self,
        http_client: httpx.Client,
        *,
        base_url: str = "https://graph.microsoft.com",
        version: str = "v1.0",
    ) -> None:
        self.http_client = http_client
        self.root = f"{base_url.rstrip('/')}/{version.strip('/')}/me/drive"

    def _send(
        self,
        method: str,
        url: str,
        token: str,
        *,
        failure_prefix: str,
        json: Any | None = None,
        content: bytes | None = None,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"}
        if content_type:
            headers["Content-Type"] = content_type
        try:
            response = self.http_client.request(
                method, url, headers=headers, json=json, content=content
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"{failure_prefix}: {exc}") from exc
        if response.is_error:
            raise UpstreamError(
                f"{failure_prefix}: {extract_error_message(response)}",
                upstream_status=response.status_code,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"{failure_prefix}: invalid JSON response from OneDrive",
                upstream_status=response.status_code,
            ) from exc

    def upload_file(self, token: str, file: UploadedFile, folder_path: str) -> dict[str, Any]:
        """PUT the file under ``folder_path`` and return its drive metadata."""

        name = sanitize_filename(file.filename)
        drive_path = urllib.parse.quote(f"{folder_path.rstrip('/')}/{name}")
        LOGGER.info("onedrive_upload_started", path=f"{folder_path}/{name}", size=len(file.content))
        data = self._send(
            "PUT",
            f"{self.root}/root:{drive_path}:/content",
            token,
            failure_prefix="Failed to upload file to OneDrive",
            content=file.content,
            content_type=_determine_content_type(name, file.content_type),
        )
        LOGGER.info("onedrive_upload_completed", file_id=data.get("id"))
        return {
            "id": data.get("id"),
            "name": data.get("name", name),
            "size": data.get("size"),
            "webUrl": data.get("webUrl"),
            "downloadUrl": data.get("@microsoft.graph.downloadUrl"),
            "createdDateTime": data.get("createdDateTime"),
        }

    def create_sharing_link(self, token: str, file_id: str) -> str:
        """Create an organization-scoped, view-only link."""

        data = self._send(
            "POST",
            f"{self.root}/items/{file_id}/createLink",
            token,
            failure_prefix="Failed to share file",
            json={"type": "view", "scope": "organization"},
        )
        link = (data.get("link") or {}).get("webUrl")
        if not link:
            raise UpstreamError("Failed to share file: sharing link missing from response")
        return link

    def invite(self, token: str, file_id: str, email: str) -> str | None:
        """Grant read access to one recipient and return the permission id."""

        data = self._send(
            "POST",
            f"{self.root}/items/{file_id}/invite",
            token,
            failure_prefix=f"Failed to grant access to {email}",
            json={
                "recipients": [{"email": email}],
                "message": INVITATION_MESSAGE,
                "requireSignIn": True,
                "sendInvitation": True,
                "roles": ["read"],
            },
        )
        permissions = data.get("value") or []
        return permissions[0].get("id") if permissions else None

    def share_with_approvers(
        self, token: str, file_id: str, emails: Iterable[str]
    ) -> tuple[str, list[SharingGrant]]:
        """Create the sharing link, then invite each approver independently."""

        link = self.create_sharing_link(token, file_id)
        grants: list[SharingGrant] = []
        for email in emails:
            try:
                permission_id = self.invite(token, file_id, email)
            except UpstreamError as exc:
                LOGGER.warning("onedrive_grant_failed", file_id=file_id, email=email, error=exc.message)
                grants.append(SharingGrant(email=email, status="failed", error=exc.message))
                continue
            grants.append(SharingGrant(email=email, status="granted", permission_id=permission_id))
        return link, grants

    def delete_file(self, token: str, file_id: str) -> bool:
        self._send(
            "DELETE",
            f"{self.root}/items/{file_id}",
            token,
            failure_prefix="Failed to delete file",
        )
        LOGGER.info("onedrive_file_deleted", file_id=file_id)
        return True


def upload_and_share(
    client: OneDriveClient,
    token: str | None,
    files: Sequence[UploadedFile],
    approver_emails: Sequence[str],
    approval_id: str,
    *,
    root_folder: str = "/Approvals",
) -> list[AttachmentResult]:
    """Upload each file in turn and share it with the approvers.

    A failing file is reported as ``status="failed"`` and processing moves on
    to the next one.
    """

    if not token:
        raise ValidationError("Access token is required")

    folder = approval_folder(approval_id, root_folder)
    results: list[AttachmentResult] = []
    for file in files:
        try:
            uploaded = client.upload_file(token, file, folder)
            link, grants = client.share_with_approvers(token, uploaded["id"], approver_emails)
        except UpstreamError as exc:
            LOGGER.error(
                "attachment_processing_failed",
                approval_id=approval_id,
                file_name=file.filename,
                error=exc.message,
            )
            attachment_uploads_total.labels(outcome="failed").inc()
            results.append(AttachmentResult(name=file.filename, status="failed", error=exc.message))
            continue

        attachment_uploads_total.labels(outcome="uploaded").inc()
        results.append(
            AttachmentResult(
                id=uploaded["id"],
                name=uploaded["name"],
                size=uploaded["size"],
                web_url=uploaded["webUrl"],
                download_url=uploaded["downloadUrl"],
                created_date_time=uploaded["createdDateTime"],
                sharing_link=link,
                shared_with=grants,
            )
        )
    return results


__all__ = [
    "OneDriveClient",
    "UploadedFile",
    "approval_folder",
    "sanitize_filename",
    "upload_and_share",
]
