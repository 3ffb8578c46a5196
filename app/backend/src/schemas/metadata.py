"""Pydantic schemas for custom approval metadata and attachments."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ApproverStage(BaseModel):
    """Advisory position of an approver in a sequential approval."""

    model_config = ConfigDict(extra="allow")

    email: str
    stage: int


class SharingGrant(BaseModel):
    email: str
    status: Literal["granted", "failed"]
    permission_id: str | None = Field(default=None, serialization_alias="permissionId")
    error: str | None = None


class Attachment(BaseModel):
    """File uploaded to OneDrive and linked to an approval."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    name: str
    size: int | None = None
    web_url: str | None = Field(default=None, alias="webUrl")
    download_url: str | None = Field(default=None, alias="downloadUrl")
    sharing_link: str | None = Field(default=None, alias="sharingLink")
    shared_with: list[SharingGrant] = Field(default_factory=list, alias="sharedWith")
    uploaded_at: str | None = Field(default=None, alias="uploadedAt")


class AttachmentResult(BaseModel):
    """Outcome of uploading and sharing a single file."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    status: Literal["uploaded", "failed"] = "uploaded"
    id: str | None = None
    size: int | None = None
    web_url: str | None = Field(default=None, alias="webUrl")
    download_url: str | None = Field(default=None, alias="downloadUrl")
    created_date_time: str | None = Field(default=None, alias="createdDateTime")
    sharing_link: str | None = Field(default=None, alias="sharingLink")
    shared_with: list[SharingGrant] = Field(default_factory=list, alias="sharedWith")
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "uploaded"

    def to_attachment(self, uploaded_at: datetime) -> Attachment:
        return Attachment(
            id=self.id or "",
            name=self.name,
            size=self.size,
            web_url=self.web_url,
            download_url=self.download_url,
            sharing_link=self.sharing_link,
            shared_with=self.shared_with,
            uploaded_at=uploaded_at.isoformat(),
        )


class ApprovalMetadata(BaseModel):
    """Custom fields kept beside a Graph approval item."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    creator_email: str | None = Field(default=None, alias="creatorEmail")
    due_date: str | None = Field(default=None, alias="dueDate")
    is_sequential: bool = Field(default=False, alias="isSequential")
    approvers_with_stages: list[ApproverStage] = Field(
        default_factory=list, alias="approversWithStages"
    )
    attachments: list[Attachment] = Field(default_factory=list)


class SaveMetadataRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    approval_id: str | None = Field(default=None, alias="approvalId")
    metadata: ApprovalMetadata = Field(default_factory=ApprovalMetadata)


__all__ = [
    "ApprovalMetadata",
    "ApproverStage",
    "Attachment",
    "AttachmentResult",
    "SaveMetadataRequest",
    "SharingGrant",
]
