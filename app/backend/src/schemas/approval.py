"""Approval schemas mirroring the Graph ``approvalItem`` resources."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

PENDING_REQUEST_STATUSES = frozenset({"pending", "notstarted", "inprogress"})


def normalize_identity(value: str | None) -> str:
    """Return the canonical, case-insensitive form of a user identity."""

    return (value or "").strip().casefold()


class GraphModel(BaseModel):
    """Base for Graph payloads: camelCase aliases, unknown fields kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ApprovalType(str, Enum):
    ANY_APPROVER = "basic"
    ALL_MUST_APPROVE = "basicAwaitAll"


class ApprovalState(str, Enum):
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    CANCELED = "canceled"
    PENDING = "pending"
    CREATED = "created"


class ApprovalResult(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @classmethod
    def parse(cls, raw: str) -> "Decision":
        """Accept both the imperative and the past-tense spelling."""

        aliases = {"approved": cls.APPROVE, "rejected": cls.REJECT}
        candidate = (raw or "").strip().lower()
        if candidate in aliases:
            return aliases[candidate]
        return cls(candidate)


class UserIdentity(GraphModel):
    id: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")


class ApprovalIdentity(GraphModel):
    """Graph ``approvalIdentitySet``; only the user leg is used."""

    user: UserIdentity | None = None

    @property
    def canonical_id(self) -> str:
        return normalize_identity(self.user.id if self.user else None)


class ApproverResponse(GraphModel):
    response: str | None = None
    created_date_time: datetime | None = Field(default=None, alias="createdDateTime")
    comments: str | None = None
    created_by: ApprovalIdentity | None = Field(default=None, alias="createdBy")


class ApprovalItem(GraphModel):
    """A workflow record owned by the Graph Approvals API."""

    id: str
    display_name: str | None = Field(default=None, alias="displayName")
    description: str | None = None
    approval_type: str | None = Field(default=None, alias="approvalType")
    created_date_time: datetime | None = Field(default=None, alias="createdDateTime")
    completed_date_time: datetime | None = Field(default=None, alias="completedDateTime")
    owner: ApprovalIdentity | None = None
    approvers: list[ApprovalIdentity] = Field(default_factory=list)
    responses: list[ApproverResponse] = Field(default_factory=list)
    result: str | None = None
    state: str | None = None

    @field_validator("approvers", "responses", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return value if value is not None else []

    @property
    def is_completed(self) -> bool:
        """Completion is derived from ``state`` and ``result``, never stored."""

        if self.state == ApprovalState.COMPLETED.value:
            return True
        return bool(self.result) and self.result != ApprovalResult.PENDING.value

    def is_owned_by(self, user_id: str) -> bool:
        canonical = normalize_identity(user_id)
        return bool(canonical) and self.owner is not None and self.owner.canonical_id == canonical

    def has_approver(self, user_id: str) -> bool:
        canonical = normalize_identity(user_id)
        if not canonical:
            return False
        return any(approver.canonical_id == canonical for approver in self.approvers)


class ApprovalItemRequest(GraphModel):
    """Per-approver request attached to an approval item."""

    id: str | None = None
    approver: ApprovalIdentity | None = None
    status: str | None = None
    is_completed: bool = Field(default=False, alias="isCompleted")
    created_date_time: datetime | None = Field(default=None, alias="createdDateTime")

    @field_validator("is_completed", mode="before")
    @classmethod
    def _none_as_false(cls, value: Any) -> Any:
        return bool(value)

    @property
    def is_open(self) -> bool:
        return normalize_identity(self.status) in PENDING_REQUEST_STATUSES and not self.is_completed


class CreateApprovalRequest(GraphModel):
    display_name: str = Field(alias="displayName")
    description: str | None = None
    approval_type: ApprovalType = Field(default=ApprovalType.ANY_APPROVER, alias="approvalType")
    allow_email_notification: bool = Field(default=True, alias="allowEmailNotification")
    approvers: list[ApprovalIdentity]
    owner: ApprovalIdentity | None = None

    @field_validator("approvers")
    @classmethod
    def _require_approvers(cls, value: list[ApprovalIdentity]) -> list[ApprovalIdentity]:
        if not value:
            raise ValueError("at least one approver is required")
        return value


class RespondPayload(BaseModel):
    response: str
    comments: str | None = None


class ApprovalWithActions(BaseModel):
    item: dict[str, Any]
    actions: list[str]
    overdue: bool = False
    stage: int | None = None


class ApprovalDashboard(BaseModel):
    approver_pending: list[ApprovalWithActions] = Field(serialization_alias="approverPending")
    approver_completed: list[ApprovalWithActions] = Field(serialization_alias="approverCompleted")
    owner_pending: list[ApprovalWithActions] = Field(serialization_alias="ownerPending")
    owner_completed: list[ApprovalWithActions] = Field(serialization_alias="ownerCompleted")


__all__ = [
    "ApprovalDashboard",
    "ApprovalIdentity",
    "ApprovalItem",
    "ApprovalItemRequest",
    "ApprovalResult",
    "ApprovalState",
    "ApprovalType",
    "ApprovalWithActions",
    "ApproverResponse",
    "CreateApprovalRequest",
    "Decision",
    "RespondPayload",
    "UserIdentity",
    "normalize_identity",
]
