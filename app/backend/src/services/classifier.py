"""Partition approval items by the caller's role and completion state.

An item lands in an approver bucket only when the caller approves it without
owning it; owner buckets ignore approver membership. Within each bucket the
order of the incoming list is preserved.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from app.backend.src.schemas.approval import ApprovalItem, normalize_identity


class Bucket(str, Enum):
    APPROVER_PENDING = "approverPending"
    APPROVER_COMPLETED = "approverCompleted"
    OWNER_PENDING = "ownerPending"
    OWNER_COMPLETED = "ownerCompleted"


class Action(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


_ACTIONS: dict[Bucket, tuple[Action, ...]] = {
    Bucket.APPROVER_PENDING: (Action.APPROVE, Action.REJECT),
    Bucket.APPROVER_COMPLETED: (),
    Bucket.OWNER_PENDING: (Action.CANCEL,),
    Bucket.OWNER_COMPLETED: (),
}


@dataclass
class ClassifiedApprovals:
    approver_pending: list[ApprovalItem] = field(default_factory=list)
    approver_completed: list[ApprovalItem] = field(default_factory=list)
    owner_pending: list[ApprovalItem] = field(default_factory=list)
    owner_completed: list[ApprovalItem] = field(default_factory=list)

    def bucket(self, name: Bucket) -> list[ApprovalItem]:
        return {
            Bucket.APPROVER_PENDING: self.approver_pending,
            Bucket.APPROVER_COMPLETED: self.approver_completed,
            Bucket.OWNER_PENDING: self.owner_pending,
            Bucket.OWNER_COMPLETED: self.owner_completed,
        }[name]


def classify(items: Iterable[ApprovalItem], current_user_id: str) -> ClassifiedApprovals:
    """Sort ``items`` into the four role/state buckets for ``current_user_id``."""

    result = ClassifiedApprovals()
    if not normalize_identity(current_user_id):
        return result

    for item in items:
        is_owner = item.is_owned_by(current_user_id)
        completed = item.is_completed
        if item.has_approver(current_user_id) and not is_owner:
            target = result.approver_completed if completed else result.approver_pending
            target.append(item)
        if is_owner:
            target = result.owner_completed if completed else result.owner_pending
            target.append(item)
    return result


def allowed_actions(bucket: Bucket) -> list[str]:
    """Return the UI actions exposed for items shown under ``bucket``."""

    return [action.value for action in _ACTIONS[bucket]]


def stage_for(metadata: Mapping[str, Any] | None, approver_id: str) -> int | None:
    """Return the advisory stage recorded for an approver, if any.

    Stages are display-only: nothing prevents a later stage from responding
    before an earlier one.
    """

    if not metadata or not metadata.get("isSequential"):
        return None
    canonical = normalize_identity(approver_id)
    for entry in metadata.get("approversWithStages") or []:
        if normalize_identity(entry.get("email")) == canonical:
            return entry.get("stage")
    return None


def is_overdue(
    item: ApprovalItem,
    metadata: Mapping[str, Any] | None,
    *,
    now: datetime | None = None,
) -> bool:
    """True when a pending item's due date lies in the past."""

    if item.is_completed or not metadata or not metadata.get("dueDate"):
        return False
    try:
        due = datetime.fromisoformat(str(metadata["dueDate"]).replace("Z", "+00:00"))
    except ValueError:
        return False
    if due.tzinfo is None:
        due = due.replace(tzinfo=timezone.utc)
    return due < (now or datetime.now(timezone.utc))


__all__ = [
    "Action",
    "Bucket",
    "ClassifiedApprovals",
    "allowed_actions",
    "classify",
    "is_overdue",
    "stage_for",
]
