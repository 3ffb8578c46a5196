"""ORM models exposed for easy imports."""

from .approval_metadata import ApprovalMetadataRecord

__all__ = ["ApprovalMetadataRecord"]
