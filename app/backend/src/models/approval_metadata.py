"""Approval metadata document model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ApprovalMetadataRecord(Base):
    """Custom fields for a Graph approval item, keyed by the approval id."""

    __tablename__ = "approval_metadata"

    approval_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    creator_email: Mapped[str | None] = mapped_column(String(320), index=True)
    document: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
