"""Document-store adapter for custom approval metadata."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.backend.src.core.errors import NotFoundError, UpstreamError
from app.backend.src.models import ApprovalMetadataRecord
from app.backend.src.services.metrics import metadata_operations_total

LOGGER = structlog.get_logger(__name__)

Document = dict[str, Any]


class MetadataStore(Protocol):
    """Opaque JSON documents keyed by approval id."""

    def save(self, approval_id: str, document: Mapping[str, Any]) -> Document:
        """Upsert the document and stamp ``updatedAt``."""

    def get(self, approval_id: str) -> Document | None:
        """Return the stored document or ``None``."""

    def list(self, creator_email: str | None = None) -> list[Document]:
        """Return every document, optionally filtered by creator."""

    def delete(self, approval_id: str) -> bool:
        """Delete the document, returning whether it existed."""

    def patch(self, approval_id: str, updates: Mapping[str, Any]) -> Document:
        """Shallow-merge fields into an existing document."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SqlMetadataStore:
    """:class:`MetadataStore` backed by the ``approval_metadata`` table."""

    def __init__(self, session: Session, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self.session = session
        self.clock = clock

    def _commit(self, operation: str, approval_id: str | None = None) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error(
                "metadata_store_write_failed",
                operation=operation,
                approval_id=approval_id,
                error=str(exc),
            )
            raise UpstreamError(str(exc)) from exc
        metadata_operations_total.labels(operation=operation).inc()

    def _load(self, approval_id: str) -> ApprovalMetadataRecord | None:
        try:
            return self.session.get(ApprovalMetadataRecord, approval_id)
        except SQLAlchemyError as exc:
            LOGGER.error("metadata_store_read_failed", approval_id=approval_id, error=str(exc))
            raise UpstreamError(str(exc)) from exc

    def _write(
        self,
        record: ApprovalMetadataRecord | None,
        approval_id: str,
        fields: Mapping[str, Any],
    ) -> Document:
        now = self.clock()
        created_at = record.document.get("createdAt") if record is not None else None
        document: Document = {
            **fields,
            "id": approval_id,
            "approvalId": approval_id,
            "createdAt": created_at or now.isoformat(),
            "updatedAt": now.isoformat(),
        }
        if record is None:
            record = ApprovalMetadataRecord(approval_id=approval_id, created_at=now)
            self.session.add(record)
        record.document = document
        record.creator_email = document.get("creatorEmail")
        record.updated_at = now
        return document

    def save(self, approval_id: str, document: Mapping[str, Any]) -> Document:
        record = self._load(approval_id)
        saved = self._write(record, approval_id, document)
        self._commit("save", approval_id)
        LOGGER.info("metadata_saved", approval_id=approval_id)
        return saved

    def get(self, approval_id: str) -> Document | None:
        record = self._load(approval_id)
        if record is None:
            return None
        return dict(record.document)

    def list(self, creator_email: str | None = None) -> list[Document]:
        statement = select(ApprovalMetadataRecord).order_by(
            ApprovalMetadataRecord.created_at, ApprovalMetadataRecord.approval_id
        )
        if creator_email:
            statement = statement.where(ApprovalMetadataRecord.creator_email == creator_email)
        try:
            records = self.session.scalars(statement).all()
        except SQLAlchemyError as exc:
            LOGGER.error("metadata_store_query_failed", error=str(exc))
            raise UpstreamError(str(exc)) from exc
        return [dict(record.document) for record in records]

    def delete(self, approval_id: str) -> bool:
        record = self._load(approval_id)
        if record is None:
            return False
        self.session.delete(record)
        self._commit("delete", approval_id)
        LOGGER.info("metadata_deleted", approval_id=approval_id)
        return True

    def patch(self, approval_id: str, updates: Mapping[str, Any]) -> Document:
        record = self._load(approval_id)
        if record is None:
            raise NotFoundError(f"Metadata not found for approval: {approval_id}")
        merged = {**record.document, **updates}
        saved = self._write(record, approval_id, merged)
        self._commit("patch", approval_id)
        LOGGER.info("metadata_updated", approval_id=approval_id, fields=sorted(updates))
        return saved

    def append_attachments(
        self, approval_id: str, attachments: Iterable[Mapping[str, Any]]
    ) -> Document:
        """Append attachment records, creating the document when absent."""

        existing = self.get(approval_id) or {"attachments": []}
        combined = [*(existing.get("attachments") or []), *(dict(item) for item in attachments)]
        return self.save(approval_id, {**existing, "attachments": combined})

    def remove_attachment(self, approval_id: str, file_id: str) -> Document:
        record = self._load(approval_id)
        if record is None:
            raise NotFoundError(f"Metadata not found for approval: {approval_id}")
        attachments = record.document.get("attachments") or []
        kept = [item for item in attachments if item.get("id") != file_id]
        if len(kept) == len(attachments):
            raise NotFoundError(f"Attachment {file_id} not found for approval: {approval_id}")
        saved = self._write(record, approval_id, {**record.document, "attachments": kept})
        self._commit("remove_attachment", approval_id)
        LOGGER.info("attachment_removed", approval_id=approval_id, file_id=file_id)
        return saved


__all__ = ["Document", "MetadataStore", "SqlMetadataStore"]
