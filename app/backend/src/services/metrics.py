"""Prometheus metric definitions for the approvals backend."""

from __future__ import annotations

from prometheus_client import Counter

graph_requests_total = Counter(
    "graph_requests_total",
    "Outbound Graph Approvals API calls by operation and outcome.",
    labelnames=["operation", "outcome"],
)

attachment_uploads_total = Counter(
    "attachment_uploads_total",
    "Files processed by the OneDrive attachment uploader.",
    labelnames=["outcome"],
)

metadata_operations_total = Counter(
    "metadata_operations_total",
    "Committed writes against the metadata document store.",
    labelnames=["operation"],
)

reconciled_metadata_total = Counter(
    "reconciled_metadata_total",
    "Orphaned metadata documents removed by reconciliation.",
)

__all__ = [
    "attachment_uploads_total",
    "graph_requests_total",
    "metadata_operations_total",
    "reconciled_metadata_total",
]
