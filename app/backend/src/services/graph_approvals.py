"""Thin client for the Microsoft Graph Approvals API."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import structlog

from app.backend.src.core.errors import UpstreamError
from app.backend.src.schemas.approval import ApprovalItem, ApprovalItemRequest, Decision
from app.backend.src.services.metrics import graph_requests_total

LOGGER = structlog.get_logger(__name__)

TokenProvider = Callable[[], str]
APPROVAL_ITEMS_PATH = "/solutions/approval/approvalItems"


def extract_error_message(response: httpx.Response) -> str:
    """Return the Graph ``error.message`` or a status-line fallback."""

    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    text = response.text.strip()
    if text:
        return f"Request failed with status code {response.status_code}: {text}"
    return f"Request failed with status code {response.status_code}"


def collection_values(payload: Any) -> list[dict[str, Any]]:
    """Unwrap an OData collection payload (``{"value": [...]}``)."""

    if isinstance(payload, dict):
        values = payload.get("value") or []
    elif isinstance(payload, list):
        values = payload
    else:
        values = []
    return [value for value in values if isinstance(value, dict)]


class GraphApprovalsClient:
    """Forward approval operations to Graph with bearer authorization."""

    def __init__(
        self,
        http_client: httpx.Client,
        token_provider: TokenProvider,
        *,
        base_url: str = "https://graph.microsoft.com",
        version: str = "beta",
    ) -> None:
        self.http_client = http_client
        self.token_provider = token_provider
        self.root = f"{base_url.rstrip('/')}/{version.strip('/')}{APPROVAL_ITEMS_PATH}"

    def _request(
        self,
        operation: str,
        method: str,
        path: str = "",
        *,
        json: Any | None = None,
        approval_id: str | None = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {self.token_provider()}"}
        try:
            response = self.http_client.request(
                method, f"{self.root}{path}", headers=headers, json=json
            )
        except httpx.HTTPError as exc:
            graph_requests_total.labels(operation=operation, outcome="error").inc()
            LOGGER.error(
                "graph_request_failed",
                operation=operation,
                approval_id=approval_id,
                error=str(exc),
            )
            raise UpstreamError(str(exc)) from exc

        if response.is_error:
            graph_requests_total.labels(operation=operation, outcome="error").inc()
            message = extract_error_message(response)
            LOGGER.error(
                "graph_request_rejected",
                operation=operation,
                approval_id=approval_id,
                status_code=response.status_code,
                message=message,
            )
            raise UpstreamError(message, upstream_status=response.status_code)

        graph_requests_total.labels(operation=operation, outcome="ok").inc()
        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            LOGGER.error(
                "graph_response_invalid",
                operation=operation,
                approval_id=approval_id,
                status_code=response.status_code,
            )
            raise UpstreamError(
                "Invalid JSON response from Graph", upstream_status=response.status_code
            ) from exc

    def list_approvals(self) -> dict[str, Any]:
        return self._request("list_approvals", "GET")

    def list_approval_items(self) -> list[ApprovalItem]:
        """Return the caller-visible approval items as parsed models."""

        return [ApprovalItem.model_validate(raw) for raw in collection_values(self.list_approvals())]

    def get_approval(self, approval_id: str) -> dict[str, Any]:
        return self._request(
            "get_approval", "GET", f"/{approval_id}", approval_id=approval_id
        )

    def create_approval(self, payload: dict[str, Any]) -> dict[str, Any]:
        result = self._request("create_approval", "POST", json=payload)
        LOGGER.info("approval_created", approval_id=result.get("id"))
        return result

    def list_requests(self, approval_id: str) -> list[ApprovalItemRequest]:
        payload = self._request(
            "list_requests", "GET", f"/{approval_id}/requests", approval_id=approval_id
        )
        return [ApprovalItemRequest.model_validate(raw) for raw in collection_values(payload)]

    def post_response(
        self, approval_id: str, decision: Decision, comments: str | None = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"response": decision.value.capitalize()}
        if comments:
            body["comments"] = comments
        result = self._request(
            "post_response",
            "POST",
            f"/{approval_id}/responses",
            json=body,
            approval_id=approval_id,
        )
        LOGGER.info("approval_response_submitted", approval_id=approval_id, decision=decision.value)
        return result

    def cancel_approval(self, approval_id: str) -> dict[str, Any]:
        result = self._request(
            "cancel_approval", "POST", f"/{approval_id}/cancel", json={}, approval_id=approval_id
        )
        LOGGER.info("approval_canceled", approval_id=approval_id)
        return result

    def list_responses(self, approval_id: str) -> dict[str, Any]:
        return self._request(
            "list_responses", "GET", f"/{approval_id}/responses", approval_id=approval_id
        )


__all__ = [
    "APPROVAL_ITEMS_PATH",
    "GraphApprovalsClient",
    "TokenProvider",
    "collection_values",
    "extract_error_message",
]
