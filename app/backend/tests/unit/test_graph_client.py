"""Tests for the Graph Approvals client using an httpx mock transport."""

from __future__ import annotations

import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

import httpx
import pytest
from httpx import MockTransport

from app.backend.src.core.errors import UpstreamError
from app.backend.src.schemas.approval import Decision
from app.backend.src.services.graph_approvals import GraphApprovalsClient

ROOT = "https://graph.microsoft.com/beta/solutions/approval/approvalItems"


def _client(handler) -> GraphApprovalsClient:  # type: ignore[no-untyped-def]
    return GraphApprovalsClient(
        httpx.Client(transport=MockTransport(handler)),
        lambda: "token-123",
    )


def test_list_approvals_sends_bearer_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"value": [{"id": "A", "result": "pending"}]})

    payload = _client(handler).list_approvals()

    assert payload == {"value": [{"id": "A", "result": "pending"}]}
    assert str(seen[0].url) == ROOT
    assert seen[0].headers["Authorization"] == "Bearer token-123"


def test_list_approval_items_parses_models() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "value": [
                    {
                        "id": "A",
                        "owner": {"user": {"id": "alice"}},
                        "approvers": [{"user": {"id": "bob"}}],
                        "state": "completed",
                    }
                ]
            },
        )

    items = _client(handler).list_approval_items()

    assert [item.id for item in items] == ["A"]
    assert items[0].is_completed is True
    assert items[0].has_approver("BOB")


def test_post_response_targets_item_level_endpoint() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": "resp-1"})

    result = _client(handler).post_response("A", Decision.REJECT, "Over budget")

    assert result == {"id": "resp-1"}
    assert seen[0].method == "POST"
    assert str(seen[0].url) == f"{ROOT}/A/responses"
    assert json.loads(seen[0].content) == {"response": "Reject", "comments": "Over budget"}


def test_cancel_accepts_empty_accepted_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == f"{ROOT}/A/cancel"
        return httpx.Response(202)

    assert _client(handler).cancel_approval("A") == {}


def test_list_requests_unwraps_collection() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == f"{ROOT}/A/requests"
        return httpx.Response(
            200,
            json={"value": [{"id": "r1", "approver": {"user": {"id": "bob"}}, "status": "pending"}]},
        )

    requests = _client(handler).list_requests("A")

    assert len(requests) == 1
    assert requests[0].is_open is True


def test_upstream_error_message_is_passed_through() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            403,
            json={"error": {"code": "Forbidden", "message": "Insufficient privileges"}},
        )

    with pytest.raises(UpstreamError) as excinfo:
        _client(handler).get_approval("A")

    assert excinfo.value.message == "Insufficient privileges"
    assert excinfo.value.upstream_status == 403
    assert excinfo.value.status_code == 500


def test_transport_error_becomes_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError, match="connection refused"):
        _client(handler).list_responses("A")


def test_non_json_success_body_becomes_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(UpstreamError) as excinfo:
        _client(handler).get_approval("A")

    assert excinfo.value.message == "Invalid JSON response from Graph"
    assert excinfo.value.upstream_status == 200
