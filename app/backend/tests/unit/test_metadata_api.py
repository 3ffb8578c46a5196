"""API tests for the metadata and attachment endpoints."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_approvals.db")

import httpx
import pytest
from fastapi.testclient import TestClient
from httpx import MockTransport

from app.backend.src.core.clients import get_http_client, get_onedrive_client
from app.backend.src.core.security import get_app_token_provider
from app.backend.src.db import engine
from app.backend.src.main import app
from app.backend.src.models.base import Base
from app.backend.src.services.onedrive import OneDriveClient


@pytest.fixture(autouse=True)
def setup_database() -> None:  # type: ignore[no-untyped-def]
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def _drive_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if request.method == "PUT":
        name = path.removesuffix(":/content").rsplit("/", 1)[-1]
        if name == "broken.txt":
            return httpx.Response(500, json={"error": {"message": "Storage unavailable"}})
        return httpx.Response(
            201,
            json={"id": f"file-{name}", "name": name, "size": len(request.content), "webUrl": f"https://od/{name}"},
        )
    if path.endswith("/createLink"):
        return httpx.Response(200, json={"link": {"webUrl": "https://share/link"}})
    if path.endswith("/invite"):
        return httpx.Response(200, json={"value": [{"id": "perm-1"}]})
    return httpx.Response(404, json={"error": {"message": "Not found"}})


@pytest.fixture()
def drive_client() -> TestClient:  # type: ignore[misc]
    app.dependency_overrides[get_onedrive_client] = lambda: OneDriveClient(
        httpx.Client(transport=MockTransport(_drive_handler))
    )
    yield TestClient(app)
    app.dependency_overrides.pop(get_onedrive_client, None)


def test_save_and_get_metadata(client: TestClient) -> None:
    response = client.post(
        "/api/metadata",
        json={
            "approvalId": "A",
            "metadata": {
                "creatorEmail": "alice@contoso.com",
                "dueDate": "2024-05-01",
                "isSequential": True,
                "approversWithStages": [{"email": "bob@contoso.com", "stage": 1}],
                "costCenter": "R&D",
            },
        },
    )

    assert response.status_code == 200
    saved = response.json()
    assert saved["success"] is True
    assert saved["data"]["approvalId"] == "A"

    fetched = client.get("/api/metadata/A").json()["data"]
    assert fetched["creatorEmail"] == "alice@contoso.com"
    assert fetched["approversWithStages"] == [{"email": "bob@contoso.com", "stage": 1}]
    assert fetched["costCenter"] == "R&D"
    assert "updatedAt" in fetched


def test_save_requires_approval_id(client: TestClient) -> None:
    response = client.post("/api/metadata", json={"metadata": {"dueDate": "2024-05-01"}})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request", "message": "approvalId is required"}


def test_missing_metadata_is_404(client: TestClient) -> None:
    response = client.get("/api/metadata/unknown")

    assert response.status_code == 404
    assert response.json() == {
        "error": "Metadata not found",
        "message": "Metadata not found for approval: unknown",
    }


def test_patch_and_delete_missing_metadata_are_404(client: TestClient) -> None:
    assert client.patch("/api/metadata/ghost", json={"dueDate": "2024-01-01"}).status_code == 404
    assert client.delete("/api/metadata/ghost").status_code == 404
    assert client.get("/api/metadata/ghost").status_code == 404


def test_patch_merges_into_existing_document(client: TestClient) -> None:
    client.post("/api/metadata", json={"approvalId": "A", "metadata": {"creatorEmail": "alice@contoso.com"}})

    response = client.patch("/api/metadata/A", json={"dueDate": "2024-06-01"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["creatorEmail"] == "alice@contoso.com"
    assert data["dueDate"] == "2024-06-01"


def test_delete_metadata(client: TestClient) -> None:
    client.post("/api/metadata", json={"approvalId": "A", "metadata": {}})

    response = client.delete("/api/metadata/A")

    assert response.json() == {"success": True, "message": "Metadata deleted successfully"}
    assert client.get("/api/metadata/A").status_code == 404


def test_list_filters_by_creator(client: TestClient) -> None:
    client.post("/api/metadata", json={"approvalId": "A", "metadata": {"creatorEmail": "alice@contoso.com"}})
    client.post("/api/metadata", json={"approvalId": "B", "metadata": {"creatorEmail": "bob@contoso.com"}})

    everything = client.get("/api/metadata").json()["data"]
    bob = client.get("/api/metadata", params={"creatorEmail": "bob@contoso.com"}).json()["data"]

    assert {doc["approvalId"] for doc in everything} == {"A", "B"}
    assert [doc["approvalId"] for doc in bob] == ["B"]


def test_attachments_require_access_token(drive_client: TestClient) -> None:
    response = drive_client.post(
        "/api/metadata/A/attachments",
        files=[("files", ("quote.pdf", b"%PDF", "application/pdf"))],
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Access token is required"


def test_attachments_require_files(drive_client: TestClient) -> None:
    response = drive_client.post("/api/metadata/A/attachments", data={"accessToken": "token"})

    assert response.status_code == 400
    assert response.json()["message"] == "No files uploaded"


def test_attachments_reject_malformed_approver_emails(drive_client: TestClient) -> None:
    response = drive_client.post(
        "/api/metadata/A/attachments",
        data={"accessToken": "token", "approverEmails": "bob@contoso.com"},
        files=[("files", ("quote.pdf", b"%PDF", "application/pdf"))],
    )

    assert response.status_code == 400


def test_attachments_record_only_successful_uploads(drive_client: TestClient) -> None:
    response = drive_client.post(
        "/api/metadata/A/attachments",
        data={"accessToken": "token", "approverEmails": json.dumps(["bob@contoso.com"])},
        files=[
            ("files", ("quote.pdf", b"%PDF", "application/pdf")),
            ("files", ("broken.txt", b"oops", "text/plain")),
        ],
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["status"] for item in data["uploadedFiles"]] == ["uploaded", "failed"]
    attachments = data["metadata"]["attachments"]
    assert [item["name"] for item in attachments] == ["quote.pdf"]
    assert attachments[0]["sharingLink"] == "https://share/link"
    assert attachments[0]["sharedWith"][0]["email"] == "bob@contoso.com"
    assert "uploadedAt" in attachments[0]

    stored = drive_client.get("/api/metadata/A").json()["data"]
    assert [item["id"] for item in stored["attachments"]] == ["file-quote.pdf"]
class AppOnlyGraph:
    """Graph stand-in that only recognises the app's own token."""

    def __init__(self, states: dict[str, str]) -> None:
        self.states = states
        self.authorizations: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.authorizations.append(request.headers["Authorization"])
        approval_id = request.url.path.rsplit("/", 1)[-1]
        if request.headers["Authorization"] != "Bearer app-token" or approval_id not in self.states:
            return httpx.Response(404, json={"error": {"message": "Item not found"}})
        return httpx.Response(200, json={"id": approval_id, "state": self.states[approval_id]})


@pytest.fixture()
def app_graph() -> AppOnlyGraph:  # type: ignore[misc]
    graph = AppOnlyGraph({"live": "inProgress", "canceled": "canceled", "alice-item": "inProgress"})

    def _http_client():  # type: ignore[no-untyped-def]
        with httpx.Client(transport=MockTransport(graph)) as http_client:
            yield http_client

    app.dependency_overrides[get_http_client] = _http_client
    app.dependency_overrides[get_app_token_provider] = lambda: (lambda: "app-token")
    yield graph
    app.dependency_overrides.pop(get_http_client, None)
    app.dependency_overrides.pop(get_app_token_provider, None)


def test_reconcile_removes_canceled_and_missing_approvals(
    client: TestClient, app_graph: AppOnlyGraph
) -> None:
    for approval_id in ("live", "canceled", "gone"):
        client.post("/api/metadata", json={"approvalId": approval_id, "metadata": {}})

    response = client.post("/api/metadata/reconcile")

    assert response.status_code == 200
    summary = response.json()["data"]
    assert summary["checked"] == 3
    assert sorted(summary["deleted"]) == ["canceled", "gone"]
    assert client.get("/api/metadata/live").status_code == 200
    assert client.get("/api/metadata/gone").status_code == 404


def test_reconcile_ignores_caller_token(client: TestClient, app_graph: AppOnlyGraph) -> None:
    client.post(
        "/api/metadata",
        json={"approvalId": "alice-item", "metadata": {"creatorEmail": "alice@contoso.com"}},
    )

    response = client.post(
        "/api/metadata/reconcile", headers={"Authorization": "Bearer mallory-token"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["deleted"] == []
    assert app_graph.authorizations == ["Bearer app-token"]
    assert client.get("/api/metadata/alice-item").json()["data"]["creatorEmail"] == "alice@contoso.com"


def _seed_attachment(client: TestClient) -> None:
    client.post(
        "/api/metadata",
        json={
            "approvalId": "A",
            "metadata": {
                "attachments": [
                    {"id": "file-1", "name": "quote.pdf"},
                    {"id": "file-2", "name": "invoice.pdf"},
                ]
            },
        },
    )


def test_delete_attachment_removes_file_and_record(client: TestClient) -> None:
    _seed_attachment(client)
    deleted: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        deleted.append(request)
        return httpx.Response(204)

    app.dependency_overrides[get_onedrive_client] = lambda: OneDriveClient(
        httpx.Client(transport=MockTransport(handler))
    )
    try:
        response = client.delete(
            "/api/metadata/A/attachments/file-1", headers={"Authorization": "Bearer user-token"}
        )
    finally:
        app.dependency_overrides.pop(get_onedrive_client, None)

    assert response.status_code == 200
    assert [item["id"] for item in response.json()["data"]["attachments"]] == ["file-2"]
    assert deleted[0].method == "DELETE"
    assert deleted[0].url.path == "/v1.0/me/drive/items/file-1"
    assert deleted[0].headers["Authorization"] == "Bearer user-token"
    stored = client.get("/api/metadata/A").json()["data"]
    assert [item["id"] for item in stored["attachments"]] == ["file-2"]


def test_delete_attachment_tolerates_file_already_gone(drive_client: TestClient) -> None:
    _seed_attachment(drive_client)

    response = drive_client.delete(
        "/api/metadata/A/attachments/file-2", headers={"Authorization": "Bearer user-token"}
    )

    assert response.status_code == 200
    assert [item["id"] for item in response.json()["data"]["attachments"]] == ["file-1"]


def test_delete_attachment_errors(drive_client: TestClient) -> None:
    _seed_attachment(drive_client)
    headers = {"Authorization": "Bearer user-token"}

    missing_token = drive_client.delete("/api/metadata/A/attachments/file-1")
    unknown_file = drive_client.delete("/api/metadata/A/attachments/nope", headers=headers)
    unknown_approval = drive_client.delete("/api/metadata/B/attachments/file-1", headers=headers)

    assert missing_token.status_code == 400
    assert missing_token.json()["message"] == "Access token is required"
    assert unknown_file.status_code == 404
    assert unknown_file.json()["error"] == "Attachment not found"
    assert unknown_approval.status_code == 404
    assert unknown_approval.json()["error"] == "Metadata not found"
