"""Seed the development database with a demo metadata document."""

import os

from app.backend.src.db import create_tables, session_scope
from app.backend.src.services.metadata_store import SqlMetadataStore


def main() -> None:
    """Create tables (if needed) and upsert metadata for a demo approval."""

    create_tables()

    approval_id = os.environ.get("DEMO_APPROVAL_ID", "demo-approval")
    creator = os.environ.get("DEMO_CREATOR_EMAIL", "owner@contoso.com")
    with session_scope() as session:
        document = SqlMetadataStore(session).save(
            approval_id,
            {
                "creatorEmail": creator,
                "dueDate": None,
                "isSequential": True,
                "approversWithStages": [
                    {"email": "first.approver@contoso.com", "stage": 1},
                    {"email": "second.approver@contoso.com", "stage": 2},
                ],
                "attachments": [],
            },
        )

    print("Development data ready!")
    print(f"Metadata for {document['approvalId']} (creator {creator}) updated at {document['updatedAt']}")
    if "DEMO_APPROVAL_ID" not in os.environ:
        print("Set DEMO_APPROVAL_ID to attach the demo metadata to a real Graph approval item.")


if __name__ == "__main__":
    main()
