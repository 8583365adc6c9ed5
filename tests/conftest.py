"""Test configuration and fixtures."""

from collections.abc import Callable, Generator
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from bakery.devops_client.client import AzureDevOpsClient
from bakery.devops_client.models import Comment, User, WorkItem

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_client() -> Generator[Callable[[Handler], AzureDevOpsClient]]:
    """Build clients whose requests are answered by a handler function."""
    clients: list[AzureDevOpsClient] = []

    def factory(handler: Handler) -> AzureDevOpsClient:
        client = AzureDevOpsClient(
            organization="testorg",
            pat_token="test-token",
            project="TestProject",
            transport=httpx.MockTransport(handler),
        )
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def sample_work_item() -> WorkItem:
    """Work item with criteria and one comment."""
    created = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
    return WorkItem(
        id=42,
        title="Add login audit trail for admin users",
        description="<p>Do X</p><p>Acceptance Criteria:\nmust do X\nmust log Y</p>",
        acceptance_criteria=["must do X", "must log Y"],
        comments=[
            Comment(
                id=7,
                author=User(display_name="Jane Doe", email="jane@example.com"),
                created_date=created,
                text="<p>Looks good</p>",
            )
        ],
        created_date=created,
        updated_date=created,
        created_by=User(display_name="John Smith", email="john@example.com"),
        state="Active",
        work_item_type="User Story",
        area_path="Project\\Critical",
        iteration_path="Project\\Sprint 1",
    )


@pytest.fixture
def temp_base_dir(tmp_path: Path) -> Path:
    """Create temporary base directory for storage."""
    base_dir = tmp_path / "devops-data"
    base_dir.mkdir()
    return base_dir
