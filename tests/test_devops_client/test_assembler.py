"""Tests for work item assembly."""

from pathlib import Path
from unittest.mock import Mock

import httpx
import pytest

from bakery.devops_client.assembler import (
    WorkItemAssembler,
    safe_filename,
    unique_filename,
    user_from_field,
)
from bakery.devops_client.client import (
    AzureDevOpsClient,
    DevOpsHTTPError,
    DevOpsTransportError,
    DownloadedFile,
)
from bakery.devops_client.models import CommentPayload, User, WorkItemPayload
from bakery.storage.manager import StorageManager
from bakery.utils.content import clean_html

ATTACHMENT_OK = "https://dev.azure.com/testorg/_apis/wit/attachments/ok"
ATTACHMENT_BROKEN = "https://dev.azure.com/testorg/_apis/wit/attachments/broken"
DESCRIPTION = "<p>Do X</p><p>Acceptance Criteria:\nmust do X\nmust log Y</p>"


def item_payload(**overrides: object) -> dict:
    payload = {
        "id": 42,
        "rev": 1,
        "fields": {
            "System.Title": "Audit trail",
            "System.Description": DESCRIPTION,
            "System.State": "Active",
            "System.WorkItemType": "User Story",
            "System.AreaPath": "Project\\Critical",
            "System.IterationPath": "Project\\Sprint 1",
            "System.CreatedDate": "2024-01-01T10:00:00Z",
            "System.ChangedDate": "2024-01-02T10:00:00Z",
            "System.CreatedBy": {
                "displayName": "John Smith",
                "uniqueName": "john@example.com",
                "url": "https://vssps.dev.azure.com/_apis/Identities/1",
            },
        },
        "relations": [
            {
                "rel": "AttachedFile",
                "url": ATTACHMENT_OK,
                "attributes": {"name": "design notes.pdf"},
            },
            {
                "rel": "AttachedFile",
                "url": ATTACHMENT_BROKEN,
                "attributes": {"name": "broken.txt"},
            },
            {"rel": "System.LinkTypes.Hierarchy-Reverse", "url": "https://x/7"},
        ],
    }
    payload.update(overrides)
    return payload


class TestUserFromField:
    """Test identity field parsing."""

    def test_identity_object(self) -> None:
        user = user_from_field(
            {"displayName": "Jane Doe", "uniqueName": "jane@example.com", "url": "u"}
        )
        assert user == User(display_name="Jane Doe", email="jane@example.com", url="u")

    def test_identity_object_without_address(self) -> None:
        user = user_from_field({"displayName": "Build Service", "uniqueName": "svc"})
        assert user is not None
        assert user.email == ""

    def test_name_and_address_string(self) -> None:
        user = user_from_field("Jane Doe <jane@example.com>")
        assert user == User(
            display_name="Jane Doe",
            email="jane@example.com",
            url="mailto:jane@example.com",
        )

    def test_plain_address_string(self) -> None:
        user = user_from_field("jane@example.com")
        assert user is not None
        assert user.display_name == "jane"
        assert user.email == "jane@example.com"

    @pytest.mark.parametrize("value", [None, "", {}, {"uniqueName": "x"}, 5])
    def test_missing_identity(self, value: object) -> None:
        assert user_from_field(value) is None


class TestSafeFilename:
    """Test attachment filename sanitising."""

    def test_replaces_unsafe_characters(self) -> None:
        assert safe_filename("design notes (v2).pdf") == "design_notes__v2_.pdf"

    def test_path_separators(self) -> None:
        assert "/" not in safe_filename("../../etc/passwd")

    def test_empty_name(self) -> None:
        assert safe_filename("") == "attachment"

    def test_unique_filename(self) -> None:
        used: set[str] = set()

        names = [unique_filename(n, used) for n in ["a.txt", "a.txt", "a.txt", "b"]]

        assert names == ["a.txt", "a_2.txt", "a_3.txt", "b"]
        assert used == set(names)


class TestWorkItemAssembler:
    """Test WorkItemAssembler against a fake Azure DevOps server."""

    @pytest.fixture
    def tickets_root(self, tmp_path: Path) -> Path:
        return tmp_path / "Tickets"

    def test_end_to_end(self, make_client, tickets_root: Path) -> None:
        """Test a full assembly with one failing attachment and 403 comments."""

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            if url == ATTACHMENT_OK:
                return httpx.Response(
                    200, content=b"%PDF", headers={"content-type": "application/pdf"}
                )
            if url == ATTACHMENT_BROKEN:
                return httpx.Response(500)
            if "/comments" in url:
                return httpx.Response(403)
            return httpx.Response(200, json=item_payload())

        assembler = WorkItemAssembler(make_client(handler), tickets_root)
        work_item = assembler.assemble(42)

        assert work_item.id == 42
        assert work_item.title == "Audit trail"
        assert work_item.acceptance_criteria == ["must do X", "must log Y"]
        assert clean_html(work_item.description) == (
            "Do X\nAcceptance Criteria:\nmust do X\nmust log Y"
        )
        assert work_item.comments == []
        assert work_item.created_by.display_name == "John Smith"
        assert work_item.created_by.email == "john@example.com"
        assert work_item.assigned_to is None

        assert len(work_item.attachments) == 1
        attachment = work_item.attachments[0]
        assert attachment.filename == "design notes.pdf"
        assert attachment.content_type == "application/pdf"
        assert attachment.size == 4
        saved = tickets_root / "42" / "attachments" / "design_notes.pdf"
        assert attachment.local_path == str(saved)
        assert saved.read_bytes() == b"%PDF"

    def test_missing_item_fails_with_status(
        self, make_client, tickets_root: Path
    ) -> None:
        """Test 404 with and without relations is a failure carrying 404."""
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(404, text="Work item 42 does not exist")

        assembler = WorkItemAssembler(make_client(handler), tickets_root)

        with pytest.raises(DevOpsHTTPError) as exc_info:
            assembler.assemble(42)

        assert exc_info.value.status_code == 404
        assert len(requested) == 2
        assert "expand=Relations" in requested[1]

    def test_retry_with_relations(self, make_client, tickets_root: Path) -> None:
        """Test the relations-expanded fetch is used when the plain one fails."""

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            if "/comments" in url:
                return httpx.Response(200, json={"value": []})
            if "expand=Relations" in url:
                return httpx.Response(200, json=item_payload(relations=None))
            return httpx.Response(400)

        work_item = WorkItemAssembler(make_client(handler), tickets_root).assemble(42)

        assert work_item.id == 42
        assert work_item.attachments == []

    def test_same_named_attachments_get_distinct_paths(
        self, make_client, tickets_root: Path
    ) -> None:
        """Test two attachments called log.txt are both kept on disk."""
        first = "https://dev.azure.com/testorg/_apis/wit/attachments/first"
        second = "https://dev.azure.com/testorg/_apis/wit/attachments/second"
        bodies = {first: b"FIRST", second: b"SECOND"}

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            if url in bodies:
                return httpx.Response(200, content=bodies[url])
            if "/comments" in url:
                return httpx.Response(200, json={"value": []})
            return httpx.Response(
                200,
                json=item_payload(
                    relations=[
                        {
                            "rel": "AttachedFile",
                            "url": url,
                            "attributes": {"name": "log.txt"},
                        }
                        for url in (first, second)
                    ]
                ),
            )

        work_item = WorkItemAssembler(make_client(handler), tickets_root).assemble(42)

        paths = [Path(attachment.local_path) for attachment in work_item.attachments]
        assert [path.name for path in paths] == ["log.txt", "log_2.txt"]
        assert [path.read_bytes() for path in paths] == [b"FIRST", b"SECOND"]
        assert [a.filename for a in work_item.attachments] == ["log.txt", "log.txt"]

    def test_odd_relation_does_not_fail_assembly(
        self, make_client, tickets_root: Path
    ) -> None:
        """Test a relation with a numeric name is tolerated."""

        def handler(request: httpx.Request) -> httpx.Response:
            if "/comments" in str(request.url):
                return httpx.Response(200, json={"value": []})
            return httpx.Response(
                200,
                json=item_payload(
                    relations=[
                        {
                            "rel": "ArtifactLink",
                            "url": "vstfs:///x",
                            "attributes": {"name": 7},
                        }
                    ]
                ),
            )

        work_item = WorkItemAssembler(make_client(handler), tickets_root).assemble(42)

        assert work_item.id == 42
        assert work_item.attachments == []

    def test_comment_with_null_author(self, make_client, tickets_root: Path) -> None:
        """Test a comment without an author is kept as written by Unknown."""

        def handler(request: httpx.Request) -> httpx.Response:
            if "/comments" in str(request.url):
                return httpx.Response(
                    200, json={"value": [{"id": 5, "text": "hi", "author": None}]}
                )
            return httpx.Response(200, json=item_payload(relations=None))

        work_item = WorkItemAssembler(make_client(handler), tickets_root).assemble(42)

        assert [comment.id for comment in work_item.comments] == [5]
        assert work_item.comments[0].text == "hi"
        assert work_item.comments[0].author == User.unknown()

    def test_comments_transport_error_fails_assembly(
        self, make_client, tickets_root: Path
    ) -> None:
        """Test a connection failure on the comments endpoint is not swallowed."""

        def handler(request: httpx.Request) -> httpx.Response:
            if "/comments" in str(request.url):
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, json=item_payload(relations=None))

        assembler = WorkItemAssembler(make_client(handler), tickets_root)

        with pytest.raises(DevOpsTransportError, match="connection reset"):
            assembler.assemble(42)

    def test_missing_fields_use_defaults(self, tickets_root: Path) -> None:
        assembler = WorkItemAssembler(Mock(spec=AzureDevOpsClient), tickets_root)

        work_item = assembler.build_work_item(WorkItemPayload(id=9))

        assert work_item.title == ""
        assert work_item.description == ""
        assert work_item.acceptance_criteria == []
        assert work_item.created_by == User.unknown()
        assert work_item.created_date.tzinfo is not None

    def test_image_placeholders_are_gapless(self, tmp_path: Path) -> None:
        """Test a failed image download does not consume a placeholder."""
        client = Mock(spec=AzureDevOpsClient)
        client.download_bytes.side_effect = [
            DownloadedFile(content_type="image/png", size=1, content=b"1"),
            DevOpsHTTPError(404, "https://dev.azure.com/b.png"),
            DownloadedFile(content_type="image/png", size=1, content=b"3"),
        ]
        text = (
            '<img src="https://dev.azure.com/a.png">'
            '<img src="https://dev.azure.com/b.png">'
            '<img src="https://example.com/skipped.png">'
            '<img src="https://dev.azure.com/c.png" alt="third">'
        )
        images_dir = tmp_path / "images"

        images = WorkItemAssembler(client, tmp_path).download_images(text, images_dir)

        assert [image.placeholder for image in images] == [
            "image001.png",
            "image002.png",
        ]
        assert images[1].original_url == "https://dev.azure.com/c.png"
        assert images[1].alt_text == "third"
        assert (images_dir / "image002.png").read_bytes() == b"3"
        assert client.download_bytes.call_count == 3

    def test_comments_with_images(self, tmp_path: Path) -> None:
        """Test comment images land in a per-comment directory."""
        client = Mock(spec=AzureDevOpsClient)
        client.fetch_comments.return_value = [
            CommentPayload(
                id=11,
                text='<p>see</p><img src="https://dev.azure.com/shot.png">',
                createdDate="2024-01-03T00:00:00Z",
                author={"displayName": "Jane"},
            ),
            CommentPayload(id=12, text=None),
        ]
        client.download_bytes.return_value = DownloadedFile(
            content_type="image/png", size=1, content=b"x"
        )

        comments = WorkItemAssembler(client, tmp_path).fetch_comments(42)

        assert [comment.id for comment in comments] == [11, 12]
        assert comments[0].author.display_name == "Jane"
        assert comments[0].images[0].local_path == str(
            tmp_path / "42" / "images" / "comment_11" / "image001.png"
        )
        assert comments[1].text == ""
        assert comments[1].author == User.unknown()
        assert comments[1].updated_date is None


class TestAssembleAndStore:
    """Test that an assembled item round-trips into the storage layout."""

    def test_saved_layout(self, make_client, temp_base_dir: Path) -> None:
        storage = StorageManager(temp_base_dir)

        def handler(request: httpx.Request) -> httpx.Response:
            if "/comments" in str(request.url):
                return httpx.Response(403)
            return httpx.Response(200, json=item_payload(relations=None))

        work_item = WorkItemAssembler(
            make_client(handler), storage.tickets_path
        ).assemble(42)
        ticket_path = storage.save_work_item(work_item)

        assert (ticket_path / "metadata.json").exists()
        assert (ticket_path / "comments" / "no-comments.md").exists()
        criteria = (ticket_path / "acceptance-criteria.md").read_text()
        assert "1. must do X\n\n2. must log Y" in criteria
