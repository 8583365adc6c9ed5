"""Assemble a complete work item from the Azure DevOps API."""

import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from ..utils.content import extract_acceptance_criteria, extract_image_references
from ..utils.date_parser import parse_devops_datetime, parse_devops_datetime_or_now
from .client import AzureDevOpsClient, DevOpsError
from .models import (
    Attachment,
    Comment,
    CommentPayload,
    ImageReference,
    RelationPayload,
    User,
    WorkItem,
    WorkItemPayload,
)

logger = logging.getLogger(__name__)

SAFE_FILENAME_CHARS = set(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.-_"
)


def user_from_field(value: Any) -> User | None:
    """Build a User from an identity field.

    Azure DevOps returns identities either as objects (``displayName``,
    ``uniqueName``, ``url``) or, for older payloads, as plain strings such as
    ``"Jane Doe <jane@example.com>"`` or an email address.

    Returns:
        User, or None when the value carries no identity
    """
    if isinstance(value, dict):
        display_name = value.get("displayName")
        unique_name = value.get("uniqueName") or ""
        if not isinstance(display_name, str) or not display_name:
            return None
        email = ""
        if isinstance(unique_name, str) and "@" in unique_name:
            email = unique_name
        url = value.get("url")
        return User(
            display_name=display_name,
            email=email,
            url=url if isinstance(url, str) else "",
        )

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if "<" in text and text.endswith(">"):
            name, _, address = text[:-1].partition("<")
            address = address.strip()
            return User(
                display_name=name.strip() or address,
                email=address,
                url=f"mailto:{address}",
            )
        return User(
            display_name=text.split("@")[0],
            email=text,
            url=f"mailto:{text}",
        )

    return None


def _field_str(fields: dict[str, Any], name: str) -> str:
    value = fields.get(name)
    return value if isinstance(value, str) else ""


def safe_filename(filename: str) -> str:
    """Replace anything outside ``[A-Za-z0-9._-]`` with underscores."""
    safe = "".join(c if c in SAFE_FILENAME_CHARS else "_" for c in filename)
    if not safe.strip("._"):
        return "attachment"
    return safe


def unique_filename(filename: str, used: set[str]) -> str:
    """Return ``filename``, or ``<stem>_<n><suffix>`` if it is already in ``used``.

    The chosen name is added to ``used``.
    """
    candidate = filename
    stem, suffix = Path(filename).stem, Path(filename).suffix
    counter = 2
    while candidate in used:
        candidate = f"{stem}_{counter}{suffix}"
        counter += 1
    used.add(candidate)
    return candidate


class WorkItemAssembler:
    """Turns a work item id into a fully populated WorkItem.

    Only the primary item fetch can fail the assembly. Attachment and image
    download failures are logged and the element is left out; an
    unavailable comments endpoint yields no comments.
    """

    def __init__(self, client: AzureDevOpsClient, tickets_root: Path | str):
        """Initialize the assembler.

        Args:
            client: Authenticated Azure DevOps client
            tickets_root: Directory holding one sub-directory per work item
        """
        self.client = client
        self.tickets_root = Path(tickets_root)

    def ticket_dir(self, work_item_id: int) -> Path:
        return self.tickets_root / str(work_item_id)

    def assemble(self, work_item_id: int) -> WorkItem:
        """Fetch a work item with attachments, images and comments.

        Raises:
            DevOpsError: The work item itself could not be fetched
        """
        logger.info("Fetching work item %s from Azure DevOps", work_item_id)

        payload = self._fetch_payload(work_item_id)
        work_item = self.build_work_item(payload)

        if payload.relations:
            work_item.attachments = self.download_attachments(
                work_item_id, payload.relations
            )

        work_item.images = self.download_images(
            work_item.description, self.ticket_dir(work_item_id) / "images"
        )

        work_item.comments = self.fetch_comments(work_item_id)

        logger.info(
            "Successfully fetched work item %s with %d attachments and %d comments",
            work_item_id,
            len(work_item.attachments),
            len(work_item.comments),
        )
        return work_item

    def _fetch_payload(self, work_item_id: int) -> WorkItemPayload:
        try:
            return self.client.fetch_item(work_item_id)
        except DevOpsError as e:
            # Some organizations only return relations when asked explicitly
            logger.debug(
                "Plain fetch of work item %s failed (%s), retrying with relations",
                work_item_id,
                e,
            )
            return self.client.fetch_item(work_item_id, expand_relations=True)

    def build_work_item(self, payload: WorkItemPayload) -> WorkItem:
        """Map the raw field bag onto a WorkItem, using defaults for gaps."""
        fields = payload.fields
        description = _field_str(fields, "System.Description")
        created_by = user_from_field(fields.get("System.CreatedBy"))

        return WorkItem(
            id=payload.id,
            title=_field_str(fields, "System.Title"),
            description=description,
            acceptance_criteria=extract_acceptance_criteria(description),
            created_date=parse_devops_datetime_or_now(
                fields.get("System.CreatedDate")
            ),
            updated_date=parse_devops_datetime_or_now(
                fields.get("System.ChangedDate")
            ),
            created_by=created_by or User.unknown(),
            assigned_to=user_from_field(fields.get("System.AssignedTo")),
            state=_field_str(fields, "System.State"),
            work_item_type=_field_str(fields, "System.WorkItemType"),
            area_path=_field_str(fields, "System.AreaPath"),
            iteration_path=_field_str(fields, "System.IterationPath"),
        )

    def download_attachments(
        self, work_item_id: int, relations: list[RelationPayload]
    ) -> list[Attachment]:
        """Download every ``AttachedFile`` relation, skipping failures."""
        attachments_dir = self.ticket_dir(work_item_id) / "attachments"
        attachments = []
        used_names: set[str] = set()

        for relation in relations:
            if not relation.is_attachment or not relation.url:
                continue

            filename = (relation.attributes.name if relation.attributes else None) or (
                urlparse(relation.url).path.rstrip("/").split("/")[-1]
            )
            try:
                downloaded = self.client.download_bytes(relation.url)
            except DevOpsError as e:
                logger.warning("Failed to download attachment %s: %s", filename, e)
                continue

            attachments_dir.mkdir(parents=True, exist_ok=True)
            local_path = attachments_dir / unique_filename(
                safe_filename(filename), used_names
            )
            local_path.write_bytes(downloaded.content)

            attachments.append(
                Attachment(
                    filename=filename,
                    url=relation.url,
                    local_path=str(local_path),
                    content_type=downloaded.content_type,
                    size=downloaded.size,
                )
            )
            logger.debug("Downloaded attachment %s", filename)

        return attachments

    def download_images(self, text: str, images_dir: Path) -> list[ImageReference]:
        """Download Azure DevOps hosted images referenced in ``text``.

        Placeholders are numbered from 1 and only advance after a successful
        download, so a failed image never leaves a gap.
        """
        images: list[ImageReference] = []
        references = extract_image_references(text)
        if not references:
            return images

        images_dir.mkdir(parents=True, exist_ok=True)
        counter = 1

        for url, alt_text in references:
            placeholder = f"image{counter:03d}.png"
            local_path = images_dir / placeholder
            try:
                downloaded = self.client.download_bytes(url)
            except DevOpsError as e:
                logger.warning("Failed to download image %s: %s", url, e)
                continue

            local_path.write_bytes(downloaded.content)
            images.append(
                ImageReference(
                    placeholder=placeholder,
                    original_url=url,
                    local_path=str(local_path),
                    alt_text=alt_text,
                )
            )
            counter += 1

        return images

    def fetch_comments(self, work_item_id: int) -> list[Comment]:
        """Fetch comments and download the images each one references."""
        logger.info("Fetching comments for work item %s", work_item_id)
        images_root = self.ticket_dir(work_item_id) / "images"

        return [
            self.build_comment(payload, images_root / f"comment_{payload.id}")
            for payload in self.client.fetch_comments(work_item_id)
        ]

    def build_comment(self, payload: CommentPayload, images_dir: Path) -> Comment:
        return Comment(
            id=payload.id,
            author=user_from_field(payload.author) or User.unknown(),
            created_date=parse_devops_datetime_or_now(payload.created_date),
            updated_date=parse_devops_datetime(payload.updated_date),
            text=payload.text or "",
            images=self.download_images(payload.text or "", images_dir),
        )
