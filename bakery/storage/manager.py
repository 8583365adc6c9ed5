"""Storage manager for scraped work items and generated plans."""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..ai.prompts import plan_filename, plan_slug
from ..ai.sections import PlanSections
from ..devops_client.models import ImageReference, User, WorkItem
from ..utils.content import clean_html, clean_html_list

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def _user_json(user: User | None) -> dict[str, str] | None:
    if user is None:
        return None
    return {"display_name": user.display_name, "email": user.email}


def _write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)


class StorageManager:
    """Writes work items as a directory of metadata, markdown and manifests.

    Layout per work item ``N``::

        <tickets>/N/metadata.json
        <tickets>/N/description.md
        <tickets>/N/acceptance-criteria.md
        <tickets>/N/comments/comment_NNN.{json,md}  (or no-comments.md)
        <tickets>/N/attachments/manifest.json
        <tickets>/N/images/manifest.json
    """

    def __init__(
        self,
        base_path: Path | str,
        tickets_subdir: str = "Tickets",
        openspec_subdir: str = "openspec",
    ):
        """Initialize storage manager.

        Args:
            base_path: Base directory for all Bakery storage
            tickets_subdir: Sub-directory holding one folder per work item
            openspec_subdir: Sub-directory holding generated plans
        """
        self.base_path = Path(base_path)
        self.tickets_path = self.base_path / tickets_subdir
        self.openspec_path = self.base_path / openspec_subdir

    def ensure_base_structure(self) -> None:
        """Create the base, tickets and openspec directories."""
        for directory in (self.base_path, self.tickets_path, self.openspec_path):
            directory.mkdir(parents=True, exist_ok=True)
        logger.info("Created base directory structure at %s", self.base_path)

    def ticket_dir(self, work_item_id: int) -> Path:
        return self.tickets_path / str(work_item_id)

    def save_work_item(self, work_item: WorkItem) -> Path:
        """Save a work item and all derived files.

        Returns:
            Path to the work item directory

        Raises:
            OSError: If a directory or file cannot be written
        """
        ticket_path = self.ticket_dir(work_item.id)
        for directory in (
            ticket_path,
            ticket_path / "attachments",
            ticket_path / "images",
            ticket_path / "comments",
        ):
            directory.mkdir(parents=True, exist_ok=True)

        logger.info("Saving work item %s to %s", work_item.id, ticket_path)

        self.save_metadata(work_item, ticket_path)
        self.save_description(work_item, ticket_path)
        self.save_acceptance_criteria(work_item, ticket_path)
        self.save_comments(work_item, ticket_path)
        self.save_attachment_manifest(work_item, ticket_path)
        self.save_image_manifest(work_item, ticket_path)

        logger.info("Successfully saved work item %s to %s", work_item.id, ticket_path)
        return ticket_path

    def save_metadata(self, work_item: WorkItem, ticket_path: Path) -> Path:
        metadata_path = ticket_path / "metadata.json"
        metadata = {
            "id": work_item.id,
            "title": work_item.title,
            "state": work_item.state,
            "work_item_type": work_item.work_item_type,
            "area_path": work_item.area_path,
            "iteration_path": work_item.iteration_path,
            "created_date": work_item.created_date.isoformat(),
            "updated_date": work_item.updated_date.isoformat(),
            "created_by": _user_json(work_item.created_by),
            "assigned_to": _user_json(work_item.assigned_to),
            "stats": {
                "attachments_count": len(work_item.attachments),
                "comments_count": len(work_item.comments),
                "images_count": len(work_item.images),
                "acceptance_criteria_count": len(work_item.acceptance_criteria),
            },
        }
        _write_json(metadata_path, metadata)
        logger.debug("Saved metadata to %s", metadata_path)
        return metadata_path

    def save_description(self, work_item: WorkItem, ticket_path: Path) -> Path:
        description_path = ticket_path / "description.md"

        # Placeholders only land where the original URL survived cleaning
        description = self.replace_image_placeholders(
            clean_html(work_item.description), work_item.images
        )
        content = (
            f"# {work_item.title}\n\n"
            f"**Work Item ID**: {work_item.id}\n\n"
            f"**State**: {work_item.state}\n\n"
            f"**Type**: {work_item.work_item_type}\n\n"
            f"**Created**: {work_item.created_date.strftime(DATE_FORMAT)}\n\n"
            f"**Created By**: {work_item.created_by.display_name}\n\n"
            f"---\n\n"
            f"## Description\n\n"
            f"{description}"
        )
        description_path.write_text(content, encoding="utf-8")
        logger.debug("Saved description to %s", description_path)
        return description_path

    def save_acceptance_criteria(self, work_item: WorkItem, ticket_path: Path) -> Path:
        ac_path = ticket_path / "acceptance-criteria.md"

        if not work_item.acceptance_criteria:
            content = (
                "# Acceptance Criteria\n\n"
                "No explicit acceptance criteria specified in the work item."
            )
        else:
            criteria = clean_html_list(work_item.acceptance_criteria)
            numbered = "\n\n".join(
                f"{index}. {criterion}" for index, criterion in enumerate(criteria, 1)
            )
            content = f"# Acceptance Criteria\n\n{numbered}"

        ac_path.write_text(content, encoding="utf-8")
        logger.debug("Saved acceptance criteria to %s", ac_path)
        return ac_path

    def save_comments(self, work_item: WorkItem, ticket_path: Path) -> list[Path]:
        comments_dir = ticket_path / "comments"

        if not work_item.comments:
            placeholder_path = comments_dir / "no-comments.md"
            placeholder_path.write_text(
                "# Comments\n\nNo comments found for this work item.", encoding="utf-8"
            )
            return [placeholder_path]

        saved = []
        for index, comment in enumerate(work_item.comments, 1):
            json_path = comments_dir / f"comment_{index:03d}.json"
            _write_json(
                json_path,
                {
                    "id": comment.id,
                    "author": _user_json(comment.author),
                    "created_date": comment.created_date.isoformat(),
                    "updated_date": (
                        comment.updated_date.isoformat()
                        if comment.updated_date
                        else None
                    ),
                    "text": clean_html(comment.text),
                    "images": [
                        {
                            "placeholder": image.placeholder,
                            "original_url": image.original_url,
                            "local_path": image.local_path,
                            "alt_text": image.alt_text,
                        }
                        for image in comment.images
                    ],
                },
            )

            markdown_path = comments_dir / f"comment_{index:03d}.md"
            text = self.replace_image_placeholders(
                comment.text, comment.images, f"../images/comment_{comment.id}"
            )
            markdown_path.write_text(
                f"# Comment by {comment.author.display_name}\n\n"
                f"**Date**: {comment.created_date.strftime(DATE_FORMAT)}\n\n"
                f"---\n\n"
                f"{text}",
                encoding="utf-8",
            )
            saved.extend([json_path, markdown_path])

        logger.debug("Saved %d comments to %s", len(work_item.comments), comments_dir)
        return saved

    def save_attachment_manifest(self, work_item: WorkItem, ticket_path: Path) -> Path:
        manifest_path = ticket_path / "attachments" / "manifest.json"
        _write_json(
            manifest_path,
            {
                "attachments": [
                    {
                        "id": attachment.id,
                        "filename": attachment.filename,
                        "original_url": attachment.url,
                        "local_path": attachment.local_path,
                        "content_type": attachment.content_type,
                        "size_bytes": attachment.size,
                        "created_date": attachment.created_date.isoformat(),
                    }
                    for attachment in work_item.attachments
                ]
            },
        )
        logger.debug("Saved attachment manifest to %s", manifest_path)
        return manifest_path

    def save_image_manifest(self, work_item: WorkItem, ticket_path: Path) -> Path:
        manifest_path = ticket_path / "images" / "manifest.json"
        _write_json(
            manifest_path,
            {"images": [image.model_dump(mode="json") for image in work_item.images]},
        )
        logger.debug("Saved image manifest to %s", manifest_path)
        return manifest_path

    @staticmethod
    def replace_image_placeholders(
        text: str, images: list[ImageReference], prefix: str = "images"
    ) -> str:
        """Point image references at their local placeholder files.

        Each original URL becomes ``<prefix>/<placeholder>`` and any remaining
        ``<img>`` tag for that URL is turned into a markdown image link.
        """
        processed = text
        for image in images:
            target = f"{prefix}/{image.placeholder}"
            tag_pattern = rf'<img[^>]*src="{re.escape(image.original_url)}"[^>]*>'
            markdown = f"![{image.alt_text or 'image'}]({target})"
            processed = re.sub(tag_pattern, lambda _: markdown, processed)
            processed = processed.replace(image.original_url, target)
        return processed

    def save_plan(
        self,
        work_item: WorkItem,
        plan_content: str,
        sections: PlanSections | None = None,
    ) -> Path:
        """Save a generated plan next to the other OpenSpec documents.

        When the plan carries proposal sections, ``proposal.md`` and
        ``tasks.md`` are also written under ``changes/<id>-<slug>/``.

        Returns:
            Path to the plan markdown file
        """
        self.openspec_path.mkdir(parents=True, exist_ok=True)
        plan_path = self.openspec_path / plan_filename(work_item.id, work_item.title)

        generated = datetime.now(timezone.utc).strftime(DATE_FORMAT)
        plan_path.write_text(
            f"# OpenSpec Implementation Plan: {work_item.title}\n\n"
            f"**Work Item ID**: {work_item.id}\n"
            f"**Generated**: {generated}\n\n"
            f"---\n\n"
            f"{plan_content}",
            encoding="utf-8",
        )
        logger.info("OpenSpec plan saved to %s", plan_path)

        if sections is not None and sections.has_proposal():
            slug = plan_slug(work_item.id, work_item.title)
            change_dir = self.openspec_path / "changes" / slug
            change_dir.mkdir(parents=True, exist_ok=True)
            (change_dir / "proposal.md").write_text(
                sections.render_proposal(work_item.title), encoding="utf-8"
            )
            if sections.tasks:
                (change_dir / "tasks.md").write_text(
                    f"## Tasks\n\n{sections.tasks}\n", encoding="utf-8"
                )
            logger.info("OpenSpec change scaffold written to %s", change_dir)

        return plan_path
