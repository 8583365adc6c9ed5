"""Terminal summaries for scraped work items."""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..devops_client.models import WorkItem


def print_summary(
    console: Console,
    work_item: WorkItem,
    ticket_path: Path,
    plan_path: Path | None,
    plan_note: str,
    detailed: bool,
) -> None:
    """Print the end-of-run summary.

    Args:
        console: Console to print on
        work_item: Assembled work item
        ticket_path: Directory the work item was saved to
        plan_path: Saved plan file, if any
        plan_note: Why no plan exists (shown when ``plan_path`` is None)
        detailed: Full tables instead of two status lines
    """
    if not detailed:
        console.print(f"[green]✓[/green] Work item #{work_item.id} saved")
        if plan_path is not None:
            console.print("[green]✓[/green] Plan generated")
        return

    details = Table(title=f"Work Item #{work_item.id}", show_header=False)
    details.add_column("Field", style="cyan")
    details.add_column("Value", style="white")
    details.add_row("Title", work_item.title)
    details.add_row("State", work_item.state or "-")
    details.add_row("Type", work_item.work_item_type or "-")
    details.add_row("Created By", work_item.created_by.display_name)
    if work_item.assigned_to:
        details.add_row("Assigned To", work_item.assigned_to.display_name)
    details.add_row("Area", work_item.area_path or "-")
    details.add_row("Iteration", work_item.iteration_path or "-")
    console.print(details)

    content = Table(title="Content Summary")
    content.add_column("Item", style="cyan")
    content.add_column("Count", justify="right", style="yellow")
    content.add_row("📎 Attachments", str(len(work_item.attachments)))
    content.add_row("💬 Comments", str(len(work_item.comments)))
    content.add_row("🖼️ Images", str(len(work_item.images)))
    content.add_row("✅ Acceptance Criteria", str(len(work_item.acceptance_criteria)))
    console.print(content)

    plan_line = str(plan_path) if plan_path is not None else plan_note
    console.print(
        Panel(
            f"📁 Data Location: [yellow]{ticket_path}[/yellow]\n"
            f"📝 OpenSpec Plan: [yellow]{plan_line}[/yellow]",
            title="🎉 Azure DevOps Ticket Scraped Successfully!",
            border_style="magenta",
        )
    )
