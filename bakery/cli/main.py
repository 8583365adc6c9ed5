"""Main CLI entry point."""

import logging
import os
import subprocess
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console

from ..ai.generator import (
    ExternalGenerator,
    GeneratorError,
    ensure_openspec_initialized,
)
from ..ai.prompts import build_plan_data, generate_prompt
from ..ai.sections import parse_plan_sections
from ..config import BakeryConfig, ConfigurationError
from ..devops_client.assembler import WorkItemAssembler
from ..devops_client.client import AzureDevOpsClient, DevOpsError
from ..devops_client.models import WorkItem
from ..logging_setup import setup_logging
from ..storage.manager import StorageManager
from .options import (
    BASE_DIRECTORY_OPTION,
    COMPACT_OPTION,
    NO_COLOR_OPTION,
    NO_OPENSPEC_OPTION,
    ORGANIZATION_OPTION,
    PAT_TOKEN_OPTION,
    PROJECT_OPTION,
    RICH_OPTION,
    TICKET_ID_OPTION,
    VERBOSE_OPTION,
)
from .summary import print_summary

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="bakery",
    help="Scrape Azure DevOps work items and generate OpenSpec plans",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    ticket_id: int | None = TICKET_ID_OPTION,
    organization: str | None = ORGANIZATION_OPTION,
    project: str | None = PROJECT_OPTION,
    pat_token: str | None = PAT_TOKEN_OPTION,
    base_directory: str | None = BASE_DIRECTORY_OPTION,
    no_openspec: bool = NO_OPENSPEC_OPTION,
    verbose: bool = VERBOSE_OPTION,
    compact: bool = COMPACT_OPTION,
    rich_output: bool = RICH_OPTION,
    no_color: bool = NO_COLOR_OPTION,
) -> None:
    """Scrape a work item and generate an OpenSpec plan for it.

    Examples:
        bakery --ticket-id 12345
        bakery -t 12345 --organization myorg --no-openspec
        bakery config
    """
    if ctx.invoked_subcommand is not None:
        return

    out = Console(no_color=True) if no_color else console
    setup_logging(verbose)

    if ticket_id is None:
        out.print("❌ --ticket-id is required (see bakery --help)")
        raise typer.Exit(1)

    try:
        config = BakeryConfig.load()
        config.apply_overrides(organization, project, pat_token, base_directory)
        token = config.resolve_pat_token()
    except ConfigurationError as e:
        out.print(f"❌ Configuration error: {e}")
        raise typer.Exit(1)
    except OSError as e:
        out.print(f"❌ Failed to read configuration: {e}")
        raise typer.Exit(1)

    base_path = config.get_effective_base_directory()
    storage = StorageManager(
        base_path,
        tickets_subdir=config.storage.tickets_subdir,
        openspec_subdir=config.storage.openspec_subdir,
    )

    try:
        storage.ensure_base_structure()
        if not compact:
            out.print(f"🔍 Scraping work item #{ticket_id}...")
        with AzureDevOpsClient(
            organization=config.azure_devops.organization,
            pat_token=token,
            project=config.azure_devops.project,
            base_url=config.azure_devops.base_url,
            api_version=config.azure_devops.api_version,
        ) as client:
            assembler = WorkItemAssembler(client, storage.tickets_path)
            work_item = assembler.assemble(ticket_id)
        ticket_path = storage.save_work_item(work_item)
    except DevOpsError as e:
        out.print(f"❌ Failed to scrape work item #{ticket_id}: {e}")
        raise typer.Exit(1)
    except OSError as e:
        out.print(f"❌ Failed to save work item #{ticket_id}: {e}")
        raise typer.Exit(1)

    plan_path: Path | None = None
    if no_openspec:
        plan_note = "skipped (--no-openspec)"
    elif not config.openspec.auto_generate:
        plan_note = "skipped (auto_generate disabled)"
    else:
        if not compact:
            out.print("🤖 Generating OpenSpec plan...")
        plan_path, plan_note = _generate_plan(config, storage, work_item, out)

    detailed = rich_output or verbose or (config.openspec.rich_output and not compact)
    print_summary(out, work_item, ticket_path, plan_path, plan_note, detailed)


def _generate_plan(
    config: BakeryConfig, storage: StorageManager, work_item: WorkItem, out: Console
) -> tuple[Path | None, str]:
    """Generate and save the plan; failures leave the scraped data in place."""
    try:
        ensure_openspec_initialized(storage.base_path, config.storage.openspec_subdir)
        prompt = generate_prompt(build_plan_data(work_item))
        generator = ExternalGenerator(
            config.openspec.ai_command_template,
            payload_mode=config.openspec.payload_mode,
            timeout=config.openspec.generator_timeout,
            cwd=storage.base_path,
        )
        plan_content = generator.generate(prompt)
        plan_path = storage.save_plan(
            work_item, plan_content, parse_plan_sections(plan_content)
        )
    except (GeneratorError, OSError) as e:
        logger.warning("Plan generation failed: %s", e)
        out.print(f"⚠️  Plan generation failed: {e}")
        out.print("[dim]Work item data was saved; rerun to retry the plan.[/dim]")
        return None, f"failed ({e})"
    return plan_path, "generated"


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def config() -> None:
    """Open the configuration file in $EDITOR."""
    config_path = BakeryConfig.ensure_config_file()
    editor = os.getenv("EDITOR") or ("notepad" if os.name == "nt" else "nano")

    console.print(f"📝 Opening {config_path} with {editor}")
    try:
        subprocess.run([editor, str(config_path)], check=False)
    except OSError as e:
        console.print(f"❌ Failed to open editor '{editor}': {e}")
        raise typer.Exit(1)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def version() -> None:
    """Show version information."""
    from bakery import __version__

    console.print(f"Bakery v{__version__}")


if __name__ == "__main__":
    app()
