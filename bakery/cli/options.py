"""Standardized CLI option definitions for consistent shorthand mappings."""

import typer

TICKET_ID_OPTION = typer.Option(
    None, "--ticket-id", "-t", help="Azure DevOps work item ID to scrape"
)

# Connection overrides - take precedence over the config file
ORGANIZATION_OPTION = typer.Option(
    None, "--organization", help="Azure DevOps organization name (overrides config)"
)
PROJECT_OPTION = typer.Option(
    None, "--project", help="Azure DevOps project name (overrides config)"
)
PAT_TOKEN_OPTION = typer.Option(
    None,
    "--pat-token",
    help="Personal Access Token (overrides config and AZURE_DEVOPS_PAT)",
)
BASE_DIRECTORY_OPTION = typer.Option(
    None, "--base-directory", help="Base directory for storing tickets"
)

# Behavior options
NO_OPENSPEC_OPTION = typer.Option(
    False, "--no-openspec", help="Skip OpenSpec plan generation"
)

# Output options
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")
COMPACT_OPTION = typer.Option(False, "--compact", help="Minimal output")
RICH_OPTION = typer.Option(False, "--rich", help="Detailed summary output")
NO_COLOR_OPTION = typer.Option(False, "--no-color", help="Disable colored output")
