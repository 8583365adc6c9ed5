"""Configuration management for Bakery.

Configuration lives in a TOML file (``~/.bakery/bakery-config.toml`` unless
``BAKERY_CONFIG`` points elsewhere) with three sections: Azure DevOps
connection settings, storage layout and OpenSpec/AI integration. CLI flags
override file values; the PAT may also come from ``AZURE_DEVOPS_PAT``.
"""

import os
import tomllib
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

CONFIG_ENV_VAR = "BAKERY_CONFIG"
PAT_ENV_VAR = "AZURE_DEVOPS_PAT"
PLACEHOLDER_TOKEN = "your-pat-token-here"

DEFAULT_CONFIG_TEMPLATE = """\
# Bakery configuration

[azure_devops]
# Azure DevOps organization name (e.g. "myorg")
organization = "your-organization"
# Azure DevOps project name (e.g. "MyProject")
project = "your-project"
# Personal Access Token. Prefer the AZURE_DEVOPS_PAT environment variable.
pat_token = "your-pat-token-here"
api_version = "7.1"
base_url = "https://dev.azure.com"

[storage]
# Base directory for all Bakery storage ("~" is expanded)
base_directory = "~/devops-data"
tickets_subdir = "Tickets"
openspec_subdir = "openspec"
# Create Tickets/ and openspec/ in the current working directory instead
local_baking = false

[openspec]
# Command used to generate plans. The prompt is sent on stdin unless the
# template contains {prompt} or {prompt_file}.
ai_command_template = "claude -p"
auto_generate = true
rich_output = true
# "stdin" or "file"
payload_mode = "stdin"
# Seconds before the AI command is abandoned (0 waits forever)
generator_timeout = 0
"""


class ConfigurationError(ValueError):
    """Raised when configuration is missing, unreadable or invalid."""


class AzureDevOpsConfig(BaseModel):
    """Azure DevOps connection settings."""

    organization: str = "your-organization"
    project: str = "your-project"
    pat_token: str = PLACEHOLDER_TOKEN
    api_version: str = "7.1"
    base_url: str = "https://dev.azure.com"


class StorageConfig(BaseModel):
    """Where scraped work items and generated plans are written."""

    base_directory: str = "~/devops-data"
    tickets_subdir: str = "Tickets"
    openspec_subdir: str = "openspec"
    local_baking: bool = Field(
        False, description="Use the current working directory as base directory"
    )


class OpenSpecConfig(BaseModel):
    """External AI generator settings."""

    ai_command_template: str = "claude -p"
    auto_generate: bool = True
    rich_output: bool = True
    payload_mode: Literal["stdin", "file"] = "stdin"
    generator_timeout: float = Field(
        0, description="Seconds to wait for the AI command, 0 for no limit"
    )


class BakeryConfig(BaseModel):
    """Complete Bakery configuration."""

    azure_devops: AzureDevOpsConfig = Field(default_factory=AzureDevOpsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    openspec: OpenSpecConfig = Field(default_factory=OpenSpecConfig)

    @staticmethod
    def get_config_path() -> Path:
        """Path of the user configuration file."""
        override = os.getenv(CONFIG_ENV_VAR)
        if override:
            return Path(override).expanduser()
        return Path.home() / ".bakery" / "bakery-config.toml"

    @classmethod
    def ensure_config_file(cls, path: Path | None = None) -> Path:
        """Write the default template if the config file does not exist yet."""
        config_path = path or cls.get_config_path()
        if not config_path.exists():
            config_path.parent.mkdir(parents=True, exist_ok=True)
            config_path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
        return config_path

    @classmethod
    def load(cls, path: Path | None = None) -> "BakeryConfig":
        """Load configuration, writing the default template on first use.

        Args:
            path: Explicit config file (defaults to :meth:`get_config_path`)

        Raises:
            ConfigurationError: If the file is not valid TOML or fails validation
        """
        config_path = cls.ensure_config_file(path)

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration in {config_path}:\n{e}"
            ) from e

    def apply_overrides(
        self,
        organization: str | None = None,
        project: str | None = None,
        pat_token: str | None = None,
        base_directory: str | None = None,
    ) -> None:
        """Override file values with CLI parameters where provided."""
        if organization:
            self.azure_devops.organization = organization
        if project:
            self.azure_devops.project = project
        if pat_token:
            self.azure_devops.pat_token = pat_token
        if base_directory:
            self.storage.base_directory = base_directory
            self.storage.local_baking = False

    def resolve_pat_token(self) -> str:
        """Return the PAT from config (or CLI override), then the environment.

        Raises:
            ConfigurationError: If no token is available anywhere
        """
        token = self.azure_devops.pat_token
        if token and token != PLACEHOLDER_TOKEN:
            return token

        token = os.getenv(PAT_ENV_VAR)
        if token:
            return token

        raise ConfigurationError(
            "Azure DevOps PAT token is required. Set the AZURE_DEVOPS_PAT "
            "environment variable, pass --pat-token, or set pat_token in "
            f"{self.get_config_path()}."
        )

    def get_effective_base_directory(self) -> Path:
        """Current directory when local baking is enabled, else base_directory."""
        if self.storage.local_baking:
            return Path.cwd()
        return Path(self.storage.base_directory).expanduser()

    def get_tickets_directory(self) -> Path:
        return self.get_effective_base_directory() / self.storage.tickets_subdir

    def get_openspec_directory(self) -> Path:
        return self.get_effective_base_directory() / self.storage.openspec_subdir

    def get_ticket_directory(self, ticket_id: int) -> Path:
        return self.get_tickets_directory() / str(ticket_id)
