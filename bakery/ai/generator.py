"""Run an external AI command to turn a prompt into an OpenSpec plan."""

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

PROMPT_PLACEHOLDER = "{prompt}"
PROMPT_FILE_PLACEHOLDER = "{prompt_file}"
OPENSPEC_MARKER = "project.md"


class GeneratorError(RuntimeError):
    """The external command is missing, failed or timed out."""


class ExternalGenerator:
    """Runs a configured command template with a (large) prompt payload.

    The prompt reaches the command in one of three ways:

    - ``{prompt_file}`` in the template (or ``payload_mode="file"``): the
      prompt is written to a temporary file and its path is substituted
      (appended as last argument when the template has no placeholder)
    - ``{prompt}`` in the template: substituted into that argument as-is
    - otherwise: sent on stdin
    """

    def __init__(
        self,
        command_template: str,
        payload_mode: str = "stdin",
        timeout: float | None = None,
        cwd: Path | None = None,
    ):
        """Initialize the generator.

        Args:
            command_template: Command line, split with shell-like rules
            payload_mode: ``"stdin"`` or ``"file"``
            timeout: Seconds before the command is abandoned (None waits)
            cwd: Working directory for the command
        """
        if not command_template.strip():
            raise GeneratorError("AI command template is empty")
        self.command_template = command_template
        self.payload_mode = payload_mode
        self.timeout = timeout or None
        self.cwd = cwd

    def _resolve_executable(self, args: list[str]) -> list[str]:
        # shutil.which also finds claude.cmd style shims on Windows
        executable = shutil.which(args[0])
        if executable is None:
            raise GeneratorError(f"AI command not found: {args[0]}")
        return [executable, *args[1:]]

    def generate(self, prompt: str) -> str:
        """Run the command and return its standard output.

        Raises:
            GeneratorError: Missing executable, non-zero exit or timeout
        """
        args = shlex.split(self.command_template, posix=os.name != "nt")
        use_file = (
            PROMPT_FILE_PLACEHOLDER in self.command_template
            or self.payload_mode == "file"
        )

        logger.info("Generating plan with prompt length: %d", len(prompt))
        logger.debug("AI command template: %s", self.command_template)

        if not use_file:
            stdin = None
            if PROMPT_PLACEHOLDER in self.command_template:
                args = [arg.replace(PROMPT_PLACEHOLDER, prompt) for arg in args]
            else:
                stdin = prompt
            return self._run(self._resolve_executable(args), stdin)

        with tempfile.TemporaryDirectory(prefix="bakery-") as temp_dir:
            prompt_file = Path(temp_dir) / "prompt.txt"
            prompt_file.write_text(prompt, encoding="utf-8")
            if PROMPT_FILE_PLACEHOLDER in self.command_template:
                args = [
                    arg.replace(PROMPT_FILE_PLACEHOLDER, str(prompt_file))
                    for arg in args
                ]
            else:
                args.append(str(prompt_file))
            return self._run(self._resolve_executable(args), None)

    def _run(self, args: list[str], stdin: str | None) -> str:
        try:
            result = subprocess.run(
                args,
                input=stdin,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                cwd=self.cwd,
            )
        except subprocess.TimeoutExpired as e:
            raise GeneratorError(
                f"AI command timed out after {self.timeout} seconds"
            ) from e
        except OSError as e:
            raise GeneratorError(f"Failed to execute AI command: {e}") from e

        logger.debug(
            "AI command exited with %s (%d bytes stdout, %d bytes stderr)",
            result.returncode,
            len(result.stdout),
            len(result.stderr),
        )

        if result.returncode != 0:
            logger.error("AI command failed with exit code %s", result.returncode)
            raise GeneratorError(
                f"AI command failed with exit code {result.returncode}: "
                f"{result.stderr.strip()}"
            )

        logger.info("OpenSpec plan generated successfully")
        return result.stdout


def ensure_openspec_initialized(
    base_path: Path, openspec_subdir: str = "openspec"
) -> Path:
    """Run ``openspec init`` in ``base_path`` unless already initialized.

    Falls back to creating the directory when the ``openspec`` CLI is not
    installed.

    Raises:
        GeneratorError: If ``openspec init`` runs and fails
    """
    openspec_dir = base_path / openspec_subdir
    if (openspec_dir / OPENSPEC_MARKER).exists():
        logger.info("OpenSpec is already initialized at %s", openspec_dir)
        return openspec_dir

    executable = shutil.which("openspec")
    if executable is None:
        logger.warning("openspec CLI not found, creating %s manually", openspec_dir)
        openspec_dir.mkdir(parents=True, exist_ok=True)
        return openspec_dir

    logger.info("Initializing OpenSpec at %s", openspec_dir)
    try:
        result = subprocess.run(
            [executable, "init"],
            cwd=base_path,
            capture_output=True,
            text=True,
            stdin=subprocess.DEVNULL,
        )
    except OSError as e:
        raise GeneratorError(f"Failed to run 'openspec init': {e}") from e

    if result.returncode != 0:
        raise GeneratorError(f"OpenSpec init failed: {result.stderr.strip()}")

    openspec_dir.mkdir(parents=True, exist_ok=True)
    return openspec_dir
