"""Command execution utilities with dry-run support."""

from __future__ import annotations

import shlex
import subprocess
from typing import Sequence

from ssh_vnc_lockdown.exceptions import CommandError
from ssh_vnc_lockdown.logging import LoggerFactory


log = LoggerFactory.for_commands()


def format_command(command: Sequence[str]) -> str:
    """Render a command the way an operator would type it."""
    return shlex.join(str(part) for part in command)


def run_checked_command(
    command: Sequence[str],
    input_text: str | None = None,
    *,
    dry_run: bool = False,
) -> str:
    """Run a command and return its stdout.

    In dry-run mode the command is only logged and an empty string is
    returned; use it for commands that change system state.

    Raises:
        CommandError: If the command is missing or exits non-zero
    """
    command = [str(part) for part in command]
    if dry_run:
        log.info(f"DRY-RUN: {format_command(command)}")
        return ""
    log.debug(f"Running command: {format_command(command)}")
    try:
        result = subprocess.run(
            command,
            input=input_text,
            text=True,
            capture_output=True,
        )
    except FileNotFoundError as error:
        raise CommandError(command, None, f"{command[0]} not found") from error
    if result.stdout:
        log.bind(tags=["command", "command-output"]).trace(f"stdout: {result.stdout.strip()}")
    if result.stderr:
        log.bind(tags=["command", "command-output"]).trace(f"stderr: {result.stderr.strip()}")
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        stdout = (result.stdout or "").strip()
        raise CommandError(command, result.returncode, stderr or stdout)
    log.debug(f"Command completed with return code {result.returncode}")
    return result.stdout
