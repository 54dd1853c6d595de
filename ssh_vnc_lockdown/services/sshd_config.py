"""Append the SSH lockdown directives to sshd_config."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from ssh_vnc_lockdown.domain.models import OperatingUser
from ssh_vnc_lockdown.exceptions import PatchError
from ssh_vnc_lockdown.logging import EventLogger, LoggerFactory


log = LoggerFactory.for_patch()


def build_lockdown_directives(users: Iterable[OperatingUser]) -> list[str]:
    """Directives that disable root and password logins and restrict SSH to ``users``."""
    names = " ".join(user.username for user in users)
    return [
        "PermitRootLogin no",
        "PasswordAuthentication no",
        "ChallengeResponseAuthentication no",
        f"AllowUsers {names}",
    ]


def append_directives(path: Path, directives: list[str], *, dry_run: bool = False) -> list[str]:
    """Append an empty separator line followed by ``directives`` to ``path``.

    Directives already present are appended again; sshd uses the first
    occurrence of most keywords, so only run this once per install.

    Raises:
        PatchError: If the file cannot be written
    """
    if dry_run:
        for directive in directives:
            log.info(f"DRY-RUN: append {directive!r} to {path}")
        return list(directives)
    try:
        with open(path, "a", encoding="utf-8") as config_file:
            config_file.write("\n")
            for directive in directives:
                config_file.write(f"{directive}\n")
    except OSError as error:
        raise PatchError(str(path), str(error)) from error
    EventLogger.log_directives_appended(log, str(path), directives)
    return list(directives)
