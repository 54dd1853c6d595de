"""Timestamped backups of the files the lockdown changes.

Backups go to root's home directory on the data volume, which stays mounted
while the system volume is unmounted and remounted. Naming follows the path
the booted OS sees, with slashes turned into underscores:

    /System/Library/LaunchDaemons/ssh.plist at 20240101120000
    -> System_Library_LaunchDaemons_ssh.plist.20240101120000

Copies are made one at a time and each is verified before the next; a
failure leaves earlier backups in place.
"""

from __future__ import annotations

import shutil
from datetime import datetime
from pathlib import Path

from ssh_vnc_lockdown.domain.models import BackupCopy, ConfigArtifact
from ssh_vnc_lockdown.exceptions import BackupVerificationError
from ssh_vnc_lockdown.logging import EventLogger, LoggerFactory

from .validation import validate_backup_exists


log = LoggerFactory.for_backup()

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def backup_timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)


def backup_name(system_path: str, timestamp: str) -> str:
    return f"{system_path.lstrip('/').replace('/', '_')}.{timestamp}"


def backup_artifact(
    artifact: ConfigArtifact,
    root_home: Path,
    timestamp: str,
    *,
    dry_run: bool = False,
) -> BackupCopy:
    """Copy ``artifact`` into ``root_home`` preserving metadata.

    Raises:
        BackupVerificationError: If the copy fails or is missing afterwards
    """
    destination = root_home / backup_name(artifact.system_path, timestamp)
    backup = BackupCopy(source=artifact, destination=destination, timestamp=timestamp)
    if dry_run:
        log.info(f"DRY-RUN: copy {artifact.path} -> {destination}")
        return backup

    try:
        shutil.copy2(artifact.path, destination)
    except OSError as error:
        raise BackupVerificationError(
            artifact.system_path, str(destination), str(error)
        ) from error
    validate_backup_exists(artifact, destination)
    EventLogger.log_backup_created(log, str(artifact.path), str(destination))
    return backup

