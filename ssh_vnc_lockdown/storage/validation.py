"""Precondition checks for lockdown operations.

All validation functions raise specific exceptions from the exceptions module
rather than returning boolean values, making error handling more explicit.

Example:
    from ssh_vnc_lockdown.storage.validation import validate_artifact_exists

    validate_artifact_exists(artifact)
    # Safe to read or back up the artifact
"""

from __future__ import annotations

import os
from pathlib import Path

from ssh_vnc_lockdown.domain.models import ConfigArtifact
from ssh_vnc_lockdown.exceptions import (
    ArtifactNotFoundError,
    BackupVerificationError,
    RemountError,
)


def validate_artifact_exists(artifact: ConfigArtifact) -> None:
    """Validate that an artifact exists with the expected kind.

    Raises:
        ArtifactNotFoundError: If the file or directory is missing
    """
    if not artifact.exists():
        raise ArtifactNotFoundError(
            f"{artifact.system_path} ({artifact.label})",
            str(artifact.path),
            artifact.volume_role.value,
        )


def validate_backup_exists(source: ConfigArtifact, destination: Path) -> None:
    """Validate that a backup copy landed as a regular file.

    Raises:
        BackupVerificationError: If the destination is not a file
    """
    if not destination.is_file():
        raise BackupVerificationError(
            source.system_path, str(destination), "backup file not found after copy"
        )


def validate_mounted(device: str, mount_point: Path) -> None:
    """Validate that ``mount_point`` is an active mount.

    Raises:
        RemountError: If nothing is mounted there
    """
    if not os.path.ismount(mount_point):
        raise RemountError(device, str(mount_point), "mount point is not active after mount")
