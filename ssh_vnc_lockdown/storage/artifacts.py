"""Resolve the fixed configuration artifacts on the system and data volumes.

Paths in settings are relative to the volume root. The booted OS sees the
data volume's ``private/etc`` and ``private/var`` as ``/etc`` and ``/var``,
which is the form used in messages and backup names.
"""

from __future__ import annotations

from ssh_vnc_lockdown.domain.models import (
    ArtifactKind,
    ConfigArtifact,
    LockdownPolicy,
    Volume,
)
from ssh_vnc_lockdown.logging import LoggerFactory

from .validation import validate_artifact_exists


log = LoggerFactory.for_volumes()

PRIVATE_PREFIX = "private/"


def system_path_for(relative: str) -> str:
    """``private/etc/ssh/sshd_config`` -> ``/etc/ssh/sshd_config``."""
    relative = relative.lstrip("/")
    if relative.startswith(PRIVATE_PREFIX):
        relative = relative[len(PRIVATE_PREFIX):]
    return "/" + relative


def _artifact(
    volume: Volume, relative: str, label: str, kind: ArtifactKind = ArtifactKind.FILE
) -> ConfigArtifact:
    artifact = ConfigArtifact(
        label=label,
        path=volume.mount_point / relative.lstrip("/"),
        system_path=system_path_for(relative),
        kind=kind,
        volume_role=volume.role,
    )
    validate_artifact_exists(artifact)
    log.debug(f"Found {artifact.system_path} at {artifact.path}")
    return artifact


def resolve_system_artifacts(
    system_volume: Volume, policy: LockdownPolicy
) -> tuple[ConfigArtifact, ConfigArtifact]:
    """SSH and screen sharing launch daemon descriptors on the system volume."""
    ssh_descriptor = _artifact(
        system_volume, policy.ssh_descriptor_path, "SSH launch daemon descriptor"
    )
    screensharing_descriptor = _artifact(
        system_volume,
        policy.screensharing_descriptor_path,
        "screen sharing launch daemon descriptor",
    )
    return ssh_descriptor, screensharing_descriptor


def resolve_data_artifacts(
    data_volume: Volume, policy: LockdownPolicy
) -> tuple[ConfigArtifact, ConfigArtifact, ConfigArtifact]:
    """sshd_config, root's home directory and the users container on the data volume."""
    sshd_config = _artifact(data_volume, policy.sshd_config_path, "SSH daemon config")
    root_home = _artifact(
        data_volume, policy.root_home_path, "root's home directory", ArtifactKind.DIRECTORY
    )
    users_dir = _artifact(
        data_volume,
        policy.users_path,
        "parent directory of user home directories",
        ArtifactKind.DIRECTORY,
    )
    return sshd_config, root_home, users_dir

