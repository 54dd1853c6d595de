"""Domain models for the lockdown procedure.

This package contains type-safe domain objects for volumes, artifacts,
backups, users and the policy that drives a run.
"""

from __future__ import annotations

from .models import (
    ArtifactKind,
    ArtifactSet,
    BackupCopy,
    ConfigArtifact,
    LockdownPolicy,
    LockdownReport,
    OperatingUser,
    PatchEngine,
    PatchResult,
    PatchTarget,
    Volume,
    VolumeDiscovery,
    VolumeRole,
)


__all__ = [
    "ArtifactKind",
    "ArtifactSet",
    "BackupCopy",
    "ConfigArtifact",
    "LockdownPolicy",
    "LockdownReport",
    "OperatingUser",
    "PatchEngine",
    "PatchResult",
    "PatchTarget",
    "Volume",
    "VolumeDiscovery",
    "VolumeRole",
]
