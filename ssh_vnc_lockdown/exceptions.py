"""Custom exceptions for lockdown operations.

This module defines a hierarchy of exceptions so each stage of the lockdown
can fail with a specific, readable error. Every exception is fatal: the CLI
prints it with an ``[ERROR]`` prefix and exits with status 1.

Exception Hierarchy:
    LockdownError (base)
        ├── DiscoveryError
        │   ├── VolumeNotFoundError
        │   ├── AmbiguousVolumeError
        │   ├── MountPointNotFoundError
        │   └── ArtifactNotFoundError
        ├── UserCountError
        ├── BackupError
        │   └── BackupVerificationError
        ├── MountError
        │   ├── UnmountFailedError
        │   └── RemountError
        ├── PatchError
        ├── CommandError
        ├── ConfigurationError
        └── OperatorAbortError

Usage:
    from ssh_vnc_lockdown.exceptions import VolumeNotFoundError

    if not devices:
        raise VolumeNotFoundError("system", "no sealed read-only volume mounted")
"""

from __future__ import annotations

from typing import Sequence


class LockdownError(Exception):
    """Base exception for all lockdown operations."""



class DiscoveryError(LockdownError):
    """Base exception for volume and artifact discovery errors."""



class VolumeNotFoundError(DiscoveryError):
    """No volume matched the requested role."""

    def __init__(self, role: str, reason: str = ""):
        self.role = role
        self.reason = reason
        msg = f"Unable to determine {role} volume device"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AmbiguousVolumeError(DiscoveryError):
    """More than one volume matched the requested role."""

    def __init__(self, role: str, devices: Sequence[str]):
        self.role = role
        self.devices = list(devices)
        super().__init__(
            f"Unable to determine {role} volume device: "
            f"{len(self.devices)} candidates ({', '.join(self.devices)})"
        )


class MountPointNotFoundError(DiscoveryError):
    """Volume has no usable mount point."""

    def __init__(self, role: str, device: str, mount_point: str | None = None):
        self.role = role
        self.device = device
        self.mount_point = mount_point
        if mount_point:
            msg = (
                f"Unable to determine {role} volume mount point: "
                f"{mount_point} ({device}) is not a directory"
            )
        else:
            msg = f"Unable to determine {role} volume mount point for {device}"
        super().__init__(msg)


class ArtifactNotFoundError(DiscoveryError):
    """A required file or directory is missing from a volume."""

    def __init__(self, label: str, path: str, volume_role: str = ""):
        self.label = label
        self.path = path
        self.volume_role = volume_role
        msg = f"Unable to find {label}"
        if volume_role:
            msg += f" on {volume_role} volume"
        msg += f" ({path})"
        super().__init__(msg)


class UserCountError(LockdownError):
    """The users directory does not hold the required number of accounts."""

    def __init__(self, found: Sequence[str], required: int = 1):
        self.found = list(found)
        self.required = required
        listing = ", ".join(self.found) if self.found else "none"
        super().__init__(
            f"Expected exactly {required} user account(s) but found "
            f"{len(self.found)}: {listing}"
        )


class BackupError(LockdownError):
    """Base exception for backup errors."""



class BackupVerificationError(BackupError):
    """A backup copy did not materialize at its destination."""

    def __init__(self, source: str, destination: str, reason: str = ""):
        self.source = source
        self.destination = destination
        self.reason = reason
        msg = f"Backup of {source} to {destination} failed"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class MountError(LockdownError):
    """Base exception for mount-related errors."""



class UnmountFailedError(MountError):
    """Failed to unmount the read-only system volume."""

    def __init__(self, device: str, reason: str = ""):
        self.device = device
        self.reason = reason
        msg = f"Failed to unmount {device}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class RemountError(MountError):
    """Failed to mount the system volume read-write."""

    def __init__(self, device: str, mount_point: str, reason: str = ""):
        self.device = device
        self.mount_point = mount_point
        self.reason = reason
        msg = f"Failed to mount {device} read-write at {mount_point}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PatchError(LockdownError):
    """A descriptor or config file could not be read, parsed or written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to update {path}: {reason}")


class CommandError(LockdownError):
    """An external command failed or could not be started."""

    def __init__(self, command: Sequence[str], returncode: int | None, message: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.message = message
        msg = f"Command failed ({' '.join(self.command)})"
        if returncode is not None:
            msg += f" with exit status {returncode}"
        if message:
            msg += f": {message}"
        super().__init__(msg)


class ConfigurationError(LockdownError):
    """A settings value is invalid."""

    def __init__(self, key: str, value: object, reason: str):
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid setting {key}={value!r}: {reason}")


class OperatorAbortError(LockdownError):
    """The operator declined a confirmation prompt."""

    def __init__(self, step: str):
        self.step = step
        super().__init__(f"Aborted by operator before: {step}")
