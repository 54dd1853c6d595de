"""APFS system/data volume discovery.

Two discovery methods are supported:

Structured (default):
    ``diskutil apfs list -plist`` is parsed with plistlib and volumes are
    selected by their APFS role ("System" / "Data"). For a sealed system
    volume the mounted snapshot device is used, since that is what is
    actually mounted under /Volumes in Recovery.

Mount table:
    ``mount`` output is scanned for a fixed descriptive substring, e.g.
    ``(apfs, sealed, local, read-only, journaled, nobrowse)`` for the system
    volume, and the leading device token of the matching line is used.

Either way the mount point is then read from ``diskutil info -plist`` and
must be an existing directory. Zero or multiple candidates abort discovery
before anything is changed.

Example:
    >>> from ssh_vnc_lockdown.domain import LockdownPolicy
    >>> system_volume, data_volume = locate_volumes(LockdownPolicy())
    >>> print(system_volume.format_label())
    disk1s5s1 (/Volumes/Macintosh HD)
"""

from __future__ import annotations

import plistlib
from pathlib import Path
from typing import Any
from xml.parsers.expat import ExpatError

from ssh_vnc_lockdown.domain.models import (
    LockdownPolicy,
    Volume,
    VolumeDiscovery,
    VolumeRole,
)
from ssh_vnc_lockdown.exceptions import (
    AmbiguousVolumeError,
    CommandError,
    MountPointNotFoundError,
    VolumeNotFoundError,
)
from ssh_vnc_lockdown.logging import EventLogger, LoggerFactory

from .command_runners import run_checked_command


log = LoggerFactory.for_volumes()


def _strip_dev(device: str) -> str:
    return device[len("/dev/"):] if device.startswith("/dev/") else device


def _load_plist(output: str, command: list[str]) -> Any:
    try:
        return plistlib.loads(output.encode("utf-8"))
    except (ExpatError, ValueError) as error:
        raise CommandError(command, 0, f"unparseable plist output: {error}") from error


# ==============================================================================
# Mount table
# ==============================================================================


def read_mount_table() -> str:
    return run_checked_command(["mount"])


def find_devices_by_marker(mount_output: str, marker: str) -> list[str]:
    """Device identifiers of every mount-table line containing ``marker``."""
    devices = []
    for line in mount_output.splitlines():
        if marker in line:
            words = line.split()
            if words:
                devices.append(_strip_dev(words[0]))
    return devices


def locate_volume_by_marker(mount_output: str, marker: str, role: VolumeRole) -> Volume:
    devices = find_devices_by_marker(mount_output, marker)
    if not devices:
        raise VolumeNotFoundError(role.value, f"no mounted volume matches {marker!r}")
    if len(devices) > 1:
        raise AmbiguousVolumeError(role.value, devices)
    device = devices[0]
    log.debug(f"Mount table matched {role.value} volume {device}")
    info = get_volume_info(device)
    return Volume(
        role=role,
        device=device,
        mount_point=resolve_mount_point(device, role, info=info),
        name=info.get("VolumeName") or None,
        sealed=_parse_sealed(info.get("Sealed")),
    )


# ==============================================================================
# diskutil
# ==============================================================================


def list_apfs_volumes() -> list[dict[str, Any]]:
    """Flattened volume records from every APFS container."""
    command = ["diskutil", "apfs", "list", "-plist"]
    data = _load_plist(run_checked_command(command), command)
    volumes = []
    for container in data.get("Containers", []) or []:
        for volume in container.get("Volumes", []) or []:
            record = dict(volume)
            record.setdefault("ContainerReference", container.get("ContainerReference"))
            volumes.append(record)
    return volumes


def get_volume_info(device: str) -> dict[str, Any]:
    command = ["diskutil", "info", "-plist", _strip_dev(device)]
    data = _load_plist(run_checked_command(command), command)
    return data if isinstance(data, dict) else {}


def _parse_sealed(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        # diskutil reports "Yes", "No" or "Broken"
        return value.strip().lower() == "yes"
    return None


def _mounted_device(volume: dict[str, Any]) -> str:
    for snapshot in volume.get("MountedSnapshots", []) or []:
        snapshot_device = snapshot.get("SnapshotBSD")
        if snapshot_device:
            return _strip_dev(snapshot_device)
    return _strip_dev(volume.get("DeviceIdentifier", ""))


def locate_volume_by_role(
    volumes: list[dict[str, Any]], role_name: str, role: VolumeRole
) -> Volume:
    candidates = [volume for volume in volumes if role_name in (volume.get("Roles") or [])]
    if not candidates:
        raise VolumeNotFoundError(role.value, f"no APFS volume has role {role_name!r}")
    if len(candidates) > 1:
        raise AmbiguousVolumeError(
            role.value, [volume.get("DeviceIdentifier", "?") for volume in candidates]
        )
    volume = candidates[0]
    device = _mounted_device(volume)
    if not device:
        raise VolumeNotFoundError(role.value, "volume record has no device identifier")
    info = get_volume_info(device)
    sealed = _parse_sealed(volume.get("Sealed", info.get("Sealed")))
    return Volume(
        role=role,
        device=device,
        mount_point=resolve_mount_point(device, role, info=info),
        name=volume.get("Name") or info.get("VolumeName") or None,
        sealed=sealed,
    )


def resolve_mount_point(
    device: str, role: VolumeRole, info: dict[str, Any] | None = None
) -> Path:
    """Mount point of ``device``, verified to be an existing directory.

    Raises:
        MountPointNotFoundError: If diskutil reports no mount point or the
            reported path is not a directory
    """
    if info is None:
        info = get_volume_info(device)
    mount_point = info.get("MountPoint") or ""
    if not mount_point:
        raise MountPointNotFoundError(role.value, device)
    path = Path(mount_point)
    if not path.is_dir():
        raise MountPointNotFoundError(role.value, device, mount_point)
    return path


def locate_volumes(policy: LockdownPolicy) -> tuple[Volume, Volume]:
    """Locate the (system, data) volume pair using the policy's discovery method."""
    if policy.volume_discovery == VolumeDiscovery.MOUNT_TABLE:
        mount_output = read_mount_table()
        system_volume = locate_volume_by_marker(
            mount_output, policy.system_volume_marker, VolumeRole.SYSTEM
        )
        data_volume = locate_volume_by_marker(
            mount_output, policy.data_volume_marker, VolumeRole.DATA
        )
    else:
        volumes = list_apfs_volumes()
        log.debug(f"diskutil reported {len(volumes)} APFS volumes")
        system_volume = locate_volume_by_role(
            volumes, policy.system_volume_role, VolumeRole.SYSTEM
        )
        data_volume = locate_volume_by_role(volumes, policy.data_volume_role, VolumeRole.DATA)

    for volume in (system_volume, data_volume):
        EventLogger.log_volume_located(
            log, volume.role.value, volume.device, str(volume.mount_point)
        )
    return system_volume, data_volume
