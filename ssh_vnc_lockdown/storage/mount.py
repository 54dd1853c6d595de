"""Unmount the sealed system volume and mount it again read-write.

In Recovery the sealed system snapshot is mounted read-only under /Volumes.
To edit files on it the snapshot is force-unmounted and the same device is
mounted read-write (and hidden from Finder) at a temporary mount point:

    mkdir -p /tmp/system_volume_mnt
    umount -f /dev/disk1s5s1
    mount -o nobrowse -t apfs /dev/disk1s5s1 /tmp/system_volume_mnt

Nothing else may hold the system volume open; that is not checked.
"""

from __future__ import annotations

import os
from pathlib import Path

from ssh_vnc_lockdown.exceptions import CommandError, RemountError, UnmountFailedError
from ssh_vnc_lockdown.logging import LoggerFactory

from .command_runners import run_checked_command
from .validation import validate_mounted


log = LoggerFactory.for_mount()


def is_mounted(path: Path | str) -> bool:
    return os.path.ismount(path)


def create_mount_point(path: Path, *, dry_run: bool = False) -> None:
    if dry_run:
        log.info(f"DRY-RUN: mkdir -p {path}")
        return
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise RemountError("-", str(path), f"cannot create mount point: {error}") from error


def unmount_volume(device_path: str, *, force: bool = True, dry_run: bool = False) -> None:
    """Unmount ``device_path`` (e.g. /dev/disk1s5s1).

    Raises:
        UnmountFailedError: If umount fails
    """
    command = ["umount"]
    if force:
        command.append("-f")
    command.append(device_path)
    try:
        run_checked_command(command, dry_run=dry_run)
    except CommandError as error:
        raise UnmountFailedError(device_path, error.message) from error


def mount_apfs_readwrite(device_path: str, mount_point: Path, *, dry_run: bool = False) -> None:
    """Mount an APFS device read-write with nobrowse at ``mount_point``.

    Raises:
        RemountError: If mount fails or the mount point is not active afterwards
    """
    try:
        run_checked_command(
            ["mount", "-o", "nobrowse", "-t", "apfs", device_path, str(mount_point)],
            dry_run=dry_run,
        )
    except CommandError as error:
        raise RemountError(device_path, str(mount_point), error.message) from error
    if not dry_run:
        validate_mounted(device_path, mount_point)

