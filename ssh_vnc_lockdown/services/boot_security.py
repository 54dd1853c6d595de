"""Boot security posture and boot snapshot handling.

Once the system volume has been modified the Mac can only boot if booting
from a non-sealed snapshot is allowed (``csrutil authenticated-root
disable``) and a new snapshot is blessed from the modified volume. Both are
opt-in: by default the authenticated-root status is only queried and the
snapshot command is only printed.
"""

from __future__ import annotations

from pathlib import Path

from ssh_vnc_lockdown.exceptions import CommandError
from ssh_vnc_lockdown.logging import LoggerFactory
from ssh_vnc_lockdown.storage.command_runners import format_command, run_checked_command


log = LoggerFactory.for_system()

CORE_SERVICES_PATH = "System/Library/CoreServices"


def authenticated_root_status() -> str | None:
    """Output of ``csrutil authenticated-root status``, or None if it failed.

    The query is informational only, so a failure is logged and not raised.
    """
    try:
        output = run_checked_command(["csrutil", "authenticated-root", "status"])
    except CommandError as error:
        log.warning(f"Unable to query authenticated-root status: {error}")
        return None
    return output.strip()


def disable_authenticated_root(*, dry_run: bool = False) -> None:
    """Allow booting from non-sealed system snapshots.

    Raises:
        CommandError: If csrutil fails
    """
    log.warning("Disabling authenticated-root (booting from non-sealed snapshots)")
    run_checked_command(["csrutil", "authenticated-root", "disable"], dry_run=dry_run)


def build_snapshot_command(readwrite_mount_point: Path) -> list[str]:
    return [
        "bless",
        "--folder",
        f"{readwrite_mount_point}/{CORE_SERVICES_PATH}",
        "--bootefi",
        "--create-snapshot",
    ]


def create_boot_snapshot(readwrite_mount_point: Path, *, dry_run: bool = False) -> str:
    """Bless a new boot snapshot from the read-write system volume mount.

    Returns:
        The command line that was run

    Raises:
        CommandError: If bless fails
    """
    command = build_snapshot_command(readwrite_mount_point)
    log.warning(f"Creating boot snapshot: {format_command(command)}")
    run_checked_command(command, dry_run=dry_run)
    return format_command(command)
