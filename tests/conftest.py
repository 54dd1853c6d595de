"""
Pytest configuration and shared fixtures for ssh-vnc-lockdown tests.

This module provides common fixtures and utilities used across all test modules.
The macOS tools (diskutil, mount, csrutil, bless) are never run; volume trees
are built under pytest's tmp_path instead.
"""

import plistlib
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
from loguru import logger

from ssh_vnc_lockdown.config import settings
from ssh_vnc_lockdown.domain.models import Volume, VolumeRole


# ==============================================================================
# Service Descriptor Fixtures
# ==============================================================================


SSH_PLIST_XML = """\
<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
\t<key>Disabled</key>
\t<true/>
\t<key>Label</key>
\t<string>com.openssh.sshd</string>
\t<key>Program</key>
\t<string>/usr/libexec/sshd-keygen-wrapper</string>
\t<key>ProgramArguments</key>
\t<array>
\t\t<string>/usr/sbin/sshd</string>
\t\t<string>-i</string>
\t</array>
\t<key>Sockets</key>
\t<dict>
\t\t<key>Listeners</key>
\t\t<dict>
\t\t\t<key>SockServiceName</key>
\t\t\t<string>ssh</string>
\t\t\t<key>Bonjour</key>
\t\t\t<array>
\t\t\t\t<string>ssh</string>
\t\t\t\t<string>sftp-ssh</string>
\t\t\t</array>
\t\t</dict>
\t</dict>
\t<key>inetdCompatibility</key>
\t<dict>
\t\t<key>Wait</key>
\t\t<false/>
\t</dict>
\t<key>StandardErrorPath</key>
\t<string>/dev/null</string>
\t<key>SHAuthorizationRight</key>
\t<string>system.preferences</string>
\t<key>POSIXSpawnType</key>
\t<string>Interactive</string>
</dict>
</plist>
"""

SCREENSHARING_PLIST_XML = """\
<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
\t<key>Disabled</key>
\t<true/>
\t<key>Label</key>
\t<string>com.apple.screensharing</string>
\t<key>Program</key>
\t<string>/System/Library/CoreServices/RemoteManagement/screensharingd.bundle/Contents/MacOS/screensharingd</string>
\t<key>Sockets</key>
\t<dict>
\t\t<key>Listener</key>
\t\t<dict>
\t\t\t<key>Bonjour</key>
\t\t\t<string>rfb</string>
\t\t\t<key>SockServiceName</key>
\t\t\t<string>vnc-server</string>
\t\t</dict>
\t</dict>
\t<key>UserName</key>
\t<string>_screensharing</string>
</dict>
</plist>
"""

SSHD_CONFIG_TEXT = """\
#\t$OpenBSD: sshd_config,v 1.104 2021/07/02 05:11:21 dtucker Exp $

#Port 22
#PermitRootLogin prohibit-password
#PasswordAuthentication yes

Subsystem\tsftp\t/usr/libexec/sftp-server
"""


@pytest.fixture
def ssh_plist_xml() -> str:
    """Fixture providing an unmodified ssh.plist as shipped by macOS."""
    return SSH_PLIST_XML


@pytest.fixture
def screensharing_plist_xml() -> str:
    """Fixture providing an unmodified com.apple.screensharing.plist."""
    return SCREENSHARING_PLIST_XML


@pytest.fixture
def sshd_config_text() -> str:
    """Fixture providing a stock sshd_config."""
    return SSHD_CONFIG_TEXT


# ==============================================================================
# Volume Tree Fixtures
# ==============================================================================


@pytest.fixture
def volume_tree(tmp_path) -> SimpleNamespace:
    """
    Fixture providing a system/data volume pair laid out like Recovery.

    Args:
        tmp_path: pytest's built-in temporary directory fixture.

    Returns:
        Namespace with system_root, data_root and the paths of every
        artifact the lockdown touches.
    """
    system_root = tmp_path / "Volumes" / "Macintosh HD"
    data_root = tmp_path / "Volumes" / "Data"

    daemons = system_root / "System" / "Library" / "LaunchDaemons"
    daemons.mkdir(parents=True)
    ssh_plist = daemons / "ssh.plist"
    ssh_plist.write_text(SSH_PLIST_XML, encoding="utf-8")
    screensharing_plist = daemons / "com.apple.screensharing.plist"
    screensharing_plist.write_text(SCREENSHARING_PLIST_XML, encoding="utf-8")

    ssh_dir = data_root / "private" / "etc" / "ssh"
    ssh_dir.mkdir(parents=True)
    sshd_config = ssh_dir / "sshd_config"
    sshd_config.write_text(SSHD_CONFIG_TEXT, encoding="utf-8")

    root_home = data_root / "private" / "var" / "root"
    root_home.mkdir(parents=True)

    users_dir = data_root / "Users"
    users_dir.mkdir(parents=True)
    (users_dir / ".localized").write_text("")
    (users_dir / "Shared").mkdir()
    (users_dir / "alice").mkdir()

    return SimpleNamespace(
        system_root=system_root,
        data_root=data_root,
        ssh_plist=ssh_plist,
        screensharing_plist=screensharing_plist,
        sshd_config=sshd_config,
        root_home=root_home,
        users_dir=users_dir,
    )


@pytest.fixture
def system_volume(volume_tree) -> Volume:
    """Fixture providing the sealed system snapshot volume."""
    return Volume(
        role=VolumeRole.SYSTEM,
        device="disk1s5s1",
        mount_point=volume_tree.system_root,
        name="Macintosh HD",
        sealed=True,
    )


@pytest.fixture
def data_volume(volume_tree) -> Volume:
    """Fixture providing the data volume."""
    return Volume(
        role=VolumeRole.DATA,
        device="disk1s2",
        mount_point=volume_tree.data_root,
        name="Data",
        sealed=False,
    )


# ==============================================================================
# diskutil / mount Output Fixtures
# ==============================================================================


@pytest.fixture
def mount_table_output(volume_tree) -> str:
    """
    Fixture providing `mount` output as seen in Recovery.

    Returns:
        Mount table text with one sealed system snapshot and one data volume.
    """
    return "\n".join(
        [
            "/dev/disk0s1s1 on / (apfs, sealed, local, read-only, journaled)",
            "devfs on /dev (devfs, local, nobrowse)",
            f"/dev/disk1s5s1 on {volume_tree.system_root} "
            "(apfs, sealed, local, read-only, journaled, nobrowse)",
            f"/dev/disk1s2 on {volume_tree.data_root} - Data "
            "(apfs, local, journaled, nobrowse)",
            "/dev/disk1s1 on /Volumes/Preboot (apfs, local, journaled, nobrowse)",
            "",
        ]
    )


@pytest.fixture
def apfs_volume_records() -> List[Dict[str, Any]]:
    """Fixture providing the volume records of one APFS container."""
    return [
        {
            "DeviceIdentifier": "disk1s5",
            "Name": "Macintosh HD",
            "Roles": ["System"],
            "Sealed": "Yes",
            "MountedSnapshots": [
                {"SnapshotBSD": "disk1s5s1", "SnapshotName": "com.apple.os.update-ABC"}
            ],
        },
        {
            "DeviceIdentifier": "disk1s2",
            "Name": "Macintosh HD - Data",
            "Roles": ["Data"],
            "Sealed": "No",
        },
        {"DeviceIdentifier": "disk1s1", "Name": "Preboot", "Roles": ["Preboot"]},
        {"DeviceIdentifier": "disk1s3", "Name": "Recovery", "Roles": ["Recovery"]},
    ]


@pytest.fixture
def apfs_list_output(apfs_volume_records) -> str:
    """
    Fixture providing `diskutil apfs list -plist` output.

    Returns:
        XML property list text with a single container.
    """
    data = {
        "Containers": [
            {
                "ContainerReference": "disk1",
                "DesignatedPhysicalStore": "disk0s2",
                "Volumes": apfs_volume_records,
            }
        ]
    }
    return plistlib.dumps(data).decode("utf-8")


@pytest.fixture
def volume_info_output(volume_tree):
    """
    Fixture providing a builder for `diskutil info -plist <device>` output.

    Returns:
        Callable mapping a device identifier to XML property list text.
    """
    infos = {
        "disk1s5s1": {
            "DeviceIdentifier": "disk1s5s1",
            "MountPoint": str(volume_tree.system_root),
            "VolumeName": "Macintosh HD",
            "Sealed": "Yes",
        },
        "disk1s2": {
            "DeviceIdentifier": "disk1s2",
            "MountPoint": str(volume_tree.data_root),
            "VolumeName": "Data",
            "Sealed": "No",
        },
    }

    def build(device: str) -> str:
        return plistlib.dumps(infos.get(device, {"DeviceIdentifier": device})).decode("utf-8")

    return build


@pytest.fixture
def fake_diskutil(apfs_list_output, volume_info_output, mount_table_output):
    """
    Fixture providing a side_effect for run_checked_command that answers
    diskutil and mount the way Recovery does.
    """
    calls: List[List[str]] = []

    def run(command, input_text=None, *, dry_run=False):
        command = list(command)
        calls.append(command)
        if command[:3] == ["diskutil", "apfs", "list"]:
            return apfs_list_output
        if command[:2] == ["diskutil", "info"]:
            return volume_info_output(command[-1])
        if command == ["mount"]:
            return mount_table_output
        raise AssertionError(f"unexpected command: {command}")

    run.calls = calls
    return run


# ==============================================================================
# Subprocess Mock Fixtures
# ==============================================================================


@pytest.fixture
def mock_subprocess_run(mocker):
    """
    Fixture providing a mock for subprocess.run.

    Returns:
        Mock object for subprocess.run
    """
    return mocker.patch("subprocess.run")


# ==============================================================================
# Settings and Logging Fixtures
# ==============================================================================


@pytest.fixture
def temp_settings_file(tmp_path) -> Path:
    """
    Fixture providing a temporary settings file path.

    Args:
        tmp_path: pytest's built-in temporary directory fixture.

    Returns:
        Path to a temporary settings file.
    """
    settings_dir = tmp_path / ".config" / "ssh-vnc-lockdown"
    settings_dir.mkdir(parents=True, exist_ok=True)
    return settings_dir / "settings.json"


@pytest.fixture
def log_records():
    """
    Fixture capturing every loguru record emitted during a test.

    Returns:
        List that fills with record dicts as messages are logged.
    """
    records: List[Dict[str, Any]] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="TRACE")
    yield records
    logger.remove(handler_id)


@pytest.fixture(autouse=True)
def reset_global_state(tmp_path):
    """
    Auto-use fixture that resets settings and logging around each test.

    Settings go back to defaults and any sinks a test installed with
    setup_logging are removed afterwards.
    """
    settings.load_settings(tmp_path / "no-settings.json")
    yield
    logger.remove()
    logger.add(sys.stderr, level="WARNING")
    settings.load_settings(tmp_path / "no-settings.json")
