"""Settings storage for lockdown policy."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


SETTINGS_PATH = Path(
    os.environ.get(
        "SSH_VNC_LOCKDOWN_SETTINGS_PATH",
        Path.home() / ".config" / "ssh-vnc-lockdown" / "settings.json",
    )
)

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_SSH_PORT = 22022
DEFAULT_VNC_PORT = 59059
DEFAULT_VNC_BIND_ADDRESS = "localhost"
DEFAULT_READWRITE_MOUNT_POINT = "/tmp/system_volume_mnt"

DEFAULT_SETTINGS: dict[str, Any] = {
    "volume_discovery": "diskutil",
    "system_volume_role": "System",
    "data_volume_role": "Data",
    "system_volume_marker": "(apfs, sealed, local, read-only, journaled, nobrowse)",
    "data_volume_marker": "Data (apfs, local, journaled, nobrowse)",
    "ssh_descriptor_path": "System/Library/LaunchDaemons/ssh.plist",
    "screensharing_descriptor_path": "System/Library/LaunchDaemons/com.apple.screensharing.plist",
    "sshd_config_path": "private/etc/ssh/sshd_config",
    "root_home_path": "private/var/root",
    "users_path": "Users",
    "user_sentinels": [".localized", "Shared"],
    "required_user_count": 1,
    "ssh_port": DEFAULT_SSH_PORT,
    "vnc_port": DEFAULT_VNC_PORT,
    "vnc_bind_address": DEFAULT_VNC_BIND_ADDRESS,
    "patch_engine": "plist",
    "patch_target": "backup",
    "readwrite_mount_point": DEFAULT_READWRITE_MOUNT_POINT,
    "disable_authenticated_root": False,
    "create_snapshot": False,
}


@dataclass
class SettingsStore:
    values: dict[str, Any] = field(default_factory=dict)


settings_store = SettingsStore()


def load_settings(path: Path | None = None) -> None:
    """Reset to defaults, then merge the JSON settings file if it is readable."""
    settings_path = path or SETTINGS_PATH
    settings_store.values = dict(DEFAULT_SETTINGS)
    if not settings_path.exists():
        return
    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return
    if isinstance(data, dict):
        settings_store.values.update(data)


def get_setting(key: str, default: Any | None = None) -> Any:
    return settings_store.values.get(key, default)


def current_settings() -> dict[str, Any]:
    """Snapshot of the active settings, defaults included."""
    return dict(settings_store.values)


load_settings()
