"""Domain model for the lockdown procedure.

Type-safe objects for the volumes, files and accounts the procedure touches,
replacing the loose strings a shell rendition would pass around.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from ssh_vnc_lockdown.exceptions import ConfigurationError


# ==============================================================================
# Volume Domain
# ==============================================================================


class VolumeRole(Enum):
    """Role of an APFS volume in the system/data pair."""

    SYSTEM = "system"
    DATA = "data"


@dataclass(frozen=True)
class Volume:
    """A mounted APFS volume whose mount point has been verified."""

    role: VolumeRole
    device: str  # e.g., "disk1s5s1"
    mount_point: Path  # e.g., /Volumes/Macintosh HD
    name: str | None = None  # e.g., "Macintosh HD"
    sealed: bool | None = None

    @property
    def device_path(self) -> str:
        """Device node path (e.g., /dev/disk1s5s1)."""
        if self.device.startswith("/dev/"):
            return self.device
        return f"/dev/{self.device}"

    def format_label(self) -> str:
        """Human-readable label, e.g. "disk1s5s1 (/Volumes/Macintosh HD)"."""
        return f"{self.device} ({self.mount_point})"


class VolumeDiscovery(Enum):
    """How the system and data volumes are located."""

    DISKUTIL = "diskutil"  # structured `diskutil apfs list -plist`
    MOUNT_TABLE = "mount-table"  # substring match on `mount` output


# ==============================================================================
# Artifact Domain
# ==============================================================================


class ArtifactKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class ConfigArtifact:
    """A file or directory the procedure reads or changes.

    ``path`` is the location on the mounted volume; ``system_path`` is the
    same location as the booted OS sees it (used for messages and backup
    names).
    """

    label: str
    path: Path
    system_path: str
    kind: ArtifactKind = ArtifactKind.FILE
    volume_role: VolumeRole = VolumeRole.DATA

    def exists(self) -> bool:
        if self.kind == ArtifactKind.DIRECTORY:
            return self.path.is_dir()
        return self.path.is_file()


@dataclass(frozen=True)
class ArtifactSet:
    """The five artifacts resolved from the system and data volumes."""

    ssh_descriptor: ConfigArtifact
    screensharing_descriptor: ConfigArtifact
    sshd_config: ConfigArtifact
    root_home: ConfigArtifact
    users_dir: ConfigArtifact

    def mutable_files(self) -> tuple[ConfigArtifact, ConfigArtifact, ConfigArtifact]:
        """Files that are backed up before mutation, in backup order."""
        return (self.ssh_descriptor, self.screensharing_descriptor, self.sshd_config)


@dataclass(frozen=True)
class BackupCopy:
    """A timestamped copy of an artifact in root's home directory."""

    source: ConfigArtifact
    destination: Path
    timestamp: str


# ==============================================================================
# User Domain
# ==============================================================================


@dataclass(frozen=True)
class OperatingUser:
    """The account that keeps SSH access after the lockdown."""

    username: str

    @classmethod
    def from_entry(cls, entry: Path | str) -> OperatingUser:
        return cls(username=Path(entry).name)


# ==============================================================================
# Patch Domain
# ==============================================================================


class PatchEngine(Enum):
    """How service descriptors are edited."""

    PLIST = "plist"  # plistlib load/modify/dump
    TEXT = "text"  # byte-exact regex substitution


class PatchTarget(Enum):
    """Which copy of the service descriptors is edited."""

    BACKUP = "backup"  # timestamped copies in root's home
    LIVE = "live"  # files on the read-write system volume mount
    BOTH = "both"

    @property
    def includes_backup(self) -> bool:
        return self in (PatchTarget.BACKUP, PatchTarget.BOTH)

    @property
    def includes_live(self) -> bool:
        return self in (PatchTarget.LIVE, PatchTarget.BOTH)


@dataclass(frozen=True)
class PatchResult:
    path: Path
    changed: bool
    dry_run: bool = False


# ==============================================================================
# Policy
# ==============================================================================


MIN_PORT = 1
MAX_PORT = 65535


def _enum_setting(enum_cls, settings: dict[str, Any], key: str, default: str):
    value = settings.get(key, default)
    try:
        return enum_cls(value)
    except ValueError as error:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(key, value, f"expected one of: {choices}") from error


def _int_setting(settings: dict[str, Any], key: str, default: int) -> int:
    value = settings.get(key, default)
    if isinstance(value, bool):
        raise ConfigurationError(key, value, "expected an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as error:
        raise ConfigurationError(key, value, "expected an integer") from error


def _port_setting(settings: dict[str, Any], key: str, default: int) -> int:
    port = _int_setting(settings, key, default)
    if not MIN_PORT <= port <= MAX_PORT:
        raise ConfigurationError(key, port, f"expected a port between {MIN_PORT} and {MAX_PORT}")
    return port


def _str_setting(settings: dict[str, Any], key: str, default: str) -> str:
    value = settings.get(key, default)
    if not isinstance(value, str) or not value:
        raise ConfigurationError(key, value, "expected a non-empty string")
    return value


def _bool_setting(settings: dict[str, Any], key: str, default: bool) -> bool:
    value = settings.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(key, value, "expected true or false")
    return value


def _names_setting(
    settings: dict[str, Any], key: str, default: tuple[str, ...]
) -> tuple[str, ...]:
    value = settings.get(key, default)
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(key, value, "expected a name or a list of names")
    return tuple(value)


@dataclass(frozen=True)
class LockdownPolicy:
    """Every tunable of the lockdown, resolved from settings."""

    volume_discovery: VolumeDiscovery = VolumeDiscovery.DISKUTIL
    system_volume_role: str = "System"
    data_volume_role: str = "Data"
    system_volume_marker: str = "(apfs, sealed, local, read-only, journaled, nobrowse)"
    data_volume_marker: str = "Data (apfs, local, journaled, nobrowse)"
    ssh_descriptor_path: str = "System/Library/LaunchDaemons/ssh.plist"
    screensharing_descriptor_path: str = (
        "System/Library/LaunchDaemons/com.apple.screensharing.plist"
    )
    sshd_config_path: str = "private/etc/ssh/sshd_config"
    root_home_path: str = "private/var/root"
    users_path: str = "Users"
    user_sentinels: tuple[str, ...] = (".localized", "Shared")
    required_user_count: int = 1
    ssh_port: int = 22022
    vnc_port: int = 59059
    vnc_bind_address: str = "localhost"
    patch_engine: PatchEngine = PatchEngine.PLIST
    patch_target: PatchTarget = PatchTarget.BACKUP
    readwrite_mount_point: Path = field(default_factory=lambda: Path("/tmp/system_volume_mnt"))
    disable_authenticated_root: bool = False
    create_snapshot: bool = False

    @classmethod
    def from_settings(cls, settings: dict[str, Any]) -> LockdownPolicy:
        """Build a policy from a settings dict (see config.settings).

        Raises:
            ConfigurationError: If a value has the wrong type or is out of range
        """
        defaults = cls()
        required_user_count = _int_setting(
            settings, "required_user_count", defaults.required_user_count
        )
        if required_user_count < 1:
            raise ConfigurationError(
                "required_user_count", required_user_count, "must be at least 1"
            )

        return cls(
            volume_discovery=_enum_setting(
                VolumeDiscovery, settings, "volume_discovery", defaults.volume_discovery.value
            ),
            system_volume_role=_str_setting(
                settings, "system_volume_role", defaults.system_volume_role
            ),
            data_volume_role=_str_setting(settings, "data_volume_role", defaults.data_volume_role),
            system_volume_marker=_str_setting(
                settings, "system_volume_marker", defaults.system_volume_marker
            ),
            data_volume_marker=_str_setting(
                settings, "data_volume_marker", defaults.data_volume_marker
            ),
            ssh_descriptor_path=_str_setting(
                settings, "ssh_descriptor_path", defaults.ssh_descriptor_path
            ),
            screensharing_descriptor_path=_str_setting(
                settings, "screensharing_descriptor_path", defaults.screensharing_descriptor_path
            ),
            sshd_config_path=_str_setting(settings, "sshd_config_path", defaults.sshd_config_path),
            root_home_path=_str_setting(settings, "root_home_path", defaults.root_home_path),
            users_path=_str_setting(settings, "users_path", defaults.users_path),
            user_sentinels=_names_setting(settings, "user_sentinels", defaults.user_sentinels),
            required_user_count=required_user_count,
            ssh_port=_port_setting(settings, "ssh_port", defaults.ssh_port),
            vnc_port=_port_setting(settings, "vnc_port", defaults.vnc_port),
            vnc_bind_address=_str_setting(
                settings, "vnc_bind_address", defaults.vnc_bind_address
            ),
            patch_engine=_enum_setting(
                PatchEngine, settings, "patch_engine", defaults.patch_engine.value
            ),
            patch_target=_enum_setting(
                PatchTarget, settings, "patch_target", defaults.patch_target.value
            ),
            readwrite_mount_point=Path(
                _str_setting(
                    settings, "readwrite_mount_point", str(defaults.readwrite_mount_point)
                )
            ),
            disable_authenticated_root=_bool_setting(
                settings, "disable_authenticated_root", defaults.disable_authenticated_root
            ),
            create_snapshot=_bool_setting(settings, "create_snapshot", defaults.create_snapshot),
        )


# ==============================================================================
# Run Report
# ==============================================================================


@dataclass
class LockdownReport:
    """What a lockdown run found and did.

    Filled in step by step; a run that aborts leaves the later fields empty.
    """

    dry_run: bool = False
    system_volume: Volume | None = None
    data_volume: Volume | None = None
    artifacts: ArtifactSet | None = None
    users: list[OperatingUser] = field(default_factory=list)
    backups: list[BackupCopy] = field(default_factory=list)
    readwrite_volume: Volume | None = None
    patches: list[PatchResult] = field(default_factory=list)
    directives: list[str] = field(default_factory=list)
    authenticated_root_status: str | None = None
    authenticated_root_disabled: bool = False
    snapshot_command: str | None = None
    snapshot_created: bool = False
