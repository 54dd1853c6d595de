"""The lockdown procedure: discover, back up, mutate, finalize.

Each step prints an operator-facing ``[x]`` line to stdout; details go to the
log. The first failure raises a LockdownError and nothing is rolled back.
Steps that cannot be undone (remounting the system volume, disabling
authenticated-root, blessing a snapshot) ask for confirmation unless
``assume_yes`` is set. In dry-run mode discovery runs for real but no files,
mounts or security settings are changed.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from ssh_vnc_lockdown.domain.models import (
    ArtifactSet,
    ConfigArtifact,
    LockdownPolicy,
    LockdownReport,
    PatchResult,
)
from ssh_vnc_lockdown.exceptions import OperatorAbortError, RemountError
from ssh_vnc_lockdown.logging import LoggerFactory, operation_context
from ssh_vnc_lockdown.services import boot_security, descriptors, sshd_config, users
from ssh_vnc_lockdown.storage import artifacts as artifact_paths
from ssh_vnc_lockdown.storage import backup, mount, volumes
from ssh_vnc_lockdown.storage.command_runners import format_command


log = LoggerFactory.for_system()

BANNER_TITLE = "macOS SSH/VNC Lockdown"


class LockdownProcedure:
    def __init__(
        self,
        policy: LockdownPolicy,
        *,
        dry_run: bool = False,
        assume_yes: bool = False,
        echo: Callable[[str], None] = print,
        prompt: Callable[[str], str] = input,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.policy = policy
        self.dry_run = dry_run
        self.assume_yes = assume_yes
        self.echo = echo
        self.prompt = prompt
        self.clock = clock
        self.report = LockdownReport(dry_run=dry_run)

    # output helpers

    def _step(self, message: str) -> None:
        self.echo(f"[x] {message}")

    def _dry(self, message: str) -> None:
        self.echo(f"[DRY RUN] {message}")

    def _confirm(self, step: str, lines: Iterable[str]) -> None:
        """Describe an irreversible step and ask before running it.

        Skipped when --yes or --dry-run are active.

        Raises:
            OperatorAbortError: Unless the operator answers yes
        """
        if self.assume_yes or self.dry_run:
            return
        self.echo("")
        self.echo(f"About to {step}:")
        for line in lines:
            self.echo(f"  - {line}")
        self.echo("")
        try:
            answer = self.prompt("Proceed? [y/N] ").strip().lower()
        except (EOFError, KeyboardInterrupt) as error:
            raise OperatorAbortError(step) from error
        if answer not in ("y", "yes"):
            raise OperatorAbortError(step)
        log.info(f"Operator confirmed: {step}")

    # stages

    def discover(self) -> None:
        policy = self.policy
        with operation_context("discovery", method=policy.volume_discovery.value):
            system_volume, data_volume = volumes.locate_volumes(policy)
            self.report.system_volume = system_volume
            self._step(f"Determining system volume device...  {system_volume.device_path}")
            self._step(f"Determining system volume mount point...  {system_volume.mount_point}")
            ssh_descriptor, screensharing_descriptor = artifact_paths.resolve_system_artifacts(
                system_volume, policy
            )

            self.report.data_volume = data_volume
            self._step(f"Determining data volume device...  {data_volume.device_path}")
            self._step(f"Determining data volume mount point...  {data_volume.mount_point}")
            sshd, root_home, users_dir = artifact_paths.resolve_data_artifacts(
                data_volume, policy
            )
            self.report.artifacts = ArtifactSet(
                ssh_descriptor=ssh_descriptor,
                screensharing_descriptor=screensharing_descriptor,
                sshd_config=sshd,
                root_home=root_home,
                users_dir=users_dir,
            )

            accounts = users.enumerate_operating_users(
                users_dir.path, policy.user_sentinels, policy.required_user_count
            )
            self.report.users = accounts
            names = " ".join(account.username for account in accounts)
            self._step(f"Determining number of users...  {len(accounts)}")
            self._step(f"Determining username of user...  {names}")

    def back_up(self) -> None:
        found = self.report.artifacts
        timestamp = backup.backup_timestamp(self.clock())
        with operation_context("backup", timestamp=timestamp):
            for artifact in found.mutable_files():
                copy = backup.backup_artifact(
                    artifact, found.root_home.path, timestamp, dry_run=self.dry_run
                )
                self.report.backups.append(copy)
                shown = f"{found.root_home.system_path}/{copy.destination.name}"
                if self.dry_run:
                    self._dry(f"Would back up {artifact.system_path} to {shown} on data volume")
                else:
                    self._step(f"Backing up {artifact.system_path} to {shown} on data volume...")

    def mutate(self) -> None:
        policy = self.policy
        with operation_context("mutation", target=policy.patch_target.value):
            self._boot_security()
            self._remount()
            self._patch_descriptors()
            self._append_sshd_directives()

    def finalize(self) -> None:
        policy = self.policy
        rw_mount_point = policy.readwrite_mount_point
        command = boot_security.build_snapshot_command(rw_mount_point)
        self.report.snapshot_command = format_command(command)
        self._step("Saving new APFS snapshot...")
        self.echo(self.report.snapshot_command)
        if policy.create_snapshot:
            self._confirm(
                "create a new boot snapshot",
                [f"run: {self.report.snapshot_command}"],
            )
            boot_security.create_boot_snapshot(rw_mount_point, dry_run=self.dry_run)
            self.report.snapshot_created = not self.dry_run

        self.echo("")
        if self.dry_run:
            self.echo("Dry run completed; no changes were made.")
        else:
            self.echo("Lockdown completed and the system can now be rebooted.")
        self.echo("")

    # mutation steps

    def _boot_security(self) -> None:
        if self.policy.disable_authenticated_root:
            self._confirm(
                "allow booting from non-sealed system snapshots",
                [
                    "run: csrutil authenticated-root disable",
                    "the Mac will no longer boot only from Apple's signed snapshot",
                ],
            )
            self._step(
                "Allow booting from non-sealed system snapshots "
                "('csrutil authenticated-root disable')..."
            )
            boot_security.disable_authenticated_root(dry_run=self.dry_run)
            self.report.authenticated_root_disabled = not self.dry_run
        else:
            self._step("Checking authenticated-root status ('csrutil authenticated-root status')...")

        status = boot_security.authenticated_root_status()
        self.report.authenticated_root_status = status
        self.echo("")
        self.echo(status if status is not None else "(authenticated-root status unavailable)")
        self.echo("")

    def _remount(self) -> None:
        system_volume = self.report.system_volume
        rw_mount_point = self.policy.readwrite_mount_point
        self._confirm(
            "remount the system volume read-write",
            [
                f"force-unmount {system_volume.device_path} ({system_volume.mount_point})",
                f"mount {system_volume.device_path} read-write at {rw_mount_point}",
            ],
        )
        if not self.dry_run and mount.is_mounted(rw_mount_point):
            raise RemountError(
                system_volume.device_path, str(rw_mount_point), "mount point already in use"
            )

        self._step("Creating temporary mount point for mounting system volume read-write...")
        mount.create_mount_point(rw_mount_point, dry_run=self.dry_run)
        self._step("Unmounting read-only system volume...")
        mount.unmount_volume(system_volume.device_path, dry_run=self.dry_run)
        self._step("Remounting system volume read-write...")
        mount.mount_apfs_readwrite(system_volume.device_path, rw_mount_point, dry_run=self.dry_run)
        self.report.readwrite_volume = replace(system_volume, mount_point=rw_mount_point)

    def _descriptor_targets(self, artifact: ConfigArtifact) -> list[tuple[Path, Path]]:
        """(path shown to the operator, path actually read) per patch target.

        In dry-run mode neither the backups nor the read-write mount exist,
        so the read-only original stands in for both.
        """
        targets = []
        target = self.policy.patch_target
        if target.includes_backup:
            copy = next(item for item in self.report.backups if item.source == artifact)
            targets.append(copy.destination)
        if target.includes_live:
            rw_root = self.report.readwrite_volume.mount_point
            targets.append(rw_root / artifact.system_path.lstrip("/"))
        if self.dry_run:
            return [(path, artifact.path) for path in targets]
        return [(path, path) for path in targets]

    def _patch_descriptors(self) -> None:
        policy = self.policy
        found = self.report.artifacts

        for shown, path in self._descriptor_targets(found.ssh_descriptor):
            self._step(f"Updating {found.ssh_descriptor.system_path} ({shown})...")
            result = descriptors.patch_ssh_descriptor(
                path, port=policy.ssh_port, engine=policy.patch_engine, dry_run=self.dry_run
            )
            self._record_patch(shown, result)

        for shown, path in self._descriptor_targets(found.screensharing_descriptor):
            self._step(f"Updating {found.screensharing_descriptor.system_path} ({shown})...")
            result = descriptors.patch_screensharing_descriptor(
                path,
                port=policy.vnc_port,
                bind_address=policy.vnc_bind_address,
                engine=policy.patch_engine,
                dry_run=self.dry_run,
            )
            self._record_patch(shown, result)

    def _record_patch(self, shown: Path, result: PatchResult) -> None:
        self.report.patches.append(replace(result, path=shown))
        if not result.changed:
            self.echo(f"    no change: expected entries not found in {shown}")
        elif self.dry_run:
            self._dry(f"Would update {shown}")

    def _append_sshd_directives(self) -> None:
        found = self.report.artifacts
        accounts = self.report.users
        names = " ".join(account.username for account in accounts)
        directives = sshd_config.build_lockdown_directives(accounts)

        self._step(f"Updating {found.sshd_config.system_path} on data volume...")
        self._step("Disabling the ability for the 'root' user to log in via SSH...")
        self._step(
            "Disabling SSH password authentication "
            "(only SSH key pair authentication will be allowed)..."
        )
        self._step(f"Limiting SSH authentication to user {names}...")
        self.report.directives = sshd_config.append_directives(
            found.sshd_config.path, directives, dry_run=self.dry_run
        )
        if self.dry_run:
            for directive in directives:
                self._dry(f"Would append to {found.sshd_config.system_path}: {directive}")

    # entry point

    def banner(self) -> None:
        title = BANNER_TITLE + (" (dry run)" if self.dry_run else "")
        rule = "=" * len(title)
        self.echo("")
        self.echo(rule)
        self.echo(title)
        self.echo(rule)
        self.echo("")

    def run(self) -> LockdownReport:
        self.banner()
        self.discover()
        self.back_up()
        self.mutate()
        self.finalize()
        return self.report


def run_lockdown(
    policy: LockdownPolicy,
    *,
    dry_run: bool = False,
    assume_yes: bool = False,
    echo: Callable[[str], None] = print,
    prompt: Callable[[str], str] = input,
) -> LockdownReport:
    return LockdownProcedure(
        policy, dry_run=dry_run, assume_yes=assume_yes, echo=echo, prompt=prompt
    ).run()
