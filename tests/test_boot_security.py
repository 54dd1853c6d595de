"""Tests for services/boot_security.py - csrutil and bless handling."""

from pathlib import Path

import pytest

from ssh_vnc_lockdown.exceptions import CommandError
from ssh_vnc_lockdown.services import boot_security


@pytest.fixture
def mock_runner(mocker):
    return mocker.patch(
        "ssh_vnc_lockdown.services.boot_security.run_checked_command", return_value=""
    )


class TestAuthenticatedRoot:
    def test_status(self, mock_runner):
        mock_runner.return_value = "Authenticated Root status: enabled\n"

        assert boot_security.authenticated_root_status() == "Authenticated Root status: enabled"
        mock_runner.assert_called_once_with(["csrutil", "authenticated-root", "status"])

    def test_status_failure_is_not_fatal(self, mock_runner, log_records):
        mock_runner.side_effect = CommandError(["csrutil"], None, "csrutil not found")

        assert boot_security.authenticated_root_status() is None
        assert any(record["level"].name == "WARNING" for record in log_records)

    def test_disable(self, mock_runner):
        boot_security.disable_authenticated_root()

        mock_runner.assert_called_once_with(
            ["csrutil", "authenticated-root", "disable"], dry_run=False
        )

    def test_disable_failure_propagates(self, mock_runner):
        mock_runner.side_effect = CommandError(["csrutil"], 1, "SIP is not enabled")

        with pytest.raises(CommandError):
            boot_security.disable_authenticated_root()


class TestBootSnapshot:
    def test_build_snapshot_command(self):
        assert boot_security.build_snapshot_command(Path("/tmp/system_volume_mnt")) == [
            "bless",
            "--folder",
            "/tmp/system_volume_mnt/System/Library/CoreServices",
            "--bootefi",
            "--create-snapshot",
        ]

    def test_create_boot_snapshot(self, mock_runner):
        rendered = boot_security.create_boot_snapshot(Path("/tmp/system_volume_mnt"))

        assert rendered == (
            "bless --folder /tmp/system_volume_mnt/System/Library/CoreServices "
            "--bootefi --create-snapshot"
        )
        assert mock_runner.call_args.kwargs == {"dry_run": False}

    def test_create_boot_snapshot_dry_run(self, mock_runner):
        boot_security.create_boot_snapshot(Path("/tmp/system_volume_mnt"), dry_run=True)

        assert mock_runner.call_args.kwargs == {"dry_run": True}
