"""Tests for services/users.py - operating user enumeration."""

import pytest

from ssh_vnc_lockdown.domain.models import OperatingUser
from ssh_vnc_lockdown.exceptions import UserCountError
from ssh_vnc_lockdown.services import users


class TestListUserEntries:
    def test_skips_sentinels(self, volume_tree):
        assert users.list_user_entries(volume_tree.users_dir, (".localized", "Shared")) == [
            "alice"
        ]

    def test_skips_hidden_entries(self, volume_tree):
        (volume_tree.users_dir / ".DS_Store").write_text("")

        assert users.list_user_entries(volume_tree.users_dir, ("Shared",)) == ["alice"]

    def test_sorted(self, volume_tree):
        (volume_tree.users_dir / "zed").mkdir()
        (volume_tree.users_dir / "bob").mkdir()

        assert users.list_user_entries(volume_tree.users_dir, ("Shared",)) == [
            "alice",
            "bob",
            "zed",
        ]

    def test_sentinel_match_is_exact(self, volume_tree):
        (volume_tree.users_dir / "SharedStuff").mkdir()

        assert "SharedStuff" in users.list_user_entries(volume_tree.users_dir, ("Shared",))


class TestEnumerateOperatingUsers:
    """Tests for enumerate_operating_users()."""

    def test_single_user(self, volume_tree):
        assert users.enumerate_operating_users(volume_tree.users_dir) == [
            OperatingUser("alice")
        ]

    def test_no_users(self, volume_tree):
        (volume_tree.users_dir / "alice").rmdir()

        with pytest.raises(UserCountError, match="found 0: none"):
            users.enumerate_operating_users(volume_tree.users_dir)

    def test_two_users(self, volume_tree):
        (volume_tree.users_dir / "bob").mkdir()

        with pytest.raises(UserCountError) as info:
            users.enumerate_operating_users(volume_tree.users_dir)

        assert info.value.found == ["alice", "bob"]

    def test_required_count(self, volume_tree):
        (volume_tree.users_dir / "bob").mkdir()

        found = users.enumerate_operating_users(volume_tree.users_dir, required_count=2)

        assert [user.username for user in found] == ["alice", "bob"]
