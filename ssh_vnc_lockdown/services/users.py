"""Determine the account that keeps SSH access.

The users container (``/Users`` on the data volume) is listed the way ``ls``
shows it: hidden entries are skipped, and the known non-account names
(``Shared`` and ``.localized`` by default) are excluded. What remains must be
exactly the required number of accounts, one by default; there is no prompt
to pick between several.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from ssh_vnc_lockdown.domain.models import OperatingUser
from ssh_vnc_lockdown.exceptions import UserCountError
from ssh_vnc_lockdown.logging import LoggerFactory


log = LoggerFactory.for_users()


def list_user_entries(users_dir: Path, sentinels: Iterable[str] = ()) -> list[str]:
    excluded = set(sentinels)
    entries = []
    for entry in sorted(users_dir.iterdir(), key=lambda path: path.name):
        name = entry.name
        if name.startswith(".") or name in excluded:
            log.trace(f"Skipping {name} in {users_dir}")
            continue
        entries.append(name)
    return entries


def enumerate_operating_users(
    users_dir: Path,
    sentinels: Iterable[str] = (".localized", "Shared"),
    required_count: int = 1,
) -> list[OperatingUser]:
    """Accounts found in ``users_dir``.

    Raises:
        UserCountError: If the count differs from ``required_count``
    """
    entries = list_user_entries(users_dir, sentinels)
    log.debug(f"Found {len(entries)} account(s) in {users_dir}: {entries}")
    if len(entries) != required_count:
        raise UserCountError(entries, required_count)
    return [OperatingUser.from_entry(name) for name in entries]
