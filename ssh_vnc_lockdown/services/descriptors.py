"""Edit the SSH and screen sharing launch daemon descriptors.

Two engines are available:

PLIST (default):
    The descriptor is loaded with plistlib, the socket listener dicts under
    ``Sockets`` are edited by key, and the file is written back in its
    original format (XML or binary) with key order preserved.

TEXT:
    A byte-exact regular expression substitution on the XML text. Every
    byte outside the match is left untouched, but any change in Apple's
    formatting makes the pattern miss.

Edits made:
    ssh.plist:                    SockServiceName ssh -> 22022, Bonjour removed
    com.apple.screensharing.plist: SockServiceName vnc-server -> 59059,
                                   SockNodeName localhost added, Bonjour removed

Both engines are idempotent. A descriptor that needs no change is reported
with ``changed=False`` and a warning, not an error.
"""

from __future__ import annotations

import plistlib
import re
from pathlib import Path
from typing import Any, Callable
from xml.parsers.expat import ExpatError
from xml.sax.saxutils import escape

from ssh_vnc_lockdown.config.settings import (
    DEFAULT_SSH_PORT,
    DEFAULT_VNC_BIND_ADDRESS,
    DEFAULT_VNC_PORT,
)
from ssh_vnc_lockdown.domain.models import PatchEngine, PatchResult
from ssh_vnc_lockdown.exceptions import PatchError
from ssh_vnc_lockdown.logging import EventLogger, LoggerFactory


log = LoggerFactory.for_patch()

BINARY_PLIST_MAGIC = b"bplist00"

SSH_BONJOUR_PATTERN = re.compile(
    r"<string>ssh</string>\s+<key>Bonjour</key>\s+<array>\s+<string>ssh</string>"
    r"\s+<string>sftp-ssh</string>\s+</array>"
)

SCREENSHARING_BONJOUR_PATTERN = re.compile(
    r"<key>Bonjour</key>(\s+)<string>rfb</string>(\s+)<key>SockServiceName</key>"
    r"(\s+)<string>vnc-server</string>"
)

SSH_SERVICE_NAME = "ssh"
VNC_SERVICE_NAME = "vnc-server"


# ==============================================================================
# Text engine
# ==============================================================================


def patch_ssh_text(text: str, port: int = DEFAULT_SSH_PORT) -> str:
    return SSH_BONJOUR_PATTERN.sub(lambda _match: f"<string>{port}</string>", text, count=1)


def patch_screensharing_text(
    text: str, port: int = DEFAULT_VNC_PORT, bind_address: str = DEFAULT_VNC_BIND_ADDRESS
) -> str:
    def _replace(match: re.Match) -> str:
        return (
            f"<key>SockNodeName</key>{match.group(1)}"
            f"<string>{escape(bind_address)}</string>{match.group(2)}"
            f"<key>SockServiceName</key>{match.group(3)}"
            f"<string>{port}</string>"
        )

    return SCREENSHARING_BONJOUR_PATTERN.sub(_replace, text, count=1)


# ==============================================================================
# Plist engine
# ==============================================================================


def _listeners(plist: Any) -> list[dict]:
    """Every socket listener dict under ``Sockets`` (dict or array form)."""
    if not isinstance(plist, dict):
        return []
    sockets = plist.get("Sockets")
    if not isinstance(sockets, dict):
        return []
    listeners = []
    for entry in sockets.values():
        if isinstance(entry, dict):
            listeners.append(entry)
        elif isinstance(entry, list):
            listeners.extend(item for item in entry if isinstance(item, dict))
    return listeners


def patch_ssh_plist(plist: Any, port: int = DEFAULT_SSH_PORT) -> bool:
    """Point the ssh listener at ``port`` and drop its Bonjour advertisement."""
    changed = False
    port_name = str(port)
    for listener in _listeners(plist):
        if listener.get("SockServiceName") not in (SSH_SERVICE_NAME, port_name):
            continue
        if listener.get("SockServiceName") != port_name:
            listener["SockServiceName"] = port_name
            changed = True
        if "Bonjour" in listener:
            del listener["Bonjour"]
            changed = True
    return changed


def patch_screensharing_plist(
    plist: Any, port: int = DEFAULT_VNC_PORT, bind_address: str = DEFAULT_VNC_BIND_ADDRESS
) -> bool:
    """Bind the VNC listener to ``bind_address``:``port`` without Bonjour."""
    changed = False
    port_name = str(port)
    for listener in _listeners(plist):
        if listener.get("SockServiceName") not in (VNC_SERVICE_NAME, port_name):
            continue
        if "Bonjour" in listener:
            del listener["Bonjour"]
            changed = True
        if listener.get("SockNodeName") != bind_address:
            listener["SockNodeName"] = bind_address
            changed = True
        if listener.get("SockServiceName") != port_name:
            listener["SockServiceName"] = port_name
            changed = True
    return changed


# ==============================================================================
# File handling
# ==============================================================================


def _edit_text(path: Path, data: bytes, edit: Callable[[str], str]) -> bytes | None:
    if data.startswith(BINARY_PLIST_MAGIC):
        raise PatchError(str(path), "binary plist cannot be edited with the text engine")
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as error:
        raise PatchError(str(path), f"not UTF-8 text: {error}") from error
    patched = edit(text)
    return None if patched == text else patched.encode("utf-8")


def _edit_plist(path: Path, data: bytes, edit: Callable[[Any], bool]) -> bytes | None:
    fmt = plistlib.FMT_BINARY if data.startswith(BINARY_PLIST_MAGIC) else plistlib.FMT_XML
    try:
        plist = plistlib.loads(data)
    except (ExpatError, ValueError) as error:
        raise PatchError(str(path), f"invalid property list: {error}") from error
    if not edit(plist):
        return None
    return plistlib.dumps(plist, fmt=fmt, sort_keys=False)


def _patch_file(
    path: Path,
    engine: PatchEngine,
    text_edit: Callable[[str], str],
    plist_edit: Callable[[Any], bool],
    dry_run: bool,
) -> PatchResult:
    try:
        data = path.read_bytes()
    except OSError as error:
        raise PatchError(str(path), str(error)) from error

    if engine == PatchEngine.TEXT:
        patched = _edit_text(path, data, text_edit)
    else:
        patched = _edit_plist(path, data, plist_edit)

    changed = patched is not None
    if not changed:
        log.warning(f"No change made to {path}: expected entries not found (already patched?)")
    elif dry_run:
        log.info(f"DRY-RUN: would update {path}")
    else:
        try:
            path.write_bytes(patched)
        except OSError as error:
            raise PatchError(str(path), str(error)) from error
    if not dry_run:
        EventLogger.log_file_patched(log, str(path), changed, engine.value)
    return PatchResult(path=path, changed=changed, dry_run=dry_run)


def patch_ssh_descriptor(
    path: Path,
    *,
    port: int = DEFAULT_SSH_PORT,
    engine: PatchEngine = PatchEngine.PLIST,
    dry_run: bool = False,
) -> PatchResult:
    """Patch an ssh.plist in place (see module docstring)."""
    return _patch_file(
        path,
        engine,
        lambda text: patch_ssh_text(text, port),
        lambda plist: patch_ssh_plist(plist, port),
        dry_run,
    )


def patch_screensharing_descriptor(
    path: Path,
    *,
    port: int = DEFAULT_VNC_PORT,
    bind_address: str = DEFAULT_VNC_BIND_ADDRESS,
    engine: PatchEngine = PatchEngine.PLIST,
    dry_run: bool = False,
) -> PatchResult:
    """Patch a com.apple.screensharing.plist in place (see module docstring)."""
    return _patch_file(
        path,
        engine,
        lambda text: patch_screensharing_text(text, port, bind_address),
        lambda plist: patch_screensharing_plist(plist, port, bind_address),
        dry_run,
    )
