import argparse
import os
import sys
from pathlib import Path

from ssh_vnc_lockdown.__version__ import __version__
from ssh_vnc_lockdown.actions.lockdown import run_lockdown
from ssh_vnc_lockdown.config import settings
from ssh_vnc_lockdown.domain.models import LockdownPolicy
from ssh_vnc_lockdown.exceptions import LockdownError
from ssh_vnc_lockdown.logging import LoggerFactory, logger, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ssh-vnc-lockdown",
        description=(
            "Move macOS Remote Login and Screen Sharing to non-default ports, "
            "stop advertising them via Bonjour, bind VNC to localhost and "
            "restrict SSH to the single user account. Run from Recovery."
        ),
    )
    parser.add_argument(
        "-n", "--dry-run", action="store_true", help="Show what would change without changing it"
    )
    parser.add_argument(
        "-y", "--yes", action="store_true", help="Do not ask before irreversible steps"
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Also log raw command output")
    parser.add_argument("--settings", type=Path, help="Settings JSON file to use")
    parser.add_argument("--log-dir", type=Path, help="Directory for log files")
    parser.add_argument(
        "--patch-target",
        choices=["backup", "live", "both"],
        help="Which copy of the launch daemon descriptors to edit",
    )
    parser.add_argument(
        "--patch-engine",
        choices=["plist", "text"],
        help="Edit descriptors as property lists or by text substitution",
    )
    parser.add_argument(
        "--discovery",
        choices=["diskutil", "mount-table"],
        help="How to locate the system and data volumes",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _resolve_settings(args) -> dict:
    if args.settings is not None:
        settings.load_settings(args.settings)
    values = settings.current_settings()
    overrides = {
        "patch_target": args.patch_target,
        "patch_engine": args.patch_engine,
        "volume_discovery": args.discovery,
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    return values


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(debug=args.debug, trace=args.trace, log_dir=args.log_dir)
    except OSError as error:
        print(f"[ERROR] Unable to set up logging: {error}")
        return 1
    log = LoggerFactory.for_system()

    try:
        policy = LockdownPolicy.from_settings(_resolve_settings(args))
        if not args.dry_run and os.geteuid() != 0:
            raise LockdownError("This tool must be run as root (or with --dry-run)")
        log.info(f"Starting lockdown (dry_run={args.dry_run})")
        run_lockdown(policy, dry_run=args.dry_run, assume_yes=args.yes)
    except LockdownError as error:
        log.error(f"{type(error).__name__}: {error}")
        print(f"[ERROR] {error}")
        return 1
    finally:
        logger.complete()
    return 0


if __name__ == "__main__":
    sys.exit(main())
