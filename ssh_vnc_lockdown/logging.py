from __future__ import annotations

import os
import sys
import tempfile
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

# Recovery boots from a read-only base system; only the temp dir is writable
DEFAULT_LOG_DIR = Path(
    os.environ.get(
        "SSH_VNC_LOCKDOWN_LOG_DIR",
        Path(tempfile.gettempdir()) / "ssh-vnc-lockdown" / "logs",
    )
)


def _should_log_command_output(record) -> bool:
    """Keep raw command stdout/stderr dumps out of the console below TRACE."""
    tags = record["extra"].get("tags", [])
    if "command-output" in tags:
        return record["level"].no <= logger.level("TRACE").no
    return True


def setup_logging(
    *,
    debug: bool = False,
    trace: bool = False,
    log_dir: Path | None = None,
) -> Logger:
    """
    Setup logging with separate sinks for the console and log files.

    The console only carries warnings and errors by default because the
    operator-facing progress lines are printed to stdout by the procedure.

    Log Files:
    - operations.log: INFO+ events (7 day retention)
    - debug.log: DEBUG+ events when --debug or --trace is enabled (3 day retention)
    - structured.jsonl: Structured JSON logs for analysis (7 day retention)

    Args:
        debug: Enable DEBUG level console logging
        trace: Enable TRACE level console logging (includes command output)
        log_dir: Custom log directory (defaults to <tmp>/ssh-vnc-lockdown/logs)
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})

    if trace:
        console_level = "TRACE"
    elif debug:
        console_level = "DEBUG"
    else:
        console_level = "WARNING"

    # SINK 1: Console (stderr)
    logger.add(
        sys.stderr,
        level=console_level,
        backtrace=False,
        diagnose=False,
        filter=_should_log_command_output,
        colorize=True,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[source]: <10}</cyan> | "
            "{message}"
        ),
    )

    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    # SINK 2: Operations Log - Important events only (INFO+)
    logger.add(
        log_dir / "operations.log",
        level="INFO",
        rotation="5 MB",
        retention="7 days",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{extra[source]: <10} | "
            "{extra[job_id]: <18} | "
            "{message}"
        ),
    )

    # SINK 3: Debug Log - Detailed diagnostics, including command output
    if debug or trace:
        logger.add(
            log_dir / "debug.log",
            level="TRACE" if trace else "DEBUG",
            rotation="10 MB",
            retention="3 days",
            enqueue=True,
            backtrace=True,
            diagnose=False,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{extra[source]: <10} | "
                "{extra[job_id]: <18} | "
                "{extra[tags]} | "
                "{message}"
            ),
        )

    # SINK 4: Structured JSON Log - For later review of what a run changed
    logger.add(
        log_dir / "structured.jsonl",
        level="INFO",
        rotation="10 MB",
        retention="7 days",
        enqueue=True,
        serialize=True,
        format="{message}",
    )

    return logger


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking operations
        tags: Tags for filtering (e.g., ["backup", "storage"])
        source: Source component (e.g., "volumes", "patch")

    Returns:
        Logger with bound context
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for tracking a lockdown stage with automatic timing.

    Logs stage start, completion, and failure with duration tracking.

    Args:
        operation: Stage name (e.g., "discovery", "backup", "mutation")
        **details: Stage-specific details to log

    Yields:
        Logger bound with job_id and operation context

    Example:
        with operation_context("backup", root_home=str(root_home)) as log:
            log.debug("Copying descriptors")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.info(f"{operation.capitalize()} started")

        try:
            yield log
            duration = time.time() - start_time
            log.success(
                f"{operation.capitalize()} completed", duration_seconds=round(duration, 2)
            )
        except Exception as e:
            duration = time.time() - start_time
            log.error(
                f"{operation.capitalize()} failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(duration, 2),
            )
            raise


class LoggerFactory:
    """
    Factory for creating domain-specific loggers with automatic context.

    Each factory method returns a logger pre-configured with appropriate
    source and tags for the domain.
    """

    @staticmethod
    def for_volumes() -> Logger:
        """Logger for volume discovery."""
        return logger.bind(source="volumes", tags=["volumes", "storage"])

    @staticmethod
    def for_mount() -> Logger:
        """Logger for unmount/remount of the system volume."""
        return logger.bind(source="mount", tags=["mount", "storage"])

    @staticmethod
    def for_backup() -> Logger:
        """Logger for backup copies."""
        return logger.bind(source="backup", tags=["backup", "storage"])

    @staticmethod
    def for_patch() -> Logger:
        """Logger for descriptor and sshd_config edits."""
        return logger.bind(source="patch", tags=["patch"])

    @staticmethod
    def for_users() -> Logger:
        """Logger for user enumeration."""
        return logger.bind(source="users", tags=["users"])

    @staticmethod
    def for_commands() -> Logger:
        """Logger for external command execution."""
        return logger.bind(source="command", tags=["command"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for startup, boot security and snapshot handling."""
        return logger.bind(source="system", tags=["system"])


class EventLogger:
    """
    Structured event logger using standardized schemas.

    Every file the procedure creates or changes is recorded through here so
    structured.jsonl holds a complete account of the run.
    """

    @staticmethod
    def log_volume_located(log: Logger, role: str, device: str, mount_point: str) -> None:
        log.info(
            f"{role.capitalize()} volume located",
            event_type="volume_located",
            role=role,
            device=device,
            mount_point=mount_point,
        )

    @staticmethod
    def log_backup_created(log: Logger, source: str, destination: str, **extra) -> None:
        log.info(
            "Backup created",
            event_type="backup_created",
            source_path=source,
            backup_path=destination,
            **extra,
        )

    @staticmethod
    def log_file_patched(log: Logger, path: str, changed: bool, engine: str, **extra) -> None:
        log.info(
            "Descriptor patched" if changed else "Descriptor already patched",
            event_type="file_patched",
            path=path,
            changed=changed,
            engine=engine,
            **extra,
        )

    @staticmethod
    def log_directives_appended(log: Logger, path: str, directives: list[str]) -> None:
        log.info(
            "sshd_config directives appended",
            event_type="directives_appended",
            path=path,
            directives=list(directives),
        )
