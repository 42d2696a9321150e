"""
Structured event log for sync and bootstrap diagnostics.
Writes JSON lines alongside the regular console log.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Logger that emits machine-parseable events in addition to the normal log.

    Usage:
        logger = StructuredLogger("launchsync", log_dir=Path("logs"))
        logger.info("file_synced", path="lib/app.py", size_bytes=2048)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"launchsync_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all events."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        parts.extend(f"{key}={value}" for key, value in context.items())
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }
        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, TypeError) as e:
            print(f"JSON event logging failed: {e}", file=sys.stderr)

    def _emit(self, level: int, event: str, **context) -> None:
        self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._emit(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._emit(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._emit(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._emit(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class SyncEventLogger:
    """Events emitted while executing a sync plan."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def plan_started(self, downloads: int, deletes: int, total_bytes: int):
        self.logger.info(
            "sync_started",
            downloads=downloads,
            deletes=deletes,
            total_bytes=total_bytes,
        )

    def file_synced(self, path: str, size_bytes: int, duration_s: float):
        self.logger.debug(
            "file_synced",
            path=path,
            size_bytes=size_bytes,
            duration_s=round(duration_s, 3),
        )

    def file_verified(self, path: str):
        """The live file already matched its checksum; nothing was fetched."""
        self.logger.debug("file_already_current", path=path)

    def file_failed(self, path: str, kind: str, error: str):
        self.logger.error("file_sync_failed", path=path, kind=kind, error=error)

    def file_deleted(self, path: str):
        self.logger.debug("file_deleted", path=path)

    def plan_completed(self, downloaded: int, deleted: int, bytes_downloaded: int):
        self.logger.info(
            "sync_completed",
            downloaded=downloaded,
            deleted=deleted,
            bytes_downloaded=bytes_downloaded,
        )


class BootstrapEventLogger:
    """Events emitted by the bootstrap phases."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def phase_entered(self, phase: str):
        self.logger.debug("phase_entered", phase=phase)

    def manifest_loaded(self, uri: str, version: str | None, update_available: bool):
        self.logger.info(
            "manifest_loaded",
            uri=uri,
            version=version,
            update_available=update_available,
        )

    def error_gated(self, phase: str, error: str, action: str):
        self.logger.warning("error_gated", phase=phase, error=error, action=action)

    def bootstrap_failed(self, phase: str, error: str):
        self.logger.error("bootstrap_failed", phase=phase, error=error)

    def bootstrap_completed(self, launch_class: str, files_updated: bool):
        self.logger.info(
            "bootstrap_completed",
            launch_class=launch_class,
            files_updated=files_updated,
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, SyncEventLogger, BootstrapEventLogger]:
    """
    Create all structured loggers.

    Returns:
        Tuple of (base_logger, sync_logger, bootstrap_logger)
    """
    base = StructuredLogger("launchsync.events", log_dir=log_dir, enable_json=enable_json)
    return base, SyncEventLogger(base), BootstrapEventLogger(base)
