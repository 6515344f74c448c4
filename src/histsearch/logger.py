"""Rolling logger with line-count rotation and ZIP archival."""

from __future__ import annotations

import logging
import os
import sys
import threading
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar

from histsearch.settings import CACHE_DIR

LOG_DIR = CACHE_DIR / "logs"
LOG_NAME = "histsearch"

MAX_LINES = 2000
BACKUP_COUNT = 5

# Reserved logging attributes (exclude from extra kwargs)
RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
    "thread", "threadName", "taskName", "message",
})


class CompactFormatter(logging.Formatter):
    """Format log entries as: yyMMdd-HHMMSS.mmm L PPPP TTTT module__ message [key=value...]"""

    LEVEL_MAP: ClassVar[dict[str, str]] = {
        "CRITICAL": "C",
        "ERROR": "E",
        "WARNING": "W",
        "INFO": "I",
        "DEBUG": "D",
    }

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%y%m%d-%H%M%S")
        ts += f".{int(record.msecs):03d}"
        level = self.LEVEL_MAP.get(record.levelname, "?")
        pid = f"{os.getpid() & 0xFFFF:04X}"
        tid = threading.current_thread().ident or 0
        module = record.module[:8].ljust(8)

        msg = f"{ts} {level} {pid} {tid & 0xFFFF:04X} {module} {record.getMessage()}"

        extras = {
            k: v
            for k, v in record.__dict__.items()
            if k not in RESERVED_ATTRS and not k.startswith("_")
        }
        if extras:
            msg += " " + " ".join(
                f"{k}={v!r}" if isinstance(v, str) and " " in v else f"{k}={v}"
                for k, v in extras.items()
            )

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)
        return msg


class LineCountHandler(logging.FileHandler):
    """File handler that rotates based on line count with ZIP archival."""

    def __init__(
        self,
        log_dir: Path,
        max_lines: int = MAX_LINES,
        backup_count: int = BACKUP_COUNT,
    ) -> None:
        self.log_dir = log_dir
        self.archive_dir = log_dir / "archive"
        self.base_filename_path = log_dir / f"{LOG_NAME}.log"
        self.max_lines = max_lines
        self.backup_count = backup_count

        self.archive_dir.mkdir(parents=True, exist_ok=True)
        self.line_count = self._count_existing_lines(self.base_filename_path)

        super().__init__(self.base_filename_path, mode="a", encoding="utf-8")

    def _backup(self, index: int) -> Path:
        return self.log_dir / f"{LOG_NAME}.{index}.log"

    @staticmethod
    def _count_existing_lines(filename: Path) -> int:
        if not filename.exists():
            return 0
        with open(filename, "rb") as f:
            return sum(1 for _ in f)

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        self.flush()
        self.line_count += 1
        if self.line_count >= self.max_lines:
            self._rotate()

    def _rotate(self) -> None:
        """Shift backups up by one, archiving the set first when it is full."""
        self.close()

        if self._backup(self.backup_count).exists():
            self._archive()

        for i in range(self.backup_count - 1, 0, -1):
            src = self._backup(i)
            if src.exists():
                src.rename(self._backup(i + 1))

        if self.base_filename_path.exists():
            self.base_filename_path.rename(self._backup(1))

        self.line_count = 0
        self.stream = self._open()

    def _archive(self) -> None:
        timestamp = datetime.now().strftime("%y%m%d-%H%M%S")
        zip_path = self.archive_dir / f"{LOG_NAME}-{timestamp}.zip"
        backups = [self._backup(i) for i in range(1, self.backup_count + 1)]

        try:
            with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
                for backup in backups:
                    if backup.exists():
                        zf.write(backup, backup.name)

            # Delete backups only after successful ZIP
            for backup in backups:
                if backup.exists():
                    backup.unlink()
        except OSError as e:
            # Archive failed - keep the backups and carry on logging
            print(f"Log archive failed: {e}", file=sys.stderr)


class AppLogger:
    """Wrapper around logging.Logger that supports kwargs for extra context."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._logger.debug(msg, extra=kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._logger.info(msg, extra=kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._logger.warning(msg, extra=kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._logger.error(msg, extra=kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        self._logger.exception(msg, extra=kwargs)


_logger: AppLogger | None = None


def setup_logger(level: int = logging.INFO, log_dir: Path | None = None) -> AppLogger:
    """Create and configure the application logger.

    Returns the same logger instance on repeated calls (idempotent).
    """
    global _logger

    if _logger is not None:
        return _logger

    base_logger = logging.getLogger(LOG_NAME)
    base_logger.setLevel(level)
    base_logger.propagate = False

    if not base_logger.handlers:
        handler = LineCountHandler(log_dir or LOG_DIR)
        handler.setFormatter(CompactFormatter())
        base_logger.addHandler(handler)

    _logger = AppLogger(base_logger)
    return _logger


def get_logger() -> AppLogger:
    """Get the configured logger, setting it up if needed."""
    if _logger is None:
        return setup_logger()
    return _logger
