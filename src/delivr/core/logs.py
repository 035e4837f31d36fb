"""
Per-command log files with size-based rotation.

Each command name maps to ``<dir>/<name>-<YYYY-MM-DD>.log``. Rotation is
handled by :class:`logging.handlers.RotatingFileHandler`; rotated backups
can be gzip-compressed and are pruned once older than the configured age.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import time
from abc import ABC, abstractmethod
from datetime import date
from logging.handlers import RotatingFileHandler
from pathlib import Path

from delivr import core
from delivr.core import LogConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE_MB = 10
DEFAULT_MAX_AGE_DAYS = 30
DEFAULT_MAX_BACKUPS = 5

_UNSAFE_CHARS = ' /\\:*?"<>|'
_SANITIZE_TABLE = str.maketrans({ch: "-" for ch in _UNSAFE_CHARS})


def sanitize_filename(name: str) -> str:
    """Lowercase a command name and replace path-hostile characters with '-'."""
    return name.lower().translate(_SANITIZE_TABLE)


def log_filename(command_name: str, day: date | None = None) -> str:
    day = day or date.today()
    return f"{sanitize_filename(command_name)}-{day.isoformat()}.log"


# ---------------------------------------------------------------------------
# Rotation
# ---------------------------------------------------------------------------


def _gzip_namer(name: str) -> str:
    return name + ".gz"


def _gzip_rotator(source: str, dest: str) -> None:
    if not os.path.exists(source):
        return
    with open(source, "rb") as src, gzip.open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.remove(source)


class CommandLogHandler(RotatingFileHandler):
    """RotatingFileHandler that writes raw text and prunes old backups."""

    terminator = ""

    def __init__(
        self,
        filename: str | Path,
        *,
        max_bytes: int,
        backup_count: int,
        max_age_days: int,
        compress: bool,
    ) -> None:
        super().__init__(
            filename,
            mode="a",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )
        self.max_age_days = max_age_days
        self.setFormatter(logging.Formatter("%(message)s"))
        if compress:
            self.namer = _gzip_namer
            self.rotator = _gzip_rotator

    def doRollover(self) -> None:
        super().doRollover()
        self.prune_backups()

    def prune_backups(self) -> None:
        if self.max_age_days <= 0:
            return
        base = Path(self.baseFilename)
        cutoff = time.time() - self.max_age_days * 86400
        prefix = base.name + "."
        for backup in base.parent.iterdir():
            if not backup.name.startswith(prefix):
                continue
            try:
                if backup.stat().st_mtime < cutoff:
                    backup.unlink()
                    logger.debug("Removed expired log backup %s", backup)
            except FileNotFoundError:
                continue


class LogWriter:
    """File-like writer that routes text through a rotating handler."""

    def __init__(self, handler: CommandLogHandler, name: str) -> None:
        self.handler = handler
        self.name = name

    @property
    def path(self) -> Path:
        return Path(self.handler.baseFilename)

    def write(self, text: str) -> int:
        if not text:
            return 0
        record = logging.LogRecord(
            name=self.name,
            level=logging.INFO,
            pathname=__file__,
            lineno=0,
            msg=text,
            args=None,
            exc_info=None,
        )
        self.handler.handle(record)
        return len(text)

    def flush(self) -> None:
        self.handler.flush()

    def close(self) -> None:
        self.handler.close()


# ---------------------------------------------------------------------------
# Log sinks
# ---------------------------------------------------------------------------


class LogSink(ABC):
    """Maps a command name to a log writer and its file path."""

    @abstractmethod
    def writer_for(self, command_name: str) -> LogWriter:
        ...

    @abstractmethod
    def path_for(self, command_name: str) -> Path:
        ...

    def close(self) -> None:
        """Flush and release writers. No-op by default."""

    def __enter__(self) -> LogSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class CommandLogger(LogSink):
    """Rotating per-command log files, one cached writer per command name."""

    def __init__(self, config: LogConfig | None = None) -> None:
        config = config or LogConfig()
        self.directory = Path(config.directory) if config.directory else core.DELIVR_LOG_DIR
        self.max_size = config.max_size or DEFAULT_MAX_SIZE_MB
        self.max_age = config.max_age or DEFAULT_MAX_AGE_DAYS
        self.max_backups = config.max_backups or DEFAULT_MAX_BACKUPS
        self.compress = True if config.compress is None else config.compress
        self._writers: dict[str, LogWriter] = {}

        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, command_name: str) -> Path:
        return self.directory / log_filename(command_name)

    def writer_for(self, command_name: str) -> LogWriter:
        key = sanitize_filename(command_name)
        writer = self._writers.get(key)
        if writer is not None:
            return writer

        handler = CommandLogHandler(
            self.path_for(command_name),
            max_bytes=self.max_size * 1024 * 1024,
            backup_count=self.max_backups,
            max_age_days=self.max_age,
            compress=self.compress,
        )
        writer = LogWriter(handler, name=key)
        self._writers[key] = writer
        return writer

    def close(self) -> None:
        for writer in self._writers.values():
            writer.close()
        self._writers.clear()

    def __enter__(self) -> CommandLogger:
        return self
