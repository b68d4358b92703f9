"""
Logging setup for the API service.

Each day gets its own file, rolled by size within the day:
    techdraw_2026-10-18.log -> techdraw_2026-10-18_01.log -> techdraw_2026-10-18_02.log
ERROR records are copied to error_<date>.log. Files older than the retention
window are deleted when a handler starts.
"""

import logging
import re
from datetime import date, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MB = 1024 * 1024

# chatty at INFO; a drawing request would log every HTTP hop
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "google_genai", "PIL")


class DailyRotatingFileHandler(RotatingFileHandler):
    """
    Size-rotating handler that also switches to a new file at midnight.

    The active file is always <base>_<YYYY-MM-DD>.log; size rolls are renamed
    to <base>_<YYYY-MM-DD>_NN.log instead of the stdlib's <name>.log.N.
    """

    def __init__(
        self,
        log_dir: str,
        base_name: str = "techdraw",
        max_bytes: int = 20 * MB,
        backup_count: int = 10,
        backup_days: int = 14,
        encoding: str = "utf-8",
    ):
        self.log_dir = Path(log_dir)
        self.base_name = base_name
        self.backup_days = backup_days
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._day = date.today()
        super().__init__(
            filename=str(self._path_for(self._day)),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding=encoding,
        )
        self.purge_expired()

    def _path_for(self, day: date) -> Path:
        return self.log_dir / f"{self.base_name}_{day.isoformat()}.log"

    def shouldRollover(self, record):
        return date.today() != self._day or super().shouldRollover(record)

    def doRollover(self):
        today = date.today()
        if today == self._day:
            super().doRollover()
            return
        if self.stream:
            self.stream.close()
            self.stream = None
        self._day = today
        self.baseFilename = str(self._path_for(today))
        self.stream = self._open()

    def rotation_filename(self, default_name):
        """techdraw_2026-10-18.log.1 -> techdraw_2026-10-18_01.log"""
        stem, sep, num = default_name.rpartition(".log.")
        if not sep or not num.isdigit():
            return default_name
        return f"{stem}_{int(num):02d}.log"

    def _dated_files(self) -> Iterable[tuple]:
        pattern = re.compile(rf"^{re.escape(self.base_name)}_(\d{{4}}-\d{{2}}-\d{{2}})(?:_\d+)?\.log$")
        for path in self.log_dir.glob(f"{self.base_name}_*.log"):
            m = pattern.match(path.name)
            if not m:
                continue
            try:
                yield path, date.fromisoformat(m.group(1))
            except ValueError:
                continue

    def purge_expired(self) -> None:
        cutoff = date.today() - timedelta(days=self.backup_days)
        for path, day in self._dated_files():
            if day >= cutoff:
                continue
            try:
                path.unlink()
            except OSError as e:
                logging.warning(f"Could not remove expired log {path}: {e}")


def _file_handler(log_dir: str, base_name: str, level: int, formatter: logging.Formatter, **kwargs) -> DailyRotatingFileHandler:
    handler = DailyRotatingFileHandler(log_dir=log_dir, base_name=base_name, **kwargs)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_dir: Optional[str] = "logs",
    log_level: str = "INFO",
    max_bytes: int = 20 * MB,
    backup_count: int = 10,
    backup_days: int = 14,
) -> None:
    """
    Install console and file handlers on the root logger.

    Args:
        log_dir: where log files go; None or "" keeps logging on the console
        log_level: root level name (DEBUG/INFO/WARNING/ERROR)
        max_bytes: size at which the day's file is rolled
        backup_count: rolled files kept per day
        backup_days: age in days after which files are deleted
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # uvicorn --reload calls this again in the same process
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir:
        rotation = dict(max_bytes=max_bytes, backup_count=backup_count, backup_days=backup_days)
        root.addHandler(_file_handler(log_dir, "techdraw", logging.DEBUG, formatter, **rotation))
        root.addHandler(_file_handler(log_dir, "error", logging.ERROR, formatter, **rotation))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_dir:
        logging.info(f"Logging to {Path(log_dir).absolute()} (roll at {max_bytes // MB}MB, keep {backup_days} days)")
    else:
        logging.info("Logging to console only")
