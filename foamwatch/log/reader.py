"""
Log file reader.
Reads the whole solver log on each poll and reports whether it changed or was
truncated since the previous read.
"""

import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger("FOAMWatch")


class LogSnapshot:
    """Contents of the log at one poll."""

    __slots__ = ("text", "mtime", "size", "changed", "truncated")

    def __init__(
        self, text: str, mtime: float, size: int, changed: bool = True, truncated: bool = False
    ) -> None:
        self.text = text
        self.mtime = mtime
        self.size = size
        self.changed = changed
        self.truncated = truncated


class LogReader:
    """Read an append-only log file, tolerating absence and transient errors."""

    def __init__(self, log_file: Union[str, Path]) -> None:
        self.log_file = Path(log_file)
        self._last: Optional[LogSnapshot] = None

    def forget(self) -> None:
        """Drop the remembered previous read so the next read is a full one."""
        self._last = None

    def read(self) -> Optional[LogSnapshot]:
        """
        Read the current log contents.

        Returns:
            LogSnapshot, or None if the file is missing or could not be read.
            When size and mtime match the previous read, the previous text is
            returned with ``changed`` False instead of reading again.
        """
        try:
            stat = self.log_file.stat()
        except FileNotFoundError:
            logger.info(f"[FOAMWatch] Log file not found: {self.log_file}")
            return None
        except OSError as e:
            logger.warning(f"[FOAMWatch] Could not stat log file {self.log_file}: {e}")
            return None

        mtime = stat.st_mtime
        size = stat.st_size
        last = self._last

        if last is not None and last.mtime == mtime and last.size == size:
            return LogSnapshot(last.text, mtime, size, changed=False)

        try:
            # Binary read then lenient decode; solvers occasionally emit stray bytes
            with self.log_file.open("rb") as f:
                raw = f.read()
        except OSError as e:
            logger.warning(f"[FOAMWatch] Error reading file {self.log_file}: {e}")
            return None

        text = raw.decode("utf-8", errors="replace")
        truncated = last is not None and len(raw) < last.size

        if truncated:
            logger.info(
                "[FOAMWatch] Log file %s shrank from %d to %d bytes",
                self.log_file, last.size, len(raw)
            )

        snapshot = LogSnapshot(text, mtime, len(raw), changed=True, truncated=truncated)
        self._last = snapshot
        return snapshot
