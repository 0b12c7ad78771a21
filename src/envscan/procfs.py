"""
/proc access for the environment scanner.

Lists the numeric process directories under a process root and opens their
``environ`` streams. The root is configurable so a host /proc mounted inside
a container, or a synthetic tree in tests, can be scanned the same way.
"""

import logging
import os
from pathlib import Path
from typing import BinaryIO

import psutil

logger = logging.getLogger(__name__)

DEFAULT_PROC_ROOT = "/proc"


class ProcessRootError(OSError):
    """The process root could not be listed; the whole scan is aborted."""


class ProcRoot:
    """A /proc-like hierarchy of ``<pid>/environ`` entries."""

    def __init__(self, path: str | os.PathLike = DEFAULT_PROC_ROOT) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Directory holding the per-process entries."""
        return self._path

    def pids(self) -> list[int]:
        """
        List the process ids currently visible under the root.

        Only entries named by decimal digits count. The result is sorted and
        free of duplicates so every pid is visited once per scan.

        Raises:
            ProcessRootError: If the root itself cannot be read.
        """
        try:
            with os.scandir(self._path) as entries:
                names = [entry.name for entry in entries]
        except OSError as exc:
            logger.error("Can't read %s: errno=%s, %s", self._path, exc.errno, exc.strerror)
            raise ProcessRootError(exc.errno, f"Can't read {self._path}: {exc.strerror}") from exc

        return sorted({int(name) for name in names if name.isascii() and name.isdigit()})

    def environ_path(self, pid: int) -> Path:
        """Path of the environment stream of ``pid``."""
        return self._path / str(pid) / "environ"

    def open_environ(self, pid: int) -> BinaryIO:
        """Open the environment stream of ``pid`` read-only and unbuffered."""
        return open(self.environ_path(pid), "rb", buffering=0)


def process_name(pid: int) -> str:
    """
    Best-effort name of a live process, for display only.

    Returns an empty string for processes that vanished, are zombies, or
    cannot be inspected.
    """
    try:
        return psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return ""
