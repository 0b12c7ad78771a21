"""Shared fixtures: synthetic process roots and short-read byte sources."""

import io
from pathlib import Path

import pytest


class ChunkedSource(io.RawIOBase):
    """Raw byte source that never returns more than ``chunk`` bytes per read."""

    def __init__(self, data: bytes, chunk: int) -> None:
        super().__init__()
        self._data = data
        self._pos = 0
        self._chunk = chunk
        self.reads = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        self.reads += 1
        size = min(len(buffer), self._chunk, len(self._data) - self._pos)
        buffer[:size] = self._data[self._pos:self._pos + size]
        self._pos += size
        return size


def build_proc_tree(root: Path, environs: dict[int, bytes | None]) -> Path:
    """
    Lay out ``<root>/<pid>/environ`` files.

    A value of None creates the pid directory without an environ file, which
    makes opening it fail the way a vanished process does.
    """
    root.mkdir(parents=True, exist_ok=True)
    for pid, data in environs.items():
        pid_dir = root / str(pid)
        pid_dir.mkdir()
        if data is not None:
            (pid_dir / "environ").write_bytes(data)
    return root


@pytest.fixture
def proc_tree(tmp_path):
    """Factory building a synthetic process root under tmp_path."""

    def factory(environs: dict[int, bytes | None]) -> Path:
        return build_proc_tree(tmp_path / "proc", environs)

    return factory
