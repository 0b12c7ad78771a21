"""Conversion of matches and per-process failures into result items."""

import logging
from collections.abc import Iterator
from typing import Protocol

from envscan.models import EnvironRecord, ItemStatus, ResultItem

logger = logging.getLogger(__name__)


class ResultSink(Protocol):
    """Destination for result items, written by a single producer."""

    def collect(self, item: ResultItem) -> None: ...


class ListSink:
    """Append-only in-memory sink."""

    def __init__(self) -> None:
        self._items: list[ResultItem] = []

    def collect(self, item: ResultItem) -> None:
        self._items.append(item)

    @property
    def items(self) -> list[ResultItem]:
        return list(self._items)

    def collected(self) -> list[ResultItem]:
        return [item for item in self._items if item.status is ItemStatus.COLLECTED]

    def not_collected(self) -> list[ResultItem]:
        return [item for item in self._items if item.status is ItemStatus.NOT_COLLECTED]

    def __iter__(self) -> Iterator[ResultItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


def format_os_error(action: str, path: object, error: OSError) -> str:
    """Build a diagnostic naming the path and the underlying OS error."""
    reason = error.strerror or str(error)
    return f'Can\'t {action} "{path}": errno={error.errno}, {reason}.'


class ResultEmitter:
    """Builds result items and hands them to a sink."""

    def __init__(self, sink: ResultSink) -> None:
        self._sink = sink
        self._collected = 0
        self._not_collected = 0

    @property
    def collected_count(self) -> int:
        return self._collected

    @property
    def not_collected_count(self) -> int:
        return self._not_collected

    def collected(self, pid: int, record: EnvironRecord) -> ResultItem:
        """Emit a matched variable of ``pid``."""
        item = ResultItem(
            pid=pid,
            name=record.name,
            value=record.value,
            status=ItemStatus.COLLECTED,
        )
        self._sink.collect(item)
        self._collected += 1
        return item

    def not_collected(self, pid: int, path: object, error: OSError) -> ResultItem:
        """Emit the diagnostic for a stream that could not be opened."""
        return self._diagnostic(pid, format_os_error("open", path, error))

    def read_failed(self, pid: int, path: object, error: OSError) -> ResultItem:
        """Emit the diagnostic for a stream that failed after it was opened."""
        return self._diagnostic(pid, format_os_error("read", path, error))

    def _diagnostic(self, pid: int, message: str) -> ResultItem:
        logger.warning(message)
        item = ResultItem(pid=pid, status=ItemStatus.NOT_COLLECTED, message=message)
        self._sink.collect(item)
        self._not_collected += 1
        return item
