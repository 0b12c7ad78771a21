"""Incremental splitter for NUL-separated ``name=value`` environment streams."""

import logging
from collections.abc import Iterator
from io import BytesIO
from typing import Protocol

from envscan.models import EnvironRecord

logger = logging.getLogger(__name__)

BUFFER_INCREMENT = 256

_TERMINATOR = 0x00
_SEPARATOR = 0x3D  # '='


class ByteSource(Protocol):
    """Anything with a ``read(size)`` returning at most ``size`` bytes."""

    def read(self, size: int = -1, /) -> bytes: ...


class EnvironSplitter:
    """
    Split an environment byte stream into records without reading it whole.

    The stream is read in pieces into a growable buffer that is left-compacted
    before every read: the next record, if any, starts at offset 0. Complete
    records are consumed by advancing an offset, and the leftover partial
    record is moved to the front once per refill, so each byte is moved at
    most once. The buffer grows by a fixed increment only when it is full and
    never shrinks while the stream is being consumed. Segments without a ``=``
    before their terminator are dropped, and an unterminated tail is discarded
    once the source reports end-of-stream with a zero-byte read.
    """

    def __init__(
        self,
        source: ByteSource,
        increment: int = BUFFER_INCREMENT,
        encoding: str = "utf-8",
        errors: str = "replace",
    ) -> None:
        """
        Initialize the EnvironSplitter.

        Args:
            source: Readable byte source; short reads are allowed.
            increment: Bytes added to the buffer each time it fills up.
            encoding: Codec used for names and values.
            errors: Codec error handler, so undecodable bytes never abort a scan.
        """
        if increment < 1:
            raise ValueError("increment must be positive")
        self._source = source
        self._increment = increment
        self._encoding = encoding
        self._errors = errors
        self._buffer = bytearray(increment)
        self._filled = 0
        self._start = 0
        self._exhausted = False
        self._dropped = 0
        self._discarded_tail = 0
        self._bytes_moved = 0

    @property
    def capacity(self) -> int:
        """Current size of the byte buffer."""
        return len(self._buffer)

    @property
    def filled(self) -> int:
        """Number of unprocessed bytes held in the buffer."""
        return self._filled - self._start

    @property
    def exhausted(self) -> bool:
        """True once the source returned a zero-byte read."""
        return self._exhausted

    @property
    def dropped(self) -> int:
        """Number of malformed segments skipped so far."""
        return self._dropped

    @property
    def discarded_tail(self) -> int:
        """Number of unterminated trailing bytes thrown away at end-of-stream."""
        return self._discarded_tail

    @property
    def bytes_moved(self) -> int:
        """Total bytes shifted to the front of the buffer by compaction."""
        return self._bytes_moved

    def __iter__(self) -> Iterator[EnvironRecord]:
        return self.records()

    def records(self) -> Iterator[EnvironRecord]:
        """Yield records in stream order until the source is drained."""
        try:
            while True:
                self._refill()
                while (end := self._buffer.find(_TERMINATOR, self._start, self._filled)) != -1:
                    record = self._split(self._start, end)
                    self._start = end + 1
                    if record is not None:
                        yield record
                self._compact()
                if self._exhausted:
                    break
            if self._filled:
                self._discarded_tail = self._filled
                logger.debug("Discarding %d unterminated trailing bytes", self._filled)
                self._filled = 0
        finally:
            self._buffer = bytearray()

    def _refill(self) -> None:
        """Read until a terminator is buffered or the source is exhausted."""
        searched = 0
        while not self._exhausted and self._buffer.find(_TERMINATOR, searched, self._filled) == -1:
            searched = self._filled
            if self._filled == len(self._buffer):
                self._buffer.extend(bytes(self._increment))
            wanted = len(self._buffer) - self._filled
            chunk = self._source.read(wanted)
            if not chunk:
                self._exhausted = True
                break
            if len(chunk) > wanted:
                raise ValueError(f"source returned {len(chunk)} bytes, asked for {wanted}")
            self._buffer[self._filled:self._filled + len(chunk)] = chunk
            self._filled += len(chunk)

    def _split(self, start: int, end: int) -> EnvironRecord | None:
        """Turn ``buffer[start:end]`` into a record, or None if it is malformed."""
        sep = self._buffer.find(_SEPARATOR, start, end)
        if sep <= start:
            # No separator, or an empty name: seen in the wild, e.g. a process
            # that rewrote its environ area with a plain device list.
            self._dropped += 1
            logger.debug("Dropping malformed environment segment of %d bytes", end - start)
            return None
        name = self._buffer[start:sep].decode(self._encoding, self._errors)
        value = self._buffer[sep + 1:end].decode(self._encoding, self._errors)
        return EnvironRecord(name=name, value=value)

    def _compact(self) -> None:
        """Move the unprocessed bytes after the consumed records to the front."""
        if not self._start:
            return
        remaining = self._filled - self._start
        self._buffer[:remaining] = self._buffer[self._start:self._filled]
        self._bytes_moved += remaining
        self._filled = remaining
        self._start = 0


def split_environ(data: bytes, **kwargs) -> list[EnvironRecord]:
    """Split an in-memory environment block into records."""
    return list(EnvironSplitter(BytesIO(data), **kwargs).records())
