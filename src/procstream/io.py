"""Record splitting over raw byte streams.

A record is the run of bytes before the next ``\\n`` or ``\\r``. The
separator is consumed and discarded; bytes are never decoded.
"""

from __future__ import annotations

import io
import re
from typing import BinaryIO, Iterator

__all__ = ["LineSplitter", "read_line"]

_SEPARATOR = re.compile(rb"[\r\n]")


class LineSplitter:
    """Splits a binary stream into records.

    Example:
        splitter = LineSplitter(proc.stdout)
        while True:
            record, consumed = splitter.read_record()
            if consumed == 0:
                break
            handle(record)
    """

    def __init__(self, stream: BinaryIO) -> None:
        if not hasattr(stream, "peek"):
            stream = io.BufferedReader(stream)  # type: ignore[arg-type]
        self._stream = stream

    def read_record(self) -> tuple[bytes, int]:
        """Read the next record.

        Returns:
            Tuple of (record, consumed). consumed counts the record plus
            its separator; 0 means clean end-of-stream. Trailing bytes
            without a separator at EOF come back as a final record.

        Raises:
            OSError: If reading the stream fails
        """
        record = bytearray()
        consumed = 0
        while True:
            # peek() does at most one raw read and never advances the cursor
            available = self._stream.peek()
            if not available:
                return bytes(record), consumed

            match = _SEPARATOR.search(available)
            if match is not None:
                end = match.start()
                record += available[:end]
                self._stream.read(end + 1)
                return bytes(record), consumed + end + 1

            record += available
            self._stream.read(len(available))
            consumed += len(available)

    def __iter__(self) -> Iterator[bytes]:
        while True:
            record, consumed = self.read_record()
            if consumed == 0:
                return
            yield record


def read_line(stream: LineSplitter | BinaryIO, buf: bytearray) -> int:
    """Append the next record of ``stream`` to ``buf``.

    Args:
        stream: A LineSplitter, or a buffered binary stream (one with
            ``peek``) so that read-ahead is not lost between calls
        buf: Buffer receiving the record (separator excluded)

    Returns:
        Number of bytes consumed, 0 at end-of-stream
    """
    if isinstance(stream, LineSplitter):
        splitter = stream
    elif hasattr(stream, "peek"):
        splitter = LineSplitter(stream)
    else:
        raise TypeError("read_line() needs a LineSplitter or a buffered stream")
    record, consumed = splitter.read_record()
    buf += record
    return consumed
