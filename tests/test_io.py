"""LineSplitter unit tests.

Test coverage:
- \\n and \\r separators
- Trailing record without separator at EOF
- Empty records between separators
- Records larger than the read buffer
- read_line() wrapper
"""

from __future__ import annotations

import io

import pytest

from procstream.io import LineSplitter, read_line


def _splitter(data: bytes, buffer_size: int = io.DEFAULT_BUFFER_SIZE) -> LineSplitter:
    return LineSplitter(io.BufferedReader(io.BytesIO(data), buffer_size=buffer_size))


def _records(data: bytes, buffer_size: int = io.DEFAULT_BUFFER_SIZE) -> list[tuple[bytes, int]]:
    splitter = _splitter(data, buffer_size)
    results = []
    while True:
        record, consumed = splitter.read_record()
        if consumed == 0:
            return results
        results.append((record, consumed))


class TestReadRecord:
    """Test record splitting."""

    def test_newline_separated(self):
        assert _records(b"one\ntwo\n") == [(b"one", 4), (b"two", 4)]

    def test_carriage_return_separated(self):
        """Progress-bar style output splits on \\r."""
        assert _records(b"10%\r50%\r100%\n") == [(b"10%", 4), (b"50%", 4), (b"100%", 5)]

    def test_trailing_record_without_separator(self):
        assert _records(b"This is a test doc!") == [(b"This is a test doc!", 19)]

    def test_empty_stream(self):
        splitter = _splitter(b"")
        assert splitter.read_record() == (b"", 0)

    def test_eof_is_sticky(self):
        splitter = _splitter(b"x\n")
        assert splitter.read_record() == (b"x", 2)
        assert splitter.read_record() == (b"", 0)
        assert splitter.read_record() == (b"", 0)

    def test_empty_records_are_not_eof(self):
        assert _records(b"a\n\nb") == [(b"a", 2), (b"", 1), (b"b", 1)]

    def test_crlf_yields_two_separators(self):
        assert _records(b"a\r\nb\r\n") == [(b"a", 2), (b"", 1), (b"b", 2), (b"", 1)]

    def test_record_spanning_buffer_refills(self):
        """Records longer than the buffer are stitched together."""
        long_line = b"x" * 100
        assert _records(long_line + b"\nend", buffer_size=8) == [
            (long_line, 101),
            (b"end", 3),
        ]

    def test_raw_bytes_not_decoded(self):
        data = b"\xff\xfe\x00binary\n"
        assert _records(data) == [(b"\xff\xfe\x00binary", len(data))]

    def test_unbuffered_stream_is_wrapped(self):
        splitter = LineSplitter(io.BytesIO(b"a\nb\n"))
        assert list(splitter) == [b"a", b"b"]

    def test_iteration(self):
        assert list(_splitter(b"a\rb\nc")) == [b"a", b"b", b"c"]

    def test_closed_stream_raises(self):
        stream = io.BufferedReader(io.BytesIO(b"data"))
        splitter = LineSplitter(stream)
        stream.close()
        with pytest.raises(ValueError):
            splitter.read_record()

    def test_io_error_propagates(self):
        class FailingRaw(io.RawIOBase):
            def readable(self) -> bool:
                return True

            def readinto(self, b) -> int:
                raise OSError("boom")

        splitter = LineSplitter(io.BufferedReader(FailingRaw()))
        with pytest.raises(OSError, match="boom"):
            splitter.read_record()


class TestReadLine:
    """Test the read_line() wrapper."""

    def test_appends_record(self):
        stream = io.BufferedReader(io.BytesIO(b"first\nsecond"))
        buf = bytearray()
        assert read_line(stream, buf) == 6
        assert buf == b"first"
        buf.clear()
        assert read_line(stream, buf) == 6
        assert buf == b"second"
        assert read_line(stream, buf) == 0

    def test_accepts_splitter(self):
        splitter = _splitter(b"a\n")
        buf = bytearray(b">")
        assert read_line(splitter, buf) == 2
        assert buf == b">a"

    def test_rejects_unbuffered_stream(self):
        with pytest.raises(TypeError):
            read_line(io.BytesIO(b"a\n"), bytearray())
