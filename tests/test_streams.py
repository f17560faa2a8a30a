"""Tests for the counting stream wrappers."""

import io

import pytest

from bytecrawl.counting import ByteCounter, CountingInputStream, CountingOutputStream


class FailingWriter:
    """Delegate whose writes always fail."""

    def write(self, data):
        raise OSError("connection reset")


class PartialWriter:
    """Delegate that accepts at most `limit` bytes per call."""

    def __init__(self, limit):
        self.limit = limit
        self.received = b""

    def write(self, data):
        accepted = bytes(data[:self.limit])
        self.received += accepted
        return len(accepted)


class NoneWriter:
    """Delegate that writes everything and returns None."""

    def __init__(self):
        self.received = b""

    def write(self, data):
        self.received += bytes(data)


class TestCountingOutputStream:

    def test_counts_every_byte_regardless_of_chunking(self):
        counter = ByteCounter()
        sink = io.BytesIO()
        stream = CountingOutputStream(sink, counter)

        stream.write(b"A")
        stream.write(b"hello world")
        stream.write(bytearray(b"12345"))
        stream.write(memoryview(b"0123456789")[2:6])

        assert sink.getvalue() == b"Ahello world123452345"
        assert counter.bytes_written() == len(sink.getvalue())

    def test_failed_write_counts_nothing(self):
        counter = ByteCounter()
        stream = CountingOutputStream(FailingWriter(), counter)

        with pytest.raises(OSError):
            stream.write(b"data")

        assert counter.bytes_written() == 0

    def test_partial_write_counts_accepted_bytes(self):
        counter = ByteCounter()
        writer = PartialWriter(limit=4)
        stream = CountingOutputStream(writer, counter)

        assert stream.write(b"abcdefgh") == 4
        assert counter.bytes_written() == 4
        assert writer.received == b"abcd"

    def test_delegate_returning_none_counts_full_length(self):
        counter = ByteCounter()
        writer = NoneWriter()
        stream = CountingOutputStream(writer, counter)

        assert stream.write(b"abcdef") == 6
        assert counter.bytes_written() == 6

    def test_flush_and_close_pass_through(self):
        counter = ByteCounter()
        sink = io.BytesIO()
        stream = CountingOutputStream(sink, counter)
        stream.flush()
        stream.close()
        assert sink.closed
        assert stream.closed
        assert counter.bytes_written() == 0


class TestCountingInputStream:

    def test_counts_bytes_returned_regardless_of_chunking(self):
        counter = ByteCounter()
        payload = b"line one\nline two\nthe rest"
        stream = CountingInputStream(io.BytesIO(payload), counter)

        assert stream.read(3) == b"lin"
        assert stream.readline() == b"e one\n"
        buffer = bytearray(5)
        assert stream.readinto(buffer) == 5
        assert stream.read() == payload[14:]

        assert counter.bytes_read() == len(payload)

    def test_end_of_stream_counts_nothing(self):
        counter = ByteCounter()
        stream = CountingInputStream(io.BytesIO(b"ab"), counter)

        assert stream.read() == b"ab"
        assert stream.read() == b""
        assert stream.readinto(bytearray(4)) == 0
        assert stream.readline() == b""

        assert counter.bytes_read() == 2

    def test_none_from_delegate_counts_nothing(self):
        class WouldBlock:
            def readinto(self, buffer):
                return None

        counter = ByteCounter()
        stream = CountingInputStream(WouldBlock(), counter)
        assert stream.readinto(bytearray(8)) is None
        assert counter.bytes_read() == 0

    def test_positioning_never_touches_counter(self):
        counter = ByteCounter()
        stream = CountingInputStream(io.BytesIO(b"0123456789"), counter)

        assert stream.skip(4) == 4
        assert stream.tell() == 4
        assert stream.seekable()
        stream.seek(8)
        assert counter.bytes_read() == 0

        assert stream.read() == b"89"
        assert counter.bytes_read() == 2

    def test_peek_does_not_count(self):
        counter = ByteCounter()
        stream = CountingInputStream(io.BufferedReader(io.BytesIO(b"abcdef")), counter)

        assert stream.peek(2).startswith(b"ab")
        assert counter.bytes_read() == 0
        assert stream.read(2) == b"ab"
        assert counter.bytes_read() == 2

    def test_iteration_counts_lines(self):
        counter = ByteCounter()
        stream = CountingInputStream(io.BytesIO(b"a\nbb\nccc"), counter)
        assert list(stream) == [b"a\n", b"bb\n", b"ccc"]
        assert counter.bytes_read() == 8

    def test_read_failure_propagates(self):
        class Broken:
            def read(self, size=-1):
                raise ConnectionResetError("peer went away")

        counter = ByteCounter()
        stream = CountingInputStream(Broken(), counter)
        with pytest.raises(ConnectionResetError):
            stream.read(10)
        assert counter.bytes_read() == 0
