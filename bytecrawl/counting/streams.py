"""
Stream wrappers that attribute every byte they move to a ByteCounter.

A delegate is anything with the binary file API (io.BytesIO, a raw socket
channel, a buffered reader). Counting happens only after the delegate call
returns, so a call that raises is never counted.
"""

import io
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .byte_counter import ByteCounter


def _nbytes(data: Any) -> int:
    return memoryview(data).nbytes


class CountingOutputStream:
    """Forwards writes to a delegate and records the bytes it accepted."""

    def __init__(self, delegate: Any, byte_counter: 'ByteCounter'):
        self._delegate = delegate
        self._byte_counter = byte_counter

    @property
    def delegate(self) -> Any:
        return self._delegate

    def write(self, data: Any, *args) -> int:
        """
        Write `data` through the delegate.

        Extra positional arguments (socket flags, for instance) go to the
        delegate untouched. The delegate's return value is the number of bytes
        it accepted; a delegate returning None wrote everything it was given.
        """
        accepted = self._delegate.write(data, *args)
        if accepted is None:
            accepted = _nbytes(data)
        self._byte_counter.record_written(accepted)
        return accepted

    def writable(self) -> bool:
        return True

    def flush(self):
        flush = getattr(self._delegate, 'flush', None)
        if flush is not None:
            flush()

    def fileno(self) -> int:
        return self._delegate.fileno()

    def close(self):
        self._delegate.close()

    @property
    def closed(self) -> bool:
        return getattr(self._delegate, 'closed', False)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class CountingInputStream:
    """
    Forwards reads to a delegate and records the bytes it returned.

    End of stream (b"", 0) and "no data yet" (None) record nothing.
    Positioning calls pass straight through and never touch the counter.
    """

    def __init__(self, delegate: Any, byte_counter: 'ByteCounter'):
        self._delegate = delegate
        self._byte_counter = byte_counter

    @property
    def delegate(self) -> Any:
        return self._delegate

    def _record(self, count: Optional[int]):
        if count is not None and count > 0:
            self._byte_counter.record_read(count)

    def read(self, size: int = -1, *args) -> Optional[bytes]:
        data = self._delegate.read(size, *args)
        if data:
            self._record(len(data))
        return data

    def read1(self, size: int = -1) -> bytes:
        data = self._delegate.read1(size)
        if data:
            self._record(len(data))
        return data

    def readinto(self, buffer: Any, *args) -> Optional[int]:
        count = self._delegate.readinto(buffer, *args)
        self._record(count)
        return count

    def readline(self, size: int = -1) -> bytes:
        line = self._delegate.readline(size)
        if line:
            self._record(len(line))
        return line

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        line = self.readline()
        if not line:
            raise StopIteration
        return line

    def skip(self, count: int) -> int:
        """Move forward `count` bytes without reading them; returns the distance moved."""
        start = self._delegate.tell()
        return self._delegate.seek(count, io.SEEK_CUR) - start

    def peek(self, size: int = 0) -> bytes:
        return self._delegate.peek(size)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._delegate.seek(offset, whence)

    def tell(self) -> int:
        return self._delegate.tell()

    def seekable(self) -> bool:
        seekable = getattr(self._delegate, 'seekable', None)
        return bool(seekable and seekable())

    def readable(self) -> bool:
        return True

    def fileno(self) -> int:
        return self._delegate.fileno()

    def close(self):
        self._delegate.close()

    @property
    def closed(self) -> bool:
        return getattr(self._delegate, 'closed', False)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
