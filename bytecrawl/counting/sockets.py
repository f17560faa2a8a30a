"""
Socket subclass whose traffic goes through counting streams.

The event loop reads and writes a connected socket through recv_into, recv,
send and sendmsg. TLS is layered on top of those calls with a memory BIO, so
handshakes and records are counted as they cross the wire. Blocking clients
that use makefile() end up in the same methods.
"""

import socket
import threading
from typing import TYPE_CHECKING, Any, Iterable, Optional

from .streams import CountingInputStream, CountingOutputStream

if TYPE_CHECKING:
    from .byte_counter import ByteCounter


class _SocketReader:
    """Raw input channel: the socket's own recv calls, bypassing the counting overrides."""

    def __init__(self, sock: socket.socket):
        self._sock = sock

    def read(self, size: int, flags: int = 0) -> bytes:
        return socket.socket.recv(self._sock, size, flags)

    def readinto(self, buffer: Any, nbytes: int = 0, flags: int = 0) -> int:
        return socket.socket.recv_into(self._sock, buffer, nbytes, flags)

    def fileno(self) -> int:
        return self._sock.fileno()

    def close(self):
        self._sock.close()

    @property
    def closed(self) -> bool:
        return self._sock.fileno() == -1


class _SocketWriter:
    """Raw output channel: the socket's own send call."""

    def __init__(self, sock: socket.socket):
        self._sock = sock

    def write(self, data: Any, flags: int = 0) -> int:
        return socket.socket.send(self._sock, data, flags)

    def fileno(self) -> int:
        return self._sock.fileno()

    def close(self):
        self._sock.close()

    @property
    def closed(self) -> bool:
        return self._sock.fileno() == -1


class CountingSocket(socket.socket):
    """
    A socket that attributes every byte it sends or receives to a ByteCounter.

    The input and output streams are built on first use and cached for the
    lifetime of the socket, so asking for them twice returns the same
    wrappers and nothing is counted twice.
    """

    def __init__(self, family: int = -1, type: int = -1, proto: int = -1,
                 fileno: Optional[int] = None, *, byte_counter: 'ByteCounter'):
        super().__init__(family, type, proto, fileno)
        self._byte_counter = byte_counter
        self._stream_lock = threading.Lock()
        self._input_stream: Optional[CountingInputStream] = None
        self._output_stream: Optional[CountingOutputStream] = None

    @property
    def byte_counter(self) -> 'ByteCounter':
        return self._byte_counter

    @property
    def input_stream(self) -> CountingInputStream:
        with self._stream_lock:
            if self._input_stream is None:
                self._input_stream = self._byte_counter.wrap_input(_SocketReader(self))
        return self._input_stream

    @property
    def output_stream(self) -> CountingOutputStream:
        with self._stream_lock:
            if self._output_stream is None:
                self._output_stream = self._byte_counter.wrap_output(_SocketWriter(self))
        return self._output_stream

    def recv(self, bufsize: int, flags: int = 0) -> bytes:
        return self.input_stream.read(bufsize, flags)

    def recv_into(self, buffer: Any, nbytes: int = 0, flags: int = 0) -> int:
        return self.input_stream.readinto(buffer, nbytes, flags)

    def send(self, data: Any, flags: int = 0) -> int:
        return self.output_stream.write(data, flags)

    def sendall(self, data: Any, flags: int = 0) -> None:
        view = memoryview(data).cast('B')
        while len(view):
            sent = self.send(view, flags)
            view = view[sent:]

    def sendmsg(self, buffers: Iterable[Any], ancdata: Iterable = (),
                flags: int = 0, address: Any = None) -> int:
        if ancdata or address is not None:
            raise ValueError("Counting sockets do not send ancillary data or datagrams")
        return self.send(b''.join(buffers), flags)

    def dup(self) -> 'CountingSocket':
        sock = CountingSocket(self.family, self.type, self.proto,
                              fileno=socket.dup(self.fileno()),
                              byte_counter=self._byte_counter)
        sock.settimeout(self.gettimeout())
        return sock
