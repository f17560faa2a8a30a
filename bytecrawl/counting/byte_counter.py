"""
Running totals of the bytes written and read by an HTTP client.

The counter is handed to the client through its socket factory. Every socket
the client opens is a CountingSocket, so connection reuse, TLS and streamed
bodies are all accounted for at the one place every byte has to pass.

Example:

    byte_counter = ByteCounter()
    connector = aiohttp.TCPConnector(socket_factory=byte_counter.socket_factory)
    async with aiohttp.ClientSession(connector=connector) as session:
        ...

    print(f"Bytes written: {byte_counter.bytes_written()}")
    print(f"Bytes read: {byte_counter.bytes_read()}")
"""

import socket
import threading
from typing import Any, Tuple

from .sockets import CountingSocket
from .streams import CountingInputStream, CountingOutputStream


class AtomicCounter:
    """Integer cell updated with compare-and-set."""

    def __init__(self, value: int = 0):
        self._value = value
        # Held for a single compare-and-swap only, never across I/O.
        self._swap_lock = threading.Lock()

    def get(self) -> int:
        """Return the current value."""
        return self._value

    def compare_and_set(self, expected: int, updated: int) -> bool:
        """Store `updated` if the value is still `expected`."""
        with self._swap_lock:
            if self._value != expected:
                return False
            self._value = updated
            return True

    def add(self, delta: int) -> int:
        """Add `delta` and return the new value."""
        while True:
            old = self.get()
            updated = old + delta
            if self.compare_and_set(old, updated):
                return updated

    def __repr__(self) -> str:
        return f"AtomicCounter({self._value})"


class ByteCounter:
    """
    Counts the bytes written and read through instrumented sockets and streams.

    One instance is created per crawl session and shared by reference with
    every stream it wraps. Both totals only ever grow.
    """

    def __init__(self):
        self._bytes_written = AtomicCounter()
        self._bytes_read = AtomicCounter()

    def bytes_written(self) -> int:
        """Return the total number of bytes written so far."""
        return self._bytes_written.get()

    def bytes_read(self) -> int:
        """Return the total number of bytes read so far."""
        return self._bytes_read.get()

    def record_written(self, length: int):
        """Add `length` bytes to the written total."""
        if length < 0:
            raise ValueError(f"Byte count must be non-negative: {length}")
        self._bytes_written.add(length)

    def record_read(self, length: int):
        """Add `length` bytes to the read total."""
        if length < 0:
            raise ValueError(f"Byte count must be non-negative: {length}")
        self._bytes_read.add(length)

    def wrap_output(self, raw_output: Any) -> CountingOutputStream:
        """Return a stream that counts every byte written to `raw_output`."""
        return CountingOutputStream(raw_output, self)

    def wrap_input(self, raw_input: Any) -> CountingInputStream:
        """Return a stream that counts every byte read from `raw_input`."""
        return CountingInputStream(raw_input, self)

    def socket_factory(self, addr_info: Tuple) -> CountingSocket:
        """
        Create a counting socket for one resolved address.

        Matches the `socket_factory` hook of aiohttp's TCPConnector, which
        passes a getaddrinfo() entry: (family, type, proto, canonname, sockaddr).
        """
        family, type_, proto = addr_info[0], addr_info[1], addr_info[2]
        return CountingSocket(family, type_, proto, byte_counter=self)

    def wrap_socket(self, sock: socket.socket) -> CountingSocket:
        """
        Adopt an open socket so that its traffic is counted from now on.

        The original socket object is detached and must not be used again.
        """
        timeout = sock.gettimeout()
        counting = CountingSocket(sock.family, sock.type, sock.proto,
                                  fileno=sock.detach(), byte_counter=self)
        counting.settimeout(timeout)
        return counting

    def __repr__(self) -> str:
        return (f"ByteCounter(written={self.bytes_written()}, "
                f"read={self.bytes_read()})")
