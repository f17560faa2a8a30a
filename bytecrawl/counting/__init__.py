"""
Byte accounting for everything the HTTP client puts on, or takes off, the wire.
"""

from .byte_counter import AtomicCounter, ByteCounter
from .streams import CountingInputStream, CountingOutputStream
from .sockets import CountingSocket

__all__ = [
    'AtomicCounter', 'ByteCounter',
    'CountingInputStream', 'CountingOutputStream',
    'CountingSocket'
]
