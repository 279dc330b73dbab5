"""clamd wire protocol: commands, INSTREAM chunk framing, response reading."""

from __future__ import annotations

import socket
import struct
from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from clamstream.errors import ClamdIOError, ProtocolReadError

INSTREAM_COMMAND = b"zINSTREAM\0"
PING_COMMAND = b"zPING\0"
VERSION_COMMAND = b"zVERSION\0"

DEFAULT_CHUNK_SIZE = 4096
MAX_CHUNK_SIZE = 2**32 - 1

RESPONSE_TERMINATOR = b"\0"
RECV_SIZE = 4096

_LENGTH = struct.Struct("!I")

# Zero-length frame that ends an INSTREAM session.
END_OF_STREAM = _LENGTH.pack(0)


@runtime_checkable
class ByteSource(Protocol):
    """Anything that hands out bytes sequentially; ``b""`` means exhausted."""

    def read(self, size: int = -1, /) -> bytes:
        ...


def validate_chunk_size(chunk_size: int) -> int:
    if not 0 < chunk_size <= MAX_CHUNK_SIZE:
        raise ValueError(
            f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}, got {chunk_size}"
        )
    return chunk_size


def frame_chunk(data: bytes) -> bytes:
    """Prefix *data* with its big-endian uint32 length."""
    if not data:
        raise ValueError("data chunks must not be empty; use END_OF_STREAM")
    return _LENGTH.pack(len(data)) + data


def iter_frames(source: ByteSource, chunk_size: int) -> Iterator[bytes]:
    """Yield INSTREAM frames for everything *source* produces.

    One frame per non-empty read of at most *chunk_size* bytes, followed by
    exactly one ``END_OF_STREAM`` frame. The source is read until it returns
    no data and is never closed here.
    """
    validate_chunk_size(chunk_size)
    while True:
        try:
            data = source.read(chunk_size)
        except OSError as exc:
            raise ClamdIOError(f"Error reading from source: {exc}") from exc
        if data is None:
            raise ClamdIOError("Source returned no data (non-blocking read)")
        if not data:
            break
        yield frame_chunk(bytes(data))
    yield END_OF_STREAM


def read_response(sock: socket.socket) -> bytes:
    """Read from *sock* up to and including the first NUL byte.

    Anything the peer sends after the terminator is dropped.
    """
    received = bytearray()
    while True:
        try:
            block = sock.recv(RECV_SIZE)
        except OSError as exc:
            raise ClamdIOError(f"Error while reading from clamd: {exc}") from exc
        if not block:
            raise ProtocolReadError(
                "clamd closed the connection before terminating its response",
                received=bytes(received),
            )
        # Only the new block can contain the first terminator.
        end = block.find(RESPONSE_TERMINATOR)
        if end != -1:
            received += block[: end + 1]
            return bytes(received)
        received += block
