"""Synchronous clamd client: INSTREAM scanning plus PING and VERSION.

Every call opens its own TCP connection, speaks one command and closes the
connection again, whatever the outcome. Nothing is shared between calls, so
the functions can be used from several threads at once.

The returned response keeps clamd's trailing NUL byte (``"stream: OK\\0"``).
Callers comparing verdicts should account for it.
"""

from __future__ import annotations

import contextlib
import logging
import socket

from clamstream.config import Address, parse_address
from clamstream.errors import ClamdConnectionError, ProtocolWriteError, ResponseDecodeError
from clamstream.protocol import (
    DEFAULT_CHUNK_SIZE,
    INSTREAM_COMMAND,
    PING_COMMAND,
    VERSION_COMMAND,
    ByteSource,
    iter_frames,
    read_response,
    validate_chunk_size,
)

logger = logging.getLogger(__name__)


def scan(
    address: Address,
    source: ByteSource,
    chunk_size: int | None = None,
    timeout: float | None = None,
) -> str:
    """Stream *source* to clamd with INSTREAM and return its verdict.

    Args:
        address: ``"host:port"`` string or ``(host, port)`` tuple.
        source: Binary reader consumed until it returns ``b""``. It is
            borrowed, never closed.
        chunk_size: Max payload bytes per chunk. Defaults to 4096.
        timeout: Optional socket timeout in seconds.

    Returns:
        The response text including the terminating NUL, e.g.
        ``"stream: Win.Test.EICAR_HDB-1 FOUND\\0"``.

    Raises:
        ValueError: If *chunk_size* does not fit the 4-byte length header.
        ClamdConnectionError: If clamd cannot be reached.
        ClamdIOError: If reading the source or the socket fails.
        ProtocolWriteError: If sending the command or a chunk fails.
        ProtocolReadError: If clamd hangs up before the NUL terminator.
        ResponseDecodeError: If the response is not UTF-8.
    """
    size = validate_chunk_size(DEFAULT_CHUNK_SIZE if chunk_size is None else chunk_size)

    with _connect(address, timeout) as sock:
        _send(sock, INSTREAM_COMMAND)
        sent = 0
        for frame in iter_frames(source, size):
            _send(sock, frame)
            sent += 1
        logger.debug("Sent %d chunk(s) including end-of-stream", sent)
        return _decode(read_response(sock))


def ping(address: Address, timeout: float | None = None) -> str:
    """Send PING; a healthy daemon answers ``"PONG\\0"``."""
    return _command(address, PING_COMMAND, timeout)


def version(address: Address, timeout: float | None = None) -> str:
    """Return clamd's version string, NUL included."""
    return _command(address, VERSION_COMMAND, timeout)


def _command(address: Address, command: bytes, timeout: float | None) -> str:
    with _connect(address, timeout) as sock:
        _send(sock, command)
        return _decode(read_response(sock))


@contextlib.contextmanager
def _connect(address: Address, timeout: float | None):
    host, port = parse_address(address)
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as exc:
        raise ClamdConnectionError(f"Unable to connect to clamd at {host}:{port}: {exc}") from exc

    logger.debug("Connected to clamd at %s:%d", host, port)
    try:
        yield sock
    finally:
        sock.close()
        logger.debug("Closed connection to clamd at %s:%d", host, port)


def _send(sock: socket.socket, data: bytes) -> None:
    try:
        sock.sendall(data)
    except OSError as exc:
        raise ProtocolWriteError(f"Error writing to clamd: {exc}") from exc


def _decode(response: bytes) -> str:
    try:
        return response.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ResponseDecodeError(f"clamd response is not valid UTF-8: {response!r}") from exc
