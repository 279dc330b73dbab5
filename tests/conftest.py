"""Shared fixtures: an in-memory socket stub and an in-process fake clamd."""

from __future__ import annotations

import socket
import socketserver
import struct
import threading

import pytest

EICAR = rb"X5O!P%@AP[4\PZX54(P^)7CC)7}$EICAR-STANDARD-ANTIVIRUS-TEST-FILE!$H+H*"


class FakeSocket:
    """Socket stub capturing writes and returning queued responses."""

    def __init__(self, responses=(), fail_on_send=None, recv_error=None):
        self._responses = list(responses)
        self._fail_on_send = fail_on_send
        self._recv_error = recv_error
        self.writes: list[bytes] = []
        self.close_calls = 0

    @property
    def sent(self) -> bytes:
        return b"".join(self.writes)

    def sendall(self, data):
        if self._fail_on_send is not None and len(self.writes) >= self._fail_on_send:
            raise BrokenPipeError(32, "Broken pipe")
        self.writes.append(bytes(data))

    def recv(self, bufsize):
        if self._recv_error is not None:
            raise self._recv_error
        if not self._responses:
            return b""
        return self._responses.pop(0)

    def close(self):
        self.close_calls += 1


@pytest.fixture
def fake_socket(monkeypatch):
    """Install a factory that makes ``socket.create_connection`` return a FakeSocket."""
    created: list[FakeSocket] = []

    def install(*args, **kwargs) -> FakeSocket:
        sock = FakeSocket(*args, **kwargs)

        def fake_create_connection(address, timeout=None):
            created.append(sock)
            return sock

        monkeypatch.setattr(socket, "create_connection", fake_create_connection)
        return sock

    install.created = created
    return install


def parse_instream(data: bytes) -> tuple[bytes, list[bytes]]:
    """Split a captured INSTREAM session into its command and chunk payloads.

    The terminating chunk shows up as a final ``b""`` entry.
    """
    command, sep, rest = data.partition(b"\0")
    assert sep, "command is not NUL-terminated"
    chunks = []
    offset = 0
    while offset < len(rest):
        (length,) = struct.unpack("!I", rest[offset:offset + 4])
        offset += 4
        chunks.append(rest[offset:offset + length])
        offset += length
    assert offset == len(rest), "trailing bytes after last frame"
    return command + sep, chunks


class FakeClamdHandler(socketserver.StreamRequestHandler):
    """Answers zINSTREAM, zPING and zVERSION like clamd does."""

    def handle(self):
        command = bytearray()
        while not command.endswith(b"\0"):
            byte = self.rfile.read(1)
            if not byte:
                return
            command += byte

        if command == b"zPING\0":
            self.wfile.write(b"PONG\0")
        elif command == b"zVERSION\0":
            self.wfile.write(b"ClamAV 1.0.0/26734/Mon Nov 28 08:17:05 2022\0")
        elif command == b"zINSTREAM\0":
            payload = bytearray()
            chunks = 0
            while True:
                (length,) = struct.unpack("!I", self.rfile.read(4))
                if length == 0:
                    break
                payload += self.rfile.read(length)
                chunks += 1
            self.server.sessions.append((bytes(payload), chunks))
            if EICAR in payload:
                self.wfile.write(b"stream: Win.Test.EICAR_HDB-1 FOUND\0")
            else:
                self.wfile.write(b"stream: OK\0")
        else:
            self.wfile.write(b"UNKNOWN COMMAND\0")


class FakeClamdServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self):
        super().__init__(("127.0.0.1", 0), FakeClamdHandler)
        self.sessions: list[tuple[bytes, int]] = []

    @property
    def address(self) -> str:
        host, port = self.server_address[:2]
        return f"{host}:{port}"


@pytest.fixture
def clamd():
    server = FakeClamdServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


@pytest.fixture
def unused_address() -> str:
    """Address of a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"127.0.0.1:{port}"
