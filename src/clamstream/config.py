"""TOML configuration loader and daemon address handling."""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

from clamstream.errors import InvalidAddressError
from clamstream.protocol import MAX_CHUNK_SIZE

DEFAULT_CONFIG_PATHS = [
    Path("clamstream.toml"),
    Path.home() / ".config" / "clamstream" / "config.toml",
    Path("/etc/clamstream/config.toml"),
]

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3310

Address = str | tuple[str, int]


class ScanConfig(BaseModel):
    """Connection and streaming settings for talking to clamd."""

    host: str = Field(default=DEFAULT_HOST, description="clamd hostname or IP address")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="clamd TCP port")
    chunk_size: int | None = Field(
        default=None,
        gt=0,
        le=MAX_CHUNK_SIZE,
        description="Max bytes per INSTREAM chunk (built-in default when unset)",
    )
    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Socket timeout in seconds (blocking when unset)",
    )

    @property
    def address(self) -> tuple[str, int]:
        return (self.host, self.port)


def parse_address(address: Address) -> tuple[str, int]:
    """Turn ``"host:port"``, ``"[v6]:port"`` or ``(host, port)`` into a pair."""
    if isinstance(address, tuple):
        if len(address) != 2:
            raise InvalidAddressError(f"Expected a (host, port) pair, got {address!r}")
        host, port = address
    else:
        host, sep, port = address.strip().rpartition(":")
        if not sep:
            raise InvalidAddressError(f"Expected host:port, got {address!r}")
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]

    try:
        port_number = int(port)
    except (TypeError, ValueError) as exc:
        raise InvalidAddressError(f"Invalid port in {address!r}") from exc
    if not host or not 0 < port_number <= 65535:
        raise InvalidAddressError(f"Invalid clamd address {address!r}")
    return str(host), port_number


def load_config(config_path: Path | None = None) -> ScanConfig:
    """Load config from TOML file, falling back to defaults."""
    if config_path and config_path.exists():
        return _parse_toml(config_path)

    for path in DEFAULT_CONFIG_PATHS:
        if path.exists():
            return _parse_toml(path)

    return ScanConfig()


def _parse_toml(path: Path) -> ScanConfig:
    data = tomllib.loads(path.read_text())
    clamd_data = data.get("clamd", {})
    return ScanConfig(**clamd_data)
