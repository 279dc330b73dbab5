"""clamstream — stream bytes to a ClamAV daemon over the INSTREAM protocol."""

from clamstream.errors import (
    ClamdConnectionError,
    ClamdIOError,
    ClamStreamError,
    InvalidAddressError,
    ProtocolReadError,
    ProtocolWriteError,
    ResponseDecodeError,
)
from clamstream.scanner import ping, scan, version

__version__ = "0.1.0"

__all__ = [
    "ClamStreamError",
    "ClamdConnectionError",
    "ClamdIOError",
    "InvalidAddressError",
    "ProtocolReadError",
    "ProtocolWriteError",
    "ResponseDecodeError",
    "ping",
    "scan",
    "version",
]
