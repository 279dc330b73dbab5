"""Exception hierarchy for clamd communication."""

from __future__ import annotations


class ClamStreamError(Exception):
    """Base class for every error raised by clamstream."""


class ClamdConnectionError(ClamStreamError):
    """The TCP connection to clamd could not be established."""


class InvalidAddressError(ClamdConnectionError):
    """The daemon address could not be split into host and port."""


class ClamdIOError(ClamStreamError):
    """Reading the source or talking to clamd failed after connecting."""


class ProtocolWriteError(ClamdIOError):
    """Writing a command or chunk frame to clamd failed."""


class ProtocolReadError(ClamStreamError):
    """clamd closed the connection before sending the NUL terminator."""

    def __init__(self, message: str, received: bytes = b"") -> None:
        super().__init__(message)
        self.received = received


class ResponseDecodeError(ClamStreamError):
    """The clamd response is not valid UTF-8."""
