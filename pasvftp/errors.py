from typing import Optional


class FtpError(Exception):
    """Base class for everything the client raises on its own behalf."""


class ConnectionFailure(FtpError, ConnectionError):
    """The control connection could not be opened, or it was lost."""


class ProtocolFailure(FtpError, ValueError):
    """A reply or PASV payload could not be parsed."""


class ReplyTimeout(FtpError, TimeoutError):
    """No complete reply arrived within the reply timeout."""


class TransferFailure(FtpError):
    """
    A data transfer broke off part way through.

    Attributes:
        count: Bytes moved before the failure, or None if the pump never ran.
    """

    def __init__(self, message: str, count: Optional[int] = None) -> None:
        super().__init__(message)
        self.count = count


class LocalFileError(FtpError):
    """A local file could not be used before any network traffic took place."""


class SessionStateError(FtpError, RuntimeError):
    """The operation is not valid in the session's current state."""


class NotConnectedError(SessionStateError):
    """The session has no open control connection."""

    def __init__(self, message: str = "Not connected.") -> None:
        super().__init__(message)
