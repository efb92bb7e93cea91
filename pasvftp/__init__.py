__version__ = "1.0.0"
__author__ = "Andrew Hernandez"
__email__ = "andromedeyz@hotmail.com"
__license__ = "MIT"
__description__ = "A small async FTP client that talks passive mode over one control connection at a time."

# The factory - build sessions from an ftp:// URL
from .ftp import PasvFtp

# The heart of the client - one session per server conversation
from .core import (
    FtpSession,  # Open, log in, list, get, put, close
    State,  # Where a session is in its lifecycle
)

# The protocol pieces the session is built from
from .control import ControlChannel
from .transfer import DataTransfer, TransferOutcome
from .reader import ReplyReader
from .replies import (
    ReplyParser,
    Reply,
    Category,
    Endpoint,
    codes,  # Standard meaning of every common reply code
)

# Fine-tune how connections behave
from .config import (
    Timeout,  # How long to wait for connections and replies
    Limits,  # Buffer sizes for replies and data blocks
)

# Ways to log in
from .auth import (
    Basic,  # Classic username and password login
    Guest,  # Anonymous login for public servers
)

# What can go wrong
from .errors import (
    FtpError,
    ConnectionFailure,
    ProtocolFailure,
    ReplyTimeout,
    TransferFailure,
    LocalFileError,
    SessionStateError,
    NotConnectedError,
)

# Everything you can import and use
__all__ = [
    # The main classes you'll work with
    "PasvFtp",
    "FtpSession",
    "State",
    # Protocol pieces
    "ControlChannel",
    "DataTransfer",
    "TransferOutcome",
    "ReplyReader",
    "ReplyParser",
    "Reply",
    "Category",
    "Endpoint",
    "codes",
    # Configuration options
    "Timeout",
    "Limits",
    # Authentication types
    "Basic",
    "Guest",
    # Errors
    "FtpError",
    "ConnectionFailure",
    "ProtocolFailure",
    "ReplyTimeout",
    "TransferFailure",
    "LocalFileError",
    "SessionStateError",
    "NotConnectedError",
    # Package info
    "__version__",
    "__author__",
    "__email__",
    "__license__",
    "__description__",
]

# Make sure you're running a modern Python version
import sys

if sys.version_info < (3, 9):
    raise RuntimeError("PasvFtp needs Python 3.9 or newer to work properly")
