import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional

from .errors import ProtocolFailure

logger = logging.getLogger(__name__)

# FTP reply codes - what the server is trying to tell you
codes: Dict[int, str] = {
    # 1xx - "Hold on, I'm working on it"
    110: "Restart marker reply",
    120: "Service ready in n minutes",
    125: "Data connection already open; transfer starting",
    150: "File status okay; about to open data connection",
    # 2xx - "Success! Everything went great"
    200: "Command okay",
    202: "Command not implemented, superfluous at this site",
    211: "System status, or system help reply",
    212: "Directory status",
    213: "File status",
    214: "Help message",
    215: "NAME system type",
    220: "Service ready for new user",
    221: "Service closing control connection",
    225: "Data connection open; no transfer in progress",
    226: "Closing data connection",
    227: "Entering Passive Mode",
    230: "User logged in, proceed",
    250: "Requested file action okay, completed",
    257: "PATHNAME created",
    # 3xx - "I need more info from you"
    331: "User name okay, need password",
    332: "Need account for login",
    350: "Requested file action pending further information",
    # 4xx - "Something's wrong, but we can try again"
    421: "Service not available, closing control connection",
    425: "Can't open data connection",
    426: "Connection closed; transfer aborted",
    450: "Requested file action not taken",
    451: "Requested action aborted: local error in processing",
    452: "Requested action not taken; insufficient storage space",
    # 5xx - "Nope, that's not going to work"
    500: "Syntax error, command unrecognized",
    501: "Syntax error in parameters or arguments",
    502: "Command not implemented",
    503: "Bad sequence of commands",
    504: "Command not implemented for that parameter",
    530: "Not logged in",
    532: "Need account for storing files",
    550: "Requested action not taken; file unavailable",
    551: "Requested action aborted: page type unknown",
    552: "Requested file action aborted; exceeded storage allocation",
    553: "Requested action not taken; file name not allowed",
}


class Category(IntEnum):
    """The leading digit of a reply code."""

    PRELIMINARY = 1
    COMPLETE = 2
    INTERMEDIATE = 3
    TRANSIENT_NEGATIVE = 4
    PERMANENT_NEGATIVE = 5


@dataclass(frozen=True)
class Endpoint:
    """
    Address of a passive-mode data connection.

    Attributes:
        host: Dotted-quad address the server is listening on.
        port: TCP port the server is listening on.
    """

    host: str
    port: int

    def __post_init__(self) -> None:
        if not 1 <= self.port <= 65535:
            raise ValueError(f"Invalid data port: {self.port}")

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Reply:
    """
    One complete reply read off the control connection.

    Attributes:
        code: Three-digit status code.
        category: Category derived from the code's leading digit.
        text: Raw reply text as received, line endings included.
    """

    code: int
    category: Category
    text: str

    @property
    def preliminary(self) -> bool:
        return self.category is Category.PRELIMINARY

    @property
    def complete(self) -> bool:
        return self.category is Category.COMPLETE

    @property
    def intermediate(self) -> bool:
        return self.category is Category.INTERMEDIATE

    @property
    def negative(self) -> bool:
        return self.category >= Category.TRANSIENT_NEGATIVE

    @property
    def lines(self) -> List[str]:
        return self.text.splitlines()

    @property
    def message(self) -> str:
        """Text of the last line with the code and separator stripped."""
        last = self.lines[-1] if self.lines else ""
        return last[4:] if last[:3] == str(self.code) else last

    @property
    def meaning(self) -> Optional[str]:
        return codes.get(self.code)


class ReplyParser:
    """
    Interprets raw control-connection replies.

    The parser never talks to a socket. It turns text that a
    :class:`~pasvftp.reader.ReplyReader` reassembled into typed values, and
    raises :class:`~pasvftp.errors.ProtocolFailure` when the text does not
    look like an FTP reply.
    """

    def parse_code(self, text: str) -> Category:
        """Derive the reply category from the first three characters.

        Args:
            text: Raw reply text

        Returns:
            Category: The category, 1 through 5

        Raises:
            ProtocolFailure: If the text is short or not numeric, or the
                code falls outside 100-599
        """
        return Category(self.code(text) // 100)

    def code(self, text: str) -> int:
        head = text[:3]
        if len(head) < 3 or not head.isdigit():
            logger.error("Invalid FTP reply: %r", text[:40])
            raise ProtocolFailure(f"Malformed reply: {text.strip()!r}")

        value = int(head)
        if not 100 <= value <= 599:
            logger.error("FTP reply code out of range: %r", text[:40])
            raise ProtocolFailure(f"Reply code out of range: {value}")

        return value

    def parse(self, text: str) -> Reply:
        """Build a :class:`Reply` from raw reply text."""
        value = self.code(text)
        return Reply(code=value, category=Category(value // 100), text=text)

    def parse_passive(self, text: str) -> Optional[Endpoint]:
        """Extract the data endpoint from a PASV reply.

        Only a Complete reply carries an endpoint; anything else yields None
        so the caller can show the server's refusal instead.

        Args:
            text: Raw reply text, e.g.
                ``227 Entering Passive Mode (192,168,0,5,117,80)``

        Returns:
            Optional[Endpoint]: The endpoint, or None for a non-Complete reply

        Raises:
            ProtocolFailure: If the reply is Complete but the tuple is missing,
                short or out of range
        """
        if self.parse_code(text) is not Category.COMPLETE:
            return None

        start = text.find("(")
        if start < 0:
            raise ProtocolFailure(f"No address in PASV reply: {text.strip()!r}")

        fields = text[start + 1:].split(")", 1)[0].split(",")
        try:
            numbers = [int(field.strip()) for field in fields[:6]]
        except ValueError as error:
            raise ProtocolFailure(f"Malformed PASV reply: {text.strip()!r}") from error

        if len(numbers) < 6 or any(not 0 <= number <= 255 for number in numbers):
            raise ProtocolFailure(f"Malformed PASV reply: {text.strip()!r}")

        host = ".".join(str(number) for number in numbers[:4])
        port = numbers[4] * 256 + numbers[5]
        try:
            endpoint = Endpoint(host, port)
        except ValueError as error:
            raise ProtocolFailure(str(error)) from error

        logger.debug("PASV parsed: %s", endpoint)
        return endpoint
