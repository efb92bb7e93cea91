import asyncio
import logging
import socket
from typing import Awaitable, Callable, Optional, Tuple, Union

from aioftp.common import END_OF_LINE, StreamIO

from .config import Limits, Timeout
from .errors import ConnectionFailure, NotConnectedError, SessionStateError
from .reader import ReplyReader
from .replies import Endpoint, Reply, ReplyParser

logger = logging.getLogger(__name__)

DEFAULT_PORT = 21

# A password, or a coroutine factory that produces one only when asked
PasswordSource = Union[str, Callable[[], Awaitable[str]]]


class ControlChannel:
    """
    The command connection to an FTP server.

    Sends one command at a time and reads back the matching reply. The
    channel owns its stream: it is opened by :meth:`open` and released
    exactly once, by :meth:`close` or :meth:`release`.
    """

    def __init__(
        self,
        timeout: Optional[Timeout] = None,
        limits: Optional[Limits] = None,
        encoding: str = "utf-8",
    ) -> None:
        self.timeout: Timeout = timeout or Timeout()
        self.limits: Limits = limits or Limits()
        self.encoding: str = encoding
        self.parser = ReplyParser()
        self.host: Optional[str] = None
        self.port: Optional[int] = None
        self.stream: Optional[StreamIO] = None
        self.replies: Optional[ReplyReader] = None

    @property
    def connected(self) -> bool:
        return self.stream is not None

    @staticmethod
    def validate(port: int) -> int:
        """Fall back to port 21 for anything outside the user port range."""
        if port == DEFAULT_PORT or 1024 <= port <= 65535:
            return port
        return DEFAULT_PORT

    async def open(self, host: str, port: int = DEFAULT_PORT) -> Reply:
        """Connect to the server and read its greeting.

        Args:
            host: Host name or dotted-quad address
            port: Control port; out-of-range values fall back to 21

        Returns:
            Reply: The server's greeting

        Raises:
            ConnectionFailure: If the host cannot be resolved or reached
            SessionStateError: If the channel is already open
        """
        if self.stream is not None:
            raise SessionStateError(f"Already connected to {self.host}")

        port = self.validate(port)
        logger.info("Connecting to %s:%s", host, port)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port, family=socket.AF_INET),
                timeout=self.timeout.connect,
            )
        except asyncio.TimeoutError:
            raise ConnectionFailure(f"Connection to {host}:{port} timed out")
        except socket.gaierror as error:
            raise ConnectionFailure(f"unknown hostname: {host}") from error
        except OSError as error:
            raise ConnectionFailure(f"connect failure: {host}:{port} - {error}") from error

        self.host, self.port = host, port
        self.stream = StreamIO(reader, writer)
        self.replies = ReplyReader(self.stream, self.timeout, self.limits, self.encoding)
        logger.info("Connected to %s:%s", host, port)
        return await self.receive()

    async def send(self, line: str) -> None:
        if self.stream is None:
            raise NotConnectedError()

        shown = "PASS ****" if line.upper().startswith("PASS ") else line
        logger.debug("→ %s", shown)
        await self.stream.write((line + END_OF_LINE).encode(self.encoding))

    async def receive(self) -> Reply:
        if self.replies is None:
            raise NotConnectedError()
        return self.parser.parse(await self.replies.read())

    async def command(self, line: str) -> Reply:
        await self.send(line)
        return await self.receive()

    async def authenticate(
        self, username: str, password: PasswordSource
    ) -> Tuple[Reply, str]:
        """Log in with USER and, if the server asks for one, PASS.

        Args:
            username: Name for the USER command
            password: The password, or a coroutine factory that is only
                called once the server has asked for a password

        Returns:
            Tuple[Reply, str]: The reply that decides the outcome (PASS, or
            USER if no password was needed) and the text of every reply
        """
        reply = await self.command(f"USER {username}")
        text = reply.text

        if reply.intermediate:
            secret = password if isinstance(password, str) else await password()
            reply = await self.command(f"PASS {secret}")
            text += reply.text
            # Host system information for display only
            text += (await self.command("SYST")).text

        return reply, text

    async def change_directory(self, path: str) -> Reply:
        return await self.command(f"CWD {path}")

    async def request_passive(self) -> Tuple[Reply, Optional[Endpoint]]:
        """Ask the server to listen for a data connection.

        Returns:
            Tuple[Reply, Optional[Endpoint]]: The PASV reply and, when it was
            Complete, the endpoint to connect to

        Raises:
            ProtocolFailure: If a Complete reply carries a malformed tuple
        """
        reply = await self.command("PASV")
        return reply, self.parser.parse_passive(reply.text)

    async def close(self) -> Reply:
        """Send QUIT, read the farewell and release the stream."""
        if self.stream is None:
            raise NotConnectedError()

        try:
            return await self.command("QUIT")
        finally:
            self.release()

    def release(self) -> None:
        if self.stream is None:
            return

        self.stream.close()
        self.stream = None
        self.replies = None
        logger.info("Disconnected from %s:%s", self.host, self.port)
