import asyncio
import getpass
import logging
import warnings
from enum import Enum
from pathlib import Path
from typing import (
    Optional,
    Dict,
    Union,
    Callable,
    TypeVar,
    Any,
    Awaitable,
)
import aioftp
from .auth import Basic, Guest
from .config import Limits, Timeout
from .control import DEFAULT_PORT, ControlChannel
from .errors import (
    ConnectionFailure,
    FtpError,
    NotConnectedError,
    ProtocolFailure,
    SessionStateError,
    TransferFailure,
)
from .transfer import DataTransfer, Exchange, TransferOutcome

logger = logging.getLogger(__name__)

# Type definitions shared with the factory
T = TypeVar("T")
SessionType = TypeVar("SessionType", bound="FtpSession")
HookType = Callable[..., Awaitable[Any]]
PromptType = Callable[[str], str]
AuthType = Union[Basic, Guest]


class State(Enum):
    """Where a session is in its lifecycle."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"


class FtpSession:
    """
    One user's conversation with one FTP server.

    Every operation sends its commands over the control connection and hands
    back the server's replies as display-ready text. Negative replies are
    just text; exceptions are reserved for things that stop the operation
    itself, like a lost connection or a reply that makes no sense.

    The session moves DISCONNECTED → CONNECTED → AUTHENTICATED. Anything but
    :meth:`open` on a disconnected session raises
    :class:`~pasvftp.errors.NotConnectedError` before touching the network.
    """

    def __init__(
        self,
        auth: Optional[AuthType] = None,
        timeout: Optional[Timeout] = None,
        limits: Optional[Limits] = None,
        hooks: Optional[Dict[str, HookType]] = None,
        encoding: str = "utf-8",
        prompt: Optional[PromptType] = None,
        path_io_factory: type = aioftp.PathIO,
    ) -> None:
        """Set up a disconnected session.

        Args:
            auth: Credentials to log in with right after :meth:`open`
            timeout: Connect, poll and reply timeouts
            limits: Buffer sizes for replies and data blocks
            hooks: Async callbacks for "connect", "transfer" and "error"
            encoding: Text encoding for commands, replies and listings
            prompt: Blocking password prompt, :func:`getpass.getpass` by default
            path_io_factory: aioftp path layer used for local files
        """
        self.auth: Optional[AuthType] = auth
        self.timeout: Timeout = timeout or Timeout()
        self.limits: Limits = limits or Limits()
        self.hooks: Dict[str, HookType] = hooks or {}
        self.encoding: str = encoding
        self.prompt: PromptType = prompt or getpass.getpass

        self.control = ControlChannel(self.timeout, self.limits, self.encoding)
        self.transfer = DataTransfer(
            self.control, self.timeout, self.limits, path_io_factory()
        )

        self.state: State = State.DISCONNECTED
        self.host: Optional[str] = None
        self.last_transfer: Optional[TransferOutcome] = None

    @property
    def connected(self) -> bool:
        return self.state is not State.DISCONNECTED

    @property
    def authenticated(self) -> bool:
        return self.state is State.AUTHENTICATED

    def require(self) -> None:
        if self.state is State.DISCONNECTED:
            raise NotConnectedError()

    async def __aenter__(self: SessionType) -> SessionType:
        return self

    async def __aexit__(self, type, value, trace) -> None:
        """Say goodbye to the server if we are still connected."""
        if self.connected:
            try:
                await self.close()
            except FtpError as error:
                warnings.warn(f"Error closing FTP session: {error}")

    async def hook(self, name: str, *args: Any) -> None:
        if name in self.hooks:
            try:
                await self.hooks[name](*args)
            except Exception as error:
                warnings.warn(f"{name.capitalize()} hook failed: {error}")

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run one exchange with the server, tearing down on I/O failure.

        Malformed replies leave the session as it was. Anything that breaks a
        connection closes both connections and leaves the session
        disconnected, since the control channel can no longer be trusted.
        """
        try:
            return await operation()
        except ProtocolFailure:
            raise
        except TransferFailure as error:
            await self.teardown(error)
            raise
        except (OSError, asyncio.TimeoutError) as error:
            await self.teardown(error)
            if isinstance(error, FtpError):
                raise
            raise ConnectionFailure(f"Connection to {self.host} lost: {error}") from error

    async def teardown(self, error: BaseException) -> None:
        logger.warning("Closing connection to %s after failure: %s", self.host, error)
        self.control.release()
        self.state = State.DISCONNECTED
        await self.hook("error", error)

    async def open(self, host: str, port: int = DEFAULT_PORT) -> str:
        """Connect to a server and, if credentials were given, log in.

        Args:
            host: Host name or dotted-quad address
            port: Control port; anything outside 1024-65535 means 21

        Returns:
            str: The greeting, followed by the login replies if any

        Raises:
            SessionStateError: If the session is already connected
            ConnectionFailure: If the server cannot be reached or hangs up
                before its greeting
        """
        if self.connected:
            raise SessionStateError(f"Already connected to {self.host}, use close first.")

        self.host = host
        try:
            greeting = await self.control.open(host, port)
        except (ProtocolFailure, OSError, asyncio.TimeoutError) as error:
            self.control.release()
            self.state = State.DISCONNECTED
            if isinstance(error, FtpError):
                raise
            raise ConnectionFailure(f"Connection to {host} lost: {error}") from error

        if not greeting.complete:
            # 120/421 and friends: the server will not talk to us now
            self.control.release()
            return greeting.text

        self.state = State.CONNECTED
        text = greeting.text
        if self.auth is not None:
            text += await self.authenticate()
        return text

    async def authenticate(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> str:
        """Log in on an open connection.

        The password is only asked for if the server wants one: first from
        the argument, then from the configured credentials, then from the
        prompt, which reads without echo.

        Args:
            username: Login name, the configured credentials' user by default
            password: Password, if already known

        Returns:
            str: The USER, PASS and SYST replies
        """
        self.require()
        if username is None:
            if self.auth is None:
                raise SessionStateError("No username given and no credentials configured")
            username = self.auth.user
        if password is None and self.auth is not None and self.auth.user == username:
            password = self.auth.password

        async def ask() -> str:
            return await asyncio.to_thread(self.prompt, "Password:")

        reply, text = await self.run(
            lambda: self.control.authenticate(username, password if password is not None else ask)
        )

        if reply.complete:
            self.state = State.AUTHENTICATED
            logger.info("Logged in to %s as %s", self.host, username)
            await self.hook("connect", self)
        else:
            self.state = State.CONNECTED
        return text

    async def change_directory(self, path: str) -> str:
        self.require()
        reply = await self.run(lambda: self.control.change_directory(path))
        return reply.text

    cd = change_directory

    async def list(self, path: Optional[str] = None) -> str:
        """List a remote directory.

        Returns:
            str: PASV and preliminary replies, the listing, then the
            completion reply
        """
        self.require()
        exchange, listing = await self.run(lambda: self.transfer.listing(path))
        return exchange.text + listing + self.completion(exchange)

    async def get(self, remote: str, local: Optional[Union[str, Path]] = None) -> str:
        """Download ``remote`` to ``local`` (same name by default)."""
        self.require()
        target = local if local is not None else remote
        exchange = await self.run(lambda: self.transfer.download(remote, target))
        return await self.report(exchange, "received")

    async def put(self, local: Union[str, Path], remote: Optional[str] = None) -> str:
        """Upload ``local`` as ``remote`` (same name by default)."""
        self.require()
        target = remote if remote is not None else Path(local).name
        exchange = await self.run(lambda: self.transfer.upload(local, target))
        return await self.report(exchange, "sent")

    async def close(self) -> str:
        """Send QUIT and drop the connection.

        Raises:
            NotConnectedError: If there is nothing to close
            ConnectionFailure: If the server hangs up before its farewell
        """
        self.require()
        try:
            reply = await self.control.close()
        except (ProtocolFailure, OSError, asyncio.TimeoutError) as error:
            await self.teardown(error)
            if isinstance(error, FtpError):
                raise
            raise ConnectionFailure(f"Connection to {self.host} lost: {error}") from error
        self.state = State.DISCONNECTED
        return reply.text

    async def report(self, exchange: Exchange, verb: str) -> str:
        text = exchange.text
        if exchange.outcome is not None:
            self.last_transfer = exchange.outcome
            logger.info(exchange.outcome.summary(verb).strip())
            text += exchange.outcome.summary(verb)
            await self.hook("transfer", exchange.outcome)
        return text + self.completion(exchange)

    @staticmethod
    def completion(exchange: Exchange) -> str:
        # A Complete preliminary reply already doubles as the completion
        if exchange.completion is None or exchange.completion is exchange.preliminary:
            return ""
        return exchange.completion.text
