import asyncio
import logging
import socket
import time
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple, Union

import aioftp
from aioftp.common import StreamIO

from .config import Limits, Timeout
from .control import ControlChannel
from .errors import ConnectionFailure, LocalFileError, TransferFailure
from .replies import Endpoint, Reply

logger = logging.getLogger(__name__)

# Mode for files created by a download: rw-r--r--
FILE_MODE = 0o644

Pump = Callable[[StreamIO], Awaitable[int]]


@dataclass(frozen=True)
class TransferOutcome:
    """
    How much a transfer moved and how long it took.

    Attributes:
        count: Bytes moved over the data connection.
        elapsed: Wall time in seconds from data connection to end of stream.
    """

    count: int
    elapsed: float

    @property
    def rate(self) -> float:
        """Throughput in Kbytes/s."""
        if self.elapsed <= 0:
            return 0.0
        return self.count / self.elapsed / 1000.0

    def summary(self, verb: str) -> str:
        return (
            f"{self.count} bytes {verb} in {self.elapsed:.3g} seconds "
            f"({self.rate:.4g} Kbytes/s)\n"
        )


@dataclass(frozen=True)
class Exchange:
    """
    Everything the server said during one data transfer.

    Attributes:
        passive: Reply to PASV.
        preliminary: First reply to the triggering command, if it was sent.
        completion: Final reply once the data connection closed, if any.
        outcome: Bytes moved and time taken, if the data phase ran.
    """

    passive: Reply
    preliminary: Optional[Reply] = None
    completion: Optional[Reply] = None
    outcome: Optional[TransferOutcome] = None

    @property
    def text(self) -> str:
        replies = (self.passive, self.preliminary)
        return "".join(reply.text for reply in replies if reply is not None)


class DataTransfer:
    """
    Runs one passive-mode transfer next to the control connection.

    The byte pump runs as its own task on the data connection while the
    calling task sends the command and reads the control connection, so a
    server that starts streaming before it replies never stalls the client.
    The pump only ever returns a byte count.
    """

    def __init__(
        self,
        control: ControlChannel,
        timeout: Optional[Timeout] = None,
        limits: Optional[Limits] = None,
        path_io: Optional["aioftp.AbstractPathIO"] = None,
    ) -> None:
        self.control = control
        self.timeout: Timeout = timeout or Timeout()
        self.limits: Limits = limits or Limits()
        self.path_io = path_io or aioftp.PathIO()

    async def connect(self, endpoint: Endpoint) -> StreamIO:
        host = endpoint.host
        if host == "0.0.0.0":
            host = self.control.host

        logger.debug("Opening data connection to %s:%s", host, endpoint.port)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, endpoint.port, family=socket.AF_INET),
                timeout=self.timeout.connect,
            )
        except (OSError, asyncio.TimeoutError) as error:
            raise ConnectionFailure(
                f"Data connection to {host}:{endpoint.port} failed: {error}"
            ) from error

        return StreamIO(reader, writer)

    async def exchange(
        self, command: str, pump: Pump, accepted: Optional[asyncio.Event] = None
    ) -> Exchange:
        """Negotiate a data connection and run one transfer over it.

        Args:
            command: Command that starts the transfer, e.g. ``RETR name``
            pump: Coroutine function that moves bytes over the data stream
                and returns how many it moved
            accepted: Set once the server has not refused the command

        Returns:
            Exchange: Replies seen and the transfer outcome

        Raises:
            ProtocolFailure: If the PASV reply is malformed
            TransferFailure: If either connection fails mid-transfer
        """
        passive, endpoint = await self.control.request_passive()
        if endpoint is None:
            return Exchange(passive)

        stream = await self.connect(endpoint)
        started = time.perf_counter()
        try:
            try:
                task = asyncio.ensure_future(pump(stream))
            except RuntimeError as error:
                raise TransferFailure(f"Unable to start data transfer: {error}") from error

            try:
                preliminary = await self.control.command(command)
            except BaseException:
                await self.cancel(task)
                raise

            if preliminary.negative:
                # Refused: nothing will arrive on the data connection
                await self.cancel(task)
                return Exchange(passive, preliminary)

            if accepted is not None:
                accepted.set()
            count = await task
        finally:
            await self.shutdown(stream)

        outcome = TransferOutcome(count, time.perf_counter() - started)
        if preliminary.complete:
            completion = preliminary
        else:
            completion = await self.control.receive()

        return Exchange(passive, preliminary, completion, outcome)

    @staticmethod
    async def cancel(task: asyncio.Future) -> None:
        task.cancel()
        await asyncio.wait([task])
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Data transfer ended early: %r", task.exception())

    @staticmethod
    async def shutdown(stream: StreamIO) -> None:
        stream.close()
        try:
            await stream.writer.wait_closed()
        except OSError as error:
            warnings.warn(f"Error closing data connection: {error}")

    async def listing(self, path: Optional[str] = None) -> Tuple[Exchange, str]:
        """Fetch a directory listing.

        Reads the data connection until the server closes it, so an empty
        directory or a last line without a newline both end cleanly.

        Args:
            path: Remote directory, or None for the current one

        Returns:
            Tuple[Exchange, str]: The exchange and the decoded listing
        """
        chunks: List[bytes] = []

        async def pump(stream: StreamIO) -> int:
            count = 0
            try:
                while True:
                    block = await stream.read(self.limits.block)
                    if not block:
                        break
                    chunks.append(block)
                    count += len(block)
            except OSError as error:
                raise TransferFailure(f"Listing interrupted: {error}", count) from error
            finally:
                stream.close()
            return count

        command = f"LIST {path}" if path else "LIST"
        exchange = await self.exchange(command, pump)
        listing = b"".join(chunks).decode(self.control.encoding, errors="replace")
        return exchange, listing

    async def download(self, remote: str, local: Union[str, Path]) -> Exchange:
        """Retrieve ``remote`` into the local file ``local``.

        The destination is checked before the server is asked for anything,
        but only created or truncated once the server accepts RETR, so a
        refused download leaves an existing file alone. If the transfer fails
        part way, whatever arrived stays on disk.

        Raises:
            LocalFileError: If the destination's directory is missing or the
                destination is a directory
        """
        local = Path(local)
        try:
            if not await self.path_io.is_dir(local.parent):
                raise LocalFileError(f"local: {local}: No such file or directory")
            if await self.path_io.is_dir(local):
                raise LocalFileError(f"local: {local}: Is a directory")
            created = not await self.path_io.exists(local)
        except aioftp.PathIOError as error:
            raise LocalFileError(f"local: {local}: {error.__cause__ or error}") from error

        accepted = asyncio.Event()

        async def pump(stream: StreamIO) -> int:
            count = 0
            try:
                await accepted.wait()
                async with self.path_io.open(local, mode="wb") as file:
                    if created:
                        self.permit(local)
                    while True:
                        block = await stream.read(self.limits.block)
                        if not block:
                            break
                        await file.write(block)
                        count += len(block)
            except (OSError, aioftp.PathIOError) as error:
                raise TransferFailure(f"Download of {remote} interrupted: {error}", count) from error
            finally:
                stream.close()
            return count

        return await self.exchange(f"RETR {remote}", pump, accepted)

    def permit(self, local: Path) -> None:
        """Give a newly created download rw-r--r--, whatever the umask."""
        # Only path layers backed by the local filesystem have modes
        if not isinstance(self.path_io, (aioftp.PathIO, aioftp.AsyncPathIO)):
            return
        try:
            local.chmod(FILE_MODE)
        except OSError as error:
            warnings.warn(f"Unable to set mode of {local}: {error}")

    async def upload(self, local: Union[str, Path], remote: str) -> Exchange:
        """Store the local file ``local`` on the server as ``remote``.

        Raises:
            LocalFileError: If the local file does not exist
        """
        local = Path(local)
        if not await self.path_io.is_file(local):
            raise LocalFileError(f"local: {local}: No such file or directory")

        async def pump(stream: StreamIO) -> int:
            count = 0
            try:
                async with self.path_io.open(local, mode="rb") as file:
                    async for block in file.iter_by_block(self.limits.block):
                        await stream.write(block)
                        count += len(block)
            except (OSError, aioftp.PathIOError) as error:
                raise TransferFailure(f"Upload of {local} interrupted: {error}", count) from error
            finally:
                stream.close()
            return count

        return await self.exchange(f"STOR {remote}", pump)
