import asyncio
import codecs
import logging
from typing import Optional

from aioftp.common import StreamIO

from .config import Limits, Timeout
from .errors import ReplyTimeout

logger = logging.getLogger(__name__)


class ReplyReader:
    """
    Buffered reader for the control connection.

    Each poll waits a bounded time for data and returns whatever arrived,
    possibly nothing. :meth:`read` keeps polling until one whole reply is
    buffered, hands it out and keeps any bytes that followed it, so replies
    that arrive split across packets, or several to a packet, come out one
    at a time.
    """

    def __init__(
        self,
        stream: StreamIO,
        timeout: Optional[Timeout] = None,
        limits: Optional[Limits] = None,
        encoding: str = "utf-8",
    ) -> None:
        self.stream = stream
        self.timeout: Timeout = timeout or Timeout()
        self.limits: Limits = limits or Limits()
        self.decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self.buffer: str = ""

    async def poll(self) -> str:
        """Wait up to one poll interval and return the text that arrived.

        Returns:
            str: Decoded text, or an empty string if nothing arrived in time

        Raises:
            ConnectionResetError: If the server closed the connection
            OSError: If the read itself failed
        """
        try:
            data = await asyncio.wait_for(
                self.stream.read(self.limits.reply), timeout=self.timeout.poll
            )
        except asyncio.TimeoutError:
            return ""

        if not data:
            raise ConnectionResetError("Connection closed by server")

        return self.decoder.decode(data)

    async def read(self) -> str:
        """Return the next complete reply, polling as often as needed.

        Raises:
            ReplyTimeout: If no complete reply arrives within the reply timeout
            ConnectionResetError: If the server closed the connection first
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout.reply

        while True:
            reply = self.extract()
            if reply is not None:
                logger.debug("← %s", reply.rstrip())
                return reply

            if loop.time() >= deadline:
                raise ReplyTimeout(f"No reply within {self.timeout.reply} seconds")

            self.buffer += await self.poll()

    def extract(self) -> Optional[str]:
        """Split one complete reply off the front of the buffer, if there is one."""
        end = self.buffer.find("\n")
        if end < 0:
            return None

        first = self.buffer[:end].rstrip("\r")
        if len(first) > 3 and first[:3].isdigit() and first[3] == "-":
            # Multi-line reply runs to the first later line with "ddd "
            terminator = first[:3] + " "
            start = end + 1
            while True:
                end = self.buffer.find("\n", start)
                if end < 0:
                    return None
                if self.buffer.startswith(terminator, start):
                    break
                start = end + 1

        reply, self.buffer = self.buffer[: end + 1], self.buffer[end + 1:]
        return reply
