"""Shared fixtures: a real aioftp server and a scripted stand-in for edge cases."""

import asyncio
import socket
import struct
from pathlib import Path
from typing import Dict, List, Optional, Union

import aioftp
import pytest
import pytest_asyncio

from pasvftp import FtpSession, Timeout

USER = "alice"
PASSWORD = "secret"

Script = Dict[str, Optional[Union[str, List[str]]]]


class ScriptedServer:
    """
    Control connection that answers each command verb from a script.

    A reply may be a string or a list of chunks written with a short pause
    between them, to exercise replies that arrive in pieces. A PASV without
    a scripted reply opens a real data listener that sends ``payload`` and
    closes, or with ``hold`` keeps the data connection open until the client
    drops it. With ``reset_after`` the data connection sends that many bytes
    of the payload and then resets. A verb scripted as None, or a None
    greeting, makes the server hang up instead of replying.
    """

    def __init__(
        self,
        script: Optional[Script] = None,
        greeting: Optional[Union[str, List[str]]] = "220 scripted server ready\r\n",
        payload: bytes = b"",
        hold: bool = False,
        passive_host: str = "127,0,0,1",
        reset_after: Optional[int] = None,
    ) -> None:
        self.script: Script = script or {}
        self.greeting = greeting
        self.payload = payload
        self.hold = hold
        self.passive_host = passive_host
        self.reset_after = reset_after
        self.commands: List[str] = []
        self.connections = 0
        self.data_connections = 0
        self.writers: List[asyncio.StreamWriter] = []
        self.server: Optional[asyncio.AbstractServer] = None
        self.data: Optional[asyncio.AbstractServer] = None
        self.port = 0

    async def start(self) -> "ScriptedServer":
        self.server = await asyncio.start_server(self.handle, "127.0.0.1", 0)
        self.port = self.server.sockets[0].getsockname()[1]
        return self

    async def stop(self) -> None:
        for writer in self.writers:
            writer.close()
        for server in (self.data, self.server):
            if server is not None:
                server.close()
                await server.wait_closed()

    async def write(self, writer: asyncio.StreamWriter, reply: Union[str, List[str]]) -> None:
        chunks = [reply] if isinstance(reply, str) else reply
        for index, chunk in enumerate(chunks):
            if index:
                await asyncio.sleep(0.05)
            writer.write(chunk.encode())
            await writer.drain()

    async def handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self.writers.append(writer)
        try:
            if self.greeting is None:
                return
            await self.write(writer, self.greeting)
            while True:
                line = await reader.readline()
                if not line:
                    break
                command = line.decode().rstrip("\r\n")
                self.commands.append(command)
                verb = command.split(" ", 1)[0].upper()
                if verb == "PASV" and verb not in self.script:
                    await self.write(writer, await self.passive())
                    continue
                reply = self.script.get(verb, "502 Command not implemented.\r\n")
                if reply is None:
                    break
                await self.write(writer, reply)
                if verb == "QUIT":
                    break
        except ConnectionError:
            pass
        finally:
            writer.close()

    async def passive(self) -> str:
        if self.data is not None:
            self.data.close()
        self.data = await asyncio.start_server(self.serve, "127.0.0.1", 0)
        port = self.data.sockets[0].getsockname()[1]
        return f"227 Entering Passive Mode ({self.passive_host},{port // 256},{port % 256}).\r\n"

    async def serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.data_connections += 1
        self.writers.append(writer)
        try:
            if self.hold:
                await reader.read()
            elif self.reset_after is not None:
                writer.write(self.payload[: self.reset_after])
                await writer.drain()
                await asyncio.sleep(0.3)
                # Zero linger turns the close into a reset
                sock = writer.get_extra_info("socket")
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
                writer.transport.abort()
            else:
                writer.write(self.payload)
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            writer.close()


@pytest.fixture
def remote(tmp_path: Path) -> Path:
    """Directory the aioftp server serves as the user's root."""
    path = tmp_path / "remote"
    path.mkdir()
    return path


@pytest.fixture
def local(tmp_path: Path) -> Path:
    path = tmp_path / "local"
    path.mkdir()
    return path


@pytest_asyncio.fixture
async def ftp_server(remote: Path):
    """Real aioftp server on localhost with one password-protected user."""
    server = aioftp.Server(
        users=[
            aioftp.User(
                login=USER,
                password=PASSWORD,
                base_path=remote,
                home_path="/",
                permissions=[aioftp.Permission("/", readable=True, writable=True)],
            )
        ],
        path_io_factory=aioftp.PathIO,
    )
    await server.start(host="127.0.0.1", port=0)
    try:
        yield server
    finally:
        await server.close()


@pytest.fixture
def ftp_port(ftp_server: aioftp.Server) -> int:
    return ftp_server.address[1]


@pytest_asyncio.fixture
async def scripted():
    """Factory for scripted servers; every server started is stopped afterwards."""
    servers: List[ScriptedServer] = []

    async def factory(**kwargs) -> ScriptedServer:
        server = await ScriptedServer(**kwargs).start()
        servers.append(server)
        return server

    try:
        yield factory
    finally:
        for server in servers:
            await server.stop()


@pytest.fixture
def fast() -> Timeout:
    """Short timeouts so failure paths do not slow the suite down."""
    return Timeout(connect=2.0, poll=0.2, reply=2.0)


@pytest_asyncio.fixture
async def session(fast: Timeout):
    """Disconnected session that answers password prompts with the test password."""
    session = FtpSession(timeout=fast, prompt=lambda prompt: PASSWORD)
    try:
        yield session
    finally:
        if session.connected:
            session.control.release()
