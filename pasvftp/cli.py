import argparse
import asyncio
import getpass
import logging
import shlex
import sys
from typing import Awaitable, Callable, Dict, List, Optional, TextIO

from .control import DEFAULT_PORT
from .core import FtpSession
from .errors import FtpError
from .ftp import PasvFtp

HELP = """\
Commands:
  open [host [port]]      connect to a server and log in
  cd [remote-directory]   change the remote working directory
  ls [remote-directory]   list a remote directory
  get [remote [local]]    download a file
  put [local [remote]]    upload a file
  close                   end the session, stay in the shell
  quit, bye               end the session and leave
  help, ?                 show this text
"""


class Shell:
    """
    Unix-style ``ftp>`` prompt on top of a :class:`FtpSession`.

    The shell only reads input, fills in missing arguments and prints what
    the session returns. Everything protocol-related stays in the session.
    """

    PROMPT = "ftp> "

    def __init__(
        self,
        session: FtpSession,
        reader: Callable[[str], str] = input,
        output: TextIO = sys.stdout,
        errors: TextIO = sys.stderr,
    ) -> None:
        self.session = session
        self.reader = reader
        self.output = output
        self.errors = errors
        self.commands: Dict[str, Callable[[List[str]], Awaitable[bool]]] = {
            "open": self.open,
            "cd": self.cd,
            "ls": self.ls,
            "dir": self.ls,
            "get": self.get,
            "put": self.put,
            "close": self.close,
            "quit": self.quit,
            "bye": self.quit,
            "help": self.help,
            "?": self.help,
        }

    async def ask(self, prompt: str) -> str:
        return (await asyncio.to_thread(self.reader, prompt)).strip()

    def show(self, text: str) -> None:
        self.output.write(text.replace("\r\n", "\n"))
        self.output.flush()

    def complain(self, message: str) -> None:
        self.errors.write(message.rstrip("\n") + "\n")
        self.errors.flush()

    async def run(
        self,
        host: Optional[str] = None,
        port: int = DEFAULT_PORT,
        directory: Optional[str] = None,
    ) -> None:
        """Read and execute commands until quit or end of input.

        With a host, connect first and, once logged in, change to
        ``directory`` if one is given.
        """
        try:
            if host:
                await self.connect(host, port)
                if directory and self.session.authenticated:
                    await self.execute(f"cd {shlex.quote(directory)}")

            while not await self.execute(await self.ask(self.PROMPT)):
                pass
        except EOFError:
            self.show("\n")
            await self.quit([])

    async def execute(self, line: str) -> bool:
        """Run one command line; True means the shell should stop."""
        try:
            words = shlex.split(line)
        except ValueError as error:
            self.complain(f"?Invalid command line: {error}")
            return False
        if not words:
            return False

        name, args = words[0].lower(), words[1:]
        handler = self.commands.get(name)
        if handler is None:
            self.complain(f"Unrecognized command: {name}")
            return False

        try:
            return await handler(args)
        except FtpError as error:
            self.complain(str(error))
            return False

    async def connect(self, host: str, port: int) -> None:
        try:
            self.show(await self.session.open(host, port))
        except FtpError as error:
            self.complain(str(error))
            return

        # Configured credentials were already tried by open()
        if self.session.connected and self.session.auth is None:
            await self.login()

    async def login(self) -> None:
        local = getpass.getuser()
        name = await self.ask(f"Name ({self.session.host}:{local}): ")
        self.show(await self.session.authenticate(name or local))

    async def open(self, args: List[str]) -> bool:
        if self.session.connected:
            self.complain(f"Already connected to {self.session.host}, use close first.")
            return False

        host = args[0] if args else await self.ask("(to) ")
        if not host:
            self.complain("usage: open host-name [port]")
            return False

        try:
            port = int(args[1]) if len(args) > 1 else DEFAULT_PORT
        except ValueError:
            self.complain(f"{args[1]}: bad port number")
            return False

        await self.connect(host, port)
        return False

    async def cd(self, args: List[str]) -> bool:
        self.session.require()
        path = args[0] if args else await self.ask("(remote-directory) ")
        self.show(await self.session.change_directory(path or "."))
        return False

    async def ls(self, args: List[str]) -> bool:
        self.session.require()
        self.show(await self.session.list(args[0] if args else None))
        return False

    async def get(self, args: List[str]) -> bool:
        self.session.require()
        remote, local = await self.names(args, "(remote-file) ", "(local-file) ")
        if remote:
            self.show(await self.session.get(remote, local))
        return False

    async def put(self, args: List[str]) -> bool:
        self.session.require()
        local, remote = await self.names(args, "(local-file) ", "(remote-file) ")
        if local:
            self.show(await self.session.put(local, remote))
        return False

    async def names(self, args: List[str], first: str, second: str):
        """Fill in a source and target name, the target defaulting to the source."""
        if args:
            return args[0], args[1] if len(args) > 1 else args[0]

        source = await self.ask(first)
        target = await self.ask(second)
        return source, target or source

    async def close(self, args: List[str]) -> bool:
        self.show(await self.session.close())
        return False

    async def quit(self, args: List[str]) -> bool:
        if self.session.connected:
            try:
                self.show(await self.session.close())
            except FtpError as error:
                self.complain(str(error))
        return True

    async def help(self, args: List[str]) -> bool:
        self.show(HELP)
        return False


def parse(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pasvftp",
        description="Interactive passive-mode FTP client.",
    )
    parser.add_argument("host", nargs="?", help="host name, address or ftp:// URL")
    parser.add_argument("port", nargs="?", type=int, default=DEFAULT_PORT, help="control port")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-v", "--verbose", action="store_true", help="log connections and transfers")
    group.add_argument("-d", "--debug", action="store_true", help="log every command and reply")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse(argv)

    level = logging.DEBUG if args.debug else logging.INFO if args.verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    host, port, directory = args.host, args.port, None
    if host and host.startswith("ftp://"):
        try:
            factory: PasvFtp = PasvFtp(host)
        except ValueError as error:
            print(f"pasvftp: {error}", file=sys.stderr)
            return 2
        session = factory.session()
        host, port, directory = factory.host, factory.port, factory.path or None
    else:
        session = FtpSession()

    shell = Shell(session)
    try:
        asyncio.run(shell.run(host, port, directory))
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return 130
    return 0
