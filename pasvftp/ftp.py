from typing import (
    Optional,
    Dict,
    Generic,
    TypeVar,
)
from urllib.parse import urlparse, unquote
from .auth import Basic, Guest
from .config import Limits, Timeout
from .control import DEFAULT_PORT
from .core import AuthType, FtpSession, HookType, PromptType

# Type definitions for the session the factory builds
SessionType = TypeVar("SessionType", bound="FtpSession")


class PasvFtp(Generic[SessionType]):
    """
    Factory for sessions that share one server and one configuration.

    Parses an ``ftp://`` URL once and hands out :class:`FtpSession`
    instances wired with the same credentials, timeouts, limits and hooks.

    Type Parameters:
        SessionType: The specific session type to create
    """

    def __init__(
        self,
        endpoint: str,
        auth: Optional[AuthType] = None,
        timeout: Optional[Timeout] = None,
        limits: Optional[Limits] = None,
        hooks: Optional[Dict[str, HookType]] = None,
        encoding: str = "utf-8",
        prompt: Optional[PromptType] = None,
    ) -> None:
        """Set up connection parameters and shared configuration.

        A user name in the URL becomes :class:`Basic` credentials, or
        :class:`Guest` for ``anonymous``. An explicit ``auth`` takes precedence.

        Args:
            endpoint: FTP URL like ftp://server.com or ftp://user:pw@host:2121
            auth: Credentials to log in with right after connecting
            timeout: How long to wait for connections and replies
            limits: Buffer sizes for replies and data blocks
            hooks: Async callbacks for "connect", "transfer" and "error"
            encoding: Text encoding for the control connection and listings
            prompt: Password prompt used when no password is known

        Raises:
            TypeError: If endpoint isn't a string
            ValueError: If endpoint is not an ftp:// URL or has no host
        """
        if not isinstance(endpoint, str):
            raise TypeError("Endpoint must be a string.")

        # Parse the FTP URL to extract connection details
        url = urlparse(endpoint)

        if url.scheme != "ftp":
            raise ValueError("Endpoint must start with 'ftp://'.")

        if not url.hostname:
            raise ValueError("Endpoint must name a host.")

        # Store connection info from URL
        self.endpoint: str = endpoint
        self.host: str = url.hostname
        self.port: int = url.port or DEFAULT_PORT
        self.path: str = unquote(url.path.lstrip("/"))

        # Credentials from the URL unless given explicitly
        if auth is None and url.username:
            user = unquote(url.username)
            if user == "anonymous":
                auth = Guest(unquote(url.password)) if url.password else Guest()
            else:
                auth = Basic(user, unquote(url.password or ""))

        # Set up configuration with sensible defaults
        self.auth: Optional[AuthType] = auth
        self.timeout: Timeout = timeout or Timeout()
        self.limits: Limits = limits or Limits()
        self.hooks: Dict[str, HookType] = hooks or {}
        self.encoding: str = encoding
        self.prompt: Optional[PromptType] = prompt

    def session(self) -> "FtpSession":
        """Create a disconnected session using this configuration.

        Returns:
            FtpSession: Session ready for :meth:`FtpSession.open`
        """
        return FtpSession(
            auth=self.auth,
            timeout=self.timeout,
            limits=self.limits,
            hooks=self.hooks,
            encoding=self.encoding,
            prompt=self.prompt,
        )

    async def connect(self) -> "FtpSession":
        """Create a session, connect it and change to the URL's path.

        Returns:
            FtpSession: The opened session; check ``connected`` and
            ``authenticated`` to see how far the server let us in
        """
        session = self.session()
        await session.open(self.host, self.port)
        if self.path and session.authenticated:
            await session.change_directory(self.path)
        return session
