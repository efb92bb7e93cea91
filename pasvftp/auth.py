import warnings
from dataclasses import dataclass

# Type aliases for credential fields
Username = str
Password = str
Email = str


@dataclass
class Basic:
    """
    Username and password login.

    Sent to the server as ``USER`` followed by ``PASS`` when the server asks
    for a password. Both travel in clear text over the control connection,
    so only use this against servers you trust on networks you trust.

    Attributes:
        user: Username for the USER command.
              Must not be empty or whitespace.
        password: Password for the PASS command.
                 Only sent if the server replies 3xx to USER.
    """

    user: Username
    password: Password = ""

    def __post_init__(self) -> None:
        """
        Validate the credentials.

        Raises:
            ValueError: If the username is empty or whitespace.
        """
        if not self.user.strip():
            raise ValueError("Username cannot be empty or whitespace")

        if not self.password:
            warnings.warn(
                "Password is empty. "
                "The server will be sent a blank PASS if it asks for one."
            )


@dataclass
class Guest:
    """
    Anonymous login.

    Logs in as ``anonymous`` and offers an e-mail address as the password,
    which is the long-standing convention for public FTP servers.

    Attributes:
        email: Address sent as the password.
    """

    email: Email = "guest@"

    def __post_init__(self) -> None:
        """
        Validate the e-mail address.

        Raises:
            ValueError: If the address is empty or whitespace.
        """
        if not self.email.strip():
            raise ValueError("Guest e-mail cannot be empty or whitespace")

        if "@" not in self.email:
            warnings.warn(
                "Guest e-mail has no '@'. "
                "Some servers refuse anonymous logins without one."
            )

    @property
    def user(self) -> Username:
        return "anonymous"

    @property
    def password(self) -> Password:
        return self.email
