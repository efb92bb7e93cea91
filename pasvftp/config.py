from dataclasses import dataclass


@dataclass
class Timeout:
    """
    Timeout configuration for the control and data connections.

    FTP replies trickle in over the control connection while the data
    connection is busy, so waiting is split into short polls. A poll that
    sees nothing is not an error; only a reply that never completes is.

    Attributes:
        connect: Time to wait for a TCP connection to be established.
                Applies to both the control and the passive data connection.
        poll: Time a single read of the control connection waits for data.
              An empty poll is silently ignored and the read is retried.
        reply: Total time to wait for one complete reply.
               Covers every poll needed to reassemble a multi-line reply.
    """

    connect: float = 5.0  # Time to wait for a TCP connection
    poll: float = 1.0  # Time a single control read waits for data
    reply: float = 30.0  # Time to wait for one complete reply

    def __post_init__(self) -> None:
        """
        Validate timeout configuration after initialization.

        Ensures that all timeout values are positive and that a reply has
        room for at least one poll.

        Returns:
            None

        Raises:
            ValueError: If timeout values are invalid or inconsistent.
        """
        if self.connect <= 0:
            raise ValueError("Connect timeout must be positive")
        if self.poll <= 0:
            raise ValueError("Poll timeout must be positive")
        if self.reply <= 0:
            raise ValueError("Reply timeout must be positive")

        if self.reply < self.poll:
            raise ValueError(f"Reply timeout ({self.reply}) must be at least {self.poll}")


@dataclass
class Limits:
    """
    Buffer sizes used when moving bytes.

    Attributes:
        reply: Largest chunk read from the control connection in one poll.
        block: Chunk size for the data connection and for local file I/O.
               Larger blocks mean fewer reads on big transfers.
    """

    reply: int = 1448  # Largest chunk read from the control connection
    block: int = 8192  # Chunk size for data connection and file I/O

    def __post_init__(self) -> None:
        """
        Validate buffer sizes after initialization.

        Raises:
            ValueError: If either size is not positive.
        """
        if self.reply <= 0:
            raise ValueError("Reply buffer size must be positive")

        if self.block <= 0:
            raise ValueError("Block size must be positive")
