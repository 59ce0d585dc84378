class RelayError(Exception):
    """Base exception for relay domain errors."""

    pass


class StorageError(RelayError):
    """Raised when a record cannot be written to or removed from disk."""

    pass


class TmuxError(RelayError):
    """Raised when a tmux invocation fails."""

    pass


class TmuxTargetNotFoundError(TmuxError):
    """Raised when the target session, window or pane does not exist."""

    pass


class TmuxServerError(TmuxError):
    """Raised when the tmux server is missing or its socket is unusable."""

    pass


class TmuxTimeoutError(TmuxError):
    """Raised when a tmux invocation does not finish in time."""

    pass
