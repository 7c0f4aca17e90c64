"""Transport-specific exceptions for error handling."""


class TransportError(Exception):
    """Base exception for transport operations."""

    pass


class TransportUnavailableError(TransportError):
    """Raised when no device matched any detection tier."""

    pass


class FileAccessDeniedError(TransportError):
    """Raised when the device refuses access to a path."""

    pass


class PathNotFoundError(TransportError):
    """Raised when a logical path does not exist on the device."""

    def __init__(self, segment: str, message: str | None = None):
        self.segment = segment
        super().__init__(message or f"Path segment not found: {segment}")


class TransportTimeoutError(TransportError):
    """Raised when an asynchronous copy or move did not complete in time."""

    pass


class CommandNotSupportedError(TransportError):
    """Raised when a shell command is requested without a command channel."""

    pass
