class TailersError(Exception):
    """Base exception for tail engine errors."""

    pass


class RegistrationError(TailersError):
    """Raised when a path cannot be opened for tailing."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class SourceNotFound(RegistrationError):
    """Raised when a registered path does not exist."""

    def __init__(self, path):
        super().__init__(path, "no such file")


class PermissionDenied(RegistrationError):
    """Raised when a registered path exists but cannot be read."""

    def __init__(self, path):
        super().__init__(path, "permission denied")


class NoSourcesError(TailersError):
    """Raised when the engine is started with nothing registered."""

    pass


class WatchError(TailersError):
    """Raised when change notification cannot be armed or stops delivering."""

    pass


class ReadError(TailersError):
    """Raised when reading a tailed file fails. Fatal to that tailer only."""

    pass


class SourceMissing(ReadError):
    """Raised when a tailed path no longer exists."""

    pass


class RotationDetected(TailersError):
    """Raised when a tailed file was truncated or replaced under the reader."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path} {reason}")


class SinkError(TailersError):
    """Raised when the output stream cannot be written. Fatal to the process."""

    pass
