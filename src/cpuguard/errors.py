"""Errors raised by process providers."""


class ProcessError(Exception):
    """Base class for every provider failure."""


class EnumerationError(ProcessError):
    """The process table could not be listed."""


class PidError(ProcessError):
    """A failure concerning one specific process."""

    def __init__(self, message: str, pid: int | None = None) -> None:
        super().__init__(message)
        self.pid = pid


class AccessDenied(PidError):
    """No permission level was granted for the requested operation."""


class ProcessNotFound(PidError):
    """The process exited before it could be queried or terminated."""


class QueryError(PidError):
    """Reading CPU times failed for another reason."""


class TerminationError(PidError):
    """Terminating the process failed for another reason."""
