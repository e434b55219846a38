"""Exceptions raised inside the upload pipeline.

Each exception carries the ErrorKind it maps to, so the manager can turn
it into an UploadOutcome without a type switch.
"""
from pathlib import Path
from typing import Optional, Union

from .models import ErrorKind


class UploadError(Exception):
    """Base class for upload pipeline errors."""

    kind: ErrorKind = ErrorKind.NETWORK_ERROR


class UnreadableFileError(UploadError):
    """Raised when a file reference cannot be opened or read."""

    kind = ErrorKind.UNREADABLE

    def __init__(self, path: Union[str, Path, None], reason: str):
        self.path = Path(path) if path is not None else None
        self.reason = reason
        name = self.path.name if self.path is not None else "<buffer>"
        super().__init__(f"{name}: {reason}")


class TransportError(UploadError):
    """Connection, DNS or TLS failure."""

    kind = ErrorKind.NETWORK_ERROR


class TransportTimeout(UploadError):
    """The transport gave up waiting on the remote end."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "timed out", timeout: Optional[float] = None):
        self.timeout = timeout
        super().__init__(message)
