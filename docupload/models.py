"""
Models for docupload.

Immutable dataclasses describing references, resolved files, batches and
outcomes.
"""
import io
import os
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Sequence, Tuple, Union
from urllib.parse import unquote, urlparse


PathLike = Union[str, os.PathLike]


class ErrorKind(Enum):
    """Failure classes reported through UploadOutcome."""
    INVALID_INPUT = "invalid_input"
    UNREADABLE = "unreadable"
    NETWORK_ERROR = "network_error"
    SERVER_ERROR = "server_error"
    CANCELLED = "cancelled"


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class FileReference:
    """Opaque handle to a local file picked or dropped by the user."""
    path: Path
    id: str = field(default_factory=_new_id)

    @classmethod
    def from_path(cls, path: PathLike) -> "FileReference":
        return cls(path=Path(path))

    @classmethod
    def from_uri(cls, uri: str) -> "FileReference":
        """Build a reference from a ``file://`` URI (drag-and-drop payloads)."""
        parsed = urlparse(uri)
        if parsed.scheme != "file":
            raise ValueError(f"Not a file URI: {uri}")
        path = unquote(parsed.path)
        if parsed.netloc and parsed.netloc != "localhost":
            path = f"//{parsed.netloc}{path}"
        return cls(path=Path(path))

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class ResolvedFile:
    """
    A readable file ready to be encoded into a batch.

    Backed either by a path on disk or by an in-memory buffer. Every call
    to ``open`` returns a fresh handle; the caller owns and closes it.
    """
    name: str
    mime_type: str
    size_bytes: int
    path: Optional[Path] = None
    data: Optional[bytes] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("ResolvedFile.name must not be empty")
        if not self.mime_type:
            raise ValueError("ResolvedFile.mime_type must not be empty")
        if (self.path is None) == (self.data is None):
            raise ValueError("ResolvedFile needs exactly one of path or data")
        if self.size_bytes < 0:
            raise ValueError("ResolvedFile.size_bytes must not be negative")

    def open(self) -> BinaryIO:
        if self.data is not None:
            return io.BytesIO(self.data)
        return open(self.path, "rb")


@dataclass(frozen=True)
class UploadBatch:
    """Ordered files submitted together in one upload call."""
    files: Tuple[ResolvedFile, ...] = ()

    @classmethod
    def of(cls, files: Union["UploadBatch", Sequence[ResolvedFile]]) -> "UploadBatch":
        if isinstance(files, UploadBatch):
            return files
        return cls(files=tuple(files))

    @property
    def total_bytes(self) -> int:
        return sum(f.size_bytes for f in self.files)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.files)

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self) -> Iterator[ResolvedFile]:
        return iter(self.files)


@dataclass(frozen=True)
class ResolveFailure:
    """A file dropped from a batch because it could not be resolved."""
    reference: FileReference
    error: str

    @property
    def name(self) -> str:
        return self.reference.name or str(self.reference.path)


@dataclass(frozen=True)
class UploadOutcome:
    """Immutable terminal result of one upload call."""
    success: bool
    error_kind: Optional[ErrorKind] = None
    detail: Optional[str] = None
    status_code: Optional[int] = None
    body: Optional[str] = None
    dropped: Tuple[str, ...] = ()

    @property
    def cancelled(self) -> bool:
        return self.error_kind == ErrorKind.CANCELLED

    @property
    def partial(self) -> bool:
        """Upload succeeded but some picked files were dropped."""
        return self.success and bool(self.dropped)

    @classmethod
    def ok(cls, status_code: Optional[int] = None):
        return cls(success=True, status_code=status_code)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        detail: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        return cls(
            success=False,
            error_kind=kind,
            detail=detail,
            status_code=status_code,
            body=body,
        )

    def with_dropped(self, names: Sequence[str]) -> "UploadOutcome":
        return replace(self, dropped=tuple(names))


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for a BatchUploadManager."""
    endpoint: str
    authorization: Optional[str] = None
    timeout: Optional[float] = 60.0  # seconds, None disables
    chunk_size: int = 64 * 1024

    def __post_init__(self):
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive or None")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

    def headers(self) -> dict:
        """Static headers attached to every request."""
        if self.authorization:
            return {"Authorization": self.authorization}
        return {}
