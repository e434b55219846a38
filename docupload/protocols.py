"""
Protocols (Interfaces) for Dependency Inversion.

The manager talks to the network only through ITransport, so tests can
swap in a fake that records requests.
"""
from dataclasses import dataclass
from typing import AsyncIterable, Dict, Optional, Protocol, Sequence, Union, runtime_checkable

from .models import FileReference, ResolvedFile


@dataclass(frozen=True)
class TransportResponse:
    """Status and a short body snippet of an HTTP response."""
    status_code: Optional[int]
    body: str = ""

    @property
    def is_success(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


@runtime_checkable
class ITransport(Protocol):
    """Interface for sending one encoded request body."""

    # False when the transport needs the whole body up front and cannot
    # report how much of it has been written.
    streams_body: bool

    async def post(
        self,
        url: str,
        headers: Dict[str, str],
        content: Union[bytes, AsyncIterable[bytes]],
    ) -> TransportResponse:
        """POST content to url and return the response status."""
        ...


@runtime_checkable
class IResolver(Protocol):
    """Interface for turning file references into readable files."""

    def resolve(self, ref: FileReference) -> ResolvedFile:
        ...

    def resolve_all(self, refs: Sequence[FileReference]):
        ...

    async def resolve_all_async(self, refs: Sequence[FileReference]):
        ...
