"""
Multipart encoder - frames an UploadBatch as multipart/form-data.

The body is produced lazily so file contents are never buffered whole,
and the exact encoded length is known before the first byte is sent.
"""
import asyncio
import logging
import uuid
from typing import AsyncIterator, Callable, List, Optional

from ..exceptions import UnreadableFileError
from ..models import ResolvedFile, UploadBatch

logger = logging.getLogger(__name__)

# Part of the wire contract with the server.
FIELD_NAME = "files[]"

CRLF = b"\r\n"


def new_boundary() -> str:
    return f"Boundary-{uuid.uuid4().hex}"


def _quote_filename(name: str) -> str:
    # Same escaping browsers apply to form-data file names.
    return name.replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


class MultipartEncoder:
    """
    Encodes one batch with one boundary.

    Usage:
        encoder = MultipartEncoder(batch)
        headers = {"Content-Type": encoder.content_type,
                   "Content-Length": str(encoder.content_length)}
        async for chunk in encoder.stream(on_sent=print):
            ...
    """

    def __init__(
        self,
        batch: UploadBatch,
        boundary: Optional[str] = None,
        chunk_size: int = 64 * 1024,
    ):
        self._batch = UploadBatch.of(batch)
        self._boundary = boundary or new_boundary()
        self._chunk_size = chunk_size
        self._headers: List[bytes] = [self.part_header(f) for f in self._batch]

    @property
    def boundary(self) -> str:
        return self._boundary

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self._boundary}"

    @property
    def closing(self) -> bytes:
        return f"--{self._boundary}--".encode("ascii") + CRLF

    @property
    def content_length(self) -> int:
        """Exact number of bytes ``stream`` yields."""
        length = len(self.closing)
        for header, resolved in zip(self._headers, self._batch):
            length += len(header) + resolved.size_bytes + len(CRLF)
        return length

    def part_header(self, resolved: ResolvedFile) -> bytes:
        lines = [
            f"--{self._boundary}",
            f'Content-Disposition: form-data; name="{FIELD_NAME}"; '
            f'filename="{_quote_filename(resolved.name)}"',
            f"Content-Type: {resolved.mime_type}",
            "",
            "",
        ]
        return "\r\n".join(lines).encode("utf-8")

    async def stream(self, on_sent: Optional[Callable[[int], None]] = None) -> AsyncIterator[bytes]:
        """
        Yield the encoded body.

        ``on_sent`` receives the cumulative byte count once the consumer
        asks for the next chunk, i.e. after the previous one was written.
        Close the generator (``aclose``) to release file handles early.
        """
        sent = 0
        chunks = self._chunks()
        try:
            async for chunk in chunks:
                yield chunk
                sent += len(chunk)
                if on_sent is not None:
                    on_sent(sent)
        finally:
            await chunks.aclose()

    async def read_all(self) -> bytes:
        """Encode the whole body in memory."""
        parts = []
        chunks = self._chunks()
        try:
            async for chunk in chunks:
                parts.append(chunk)
        finally:
            await chunks.aclose()
        return b"".join(parts)

    async def _chunks(self) -> AsyncIterator[bytes]:
        loop = asyncio.get_running_loop()
        for header, resolved in zip(self._headers, self._batch):
            yield header
            try:
                fh = resolved.open()
            except OSError as exc:
                raise UnreadableFileError(resolved.path or resolved.name, exc.strerror or str(exc)) from exc
            with fh:
                remaining = resolved.size_bytes
                while remaining > 0:
                    try:
                        data = await loop.run_in_executor(
                            None, fh.read, min(self._chunk_size, remaining)
                        )
                    except OSError as exc:
                        raise UnreadableFileError(resolved.path or resolved.name, exc.strerror or str(exc)) from exc
                    if not data:
                        raise UnreadableFileError(
                            resolved.path or resolved.name,
                            f"file shrank by {remaining} bytes after it was resolved",
                        )
                    remaining -= len(data)
                    yield data
            yield CRLF
        yield self.closing
        logger.debug("Encoded %d part(s) with boundary %s", len(self._batch), self._boundary)
