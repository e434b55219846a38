"""Shared fixtures: a recording fake transport and in-memory files."""
import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

import pytest

from docupload.models import ResolvedFile
from docupload.protocols import TransportResponse


@dataclass
class RecordedRequest:
    url: str
    headers: Dict[str, str]
    body: bytes


class FakeTransport:
    """
    ITransport double that consumes the body like a real client would.

    ``hold_after`` stops reading after that many chunks until ``release``
    is set, which lets tests cancel or time out a transfer mid-flight.
    ``hold_response`` does the same after the whole body has been read.
    """

    def __init__(
        self,
        status_code: Optional[int] = 200,
        body: str = "",
        error: Optional[Exception] = None,
        streams_body: bool = True,
        hold_after: Optional[int] = None,
        hold_response: bool = False,
    ):
        self.status_code = status_code
        self.body = body
        self.error = error
        self.streams_body = streams_body
        self.hold_after = hold_after
        self.hold_response = hold_response
        self.requests: List[RecordedRequest] = []
        self.started = asyncio.Event()
        self.holding = asyncio.Event()
        self.release = asyncio.Event()

    async def post(self, url, headers, content):
        self.started.set()
        if isinstance(content, bytes):
            data = content
        else:
            chunks = []
            async for chunk in content:
                chunks.append(chunk)
                if self.hold_after is not None and len(chunks) == self.hold_after:
                    self.holding.set()
                    await self.release.wait()
            data = b"".join(chunks)
        if self.hold_response:
            self.holding.set()
            await self.release.wait()
        self.requests.append(RecordedRequest(url, dict(headers), data))
        if self.error is not None:
            raise self.error
        return TransportResponse(status_code=self.status_code, body=self.body)


class TrackedFile(ResolvedFile):
    """In-memory ResolvedFile that remembers every handle it hands out."""

    handles: List = []

    def open(self):
        fh = super().open()
        TrackedFile.handles.append(fh)
        return fh


@pytest.fixture
def transport_factory():
    return FakeTransport


@pytest.fixture
def tracked_files():
    TrackedFile.handles = []
    files = [
        TrackedFile(name="a.pdf", mime_type="application/pdf", size_bytes=5, data=b"%PDF-"),
        TrackedFile(name="b.txt", mime_type="text/plain", size_bytes=11, data=b"hello world"),
    ]
    yield files
    TrackedFile.handles = []


@pytest.fixture
def sample_files():
    return [
        ResolvedFile(name="a.pdf", mime_type="application/pdf", size_bytes=8, data=b"%PDF-1.7"),
        ResolvedFile(name="b.txt", mime_type="text/plain", size_bytes=5, data=b"hello"),
        ResolvedFile(
            name="c.docx",
            mime_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            size_bytes=4,
            data=b"PK\x03\x04",
        ),
    ]
