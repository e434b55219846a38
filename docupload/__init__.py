"""
docupload - batch document upload over multipart/form-data.

Picked or dropped files are resolved, framed into one multipart POST and
sent to a configured endpoint, with byte-accurate progress and exactly one
terminal outcome per batch.

Usage:
    from docupload import UploadOrchestrator, UploadConfig

    config = UploadConfig("https://api.example.com/upload", timeout=30)
    async with UploadOrchestrator(config) as uploader:
        uploader.add(["terms.pdf", "privacy.docx"])
        uploader.on_progress(lambda p: print(f"{p:.0%}"))
        outcome = await uploader.upload_files_async()

    # Lower level: resolved batch straight to the manager
    async with BatchUploadManager(config) as manager:
        batch = UploadBatch.of([ReferenceResolver().resolve("terms.pdf")])
        handle = manager.upload(batch, on_progress=..., on_complete=...)
        handle.cancel()
"""
from .exceptions import TransportError, TransportTimeout, UnreadableFileError, UploadError
from .manager import BatchUploadManager, CancelHandle
from .models import (
    ErrorKind,
    FileReference,
    ResolvedFile,
    ResolveFailure,
    UploadBatch,
    UploadConfig,
    UploadOutcome,
)
from .orchestrator import UploadOrchestrator
from .services import HTTPTransport, MultipartEncoder, ReferenceResolver, mime_type_for

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "BatchUploadManager",
    "CancelHandle",
    # Models
    "ErrorKind",
    "FileReference",
    "ResolvedFile",
    "ResolveFailure",
    "UploadBatch",
    "UploadConfig",
    "UploadOutcome",
    # Services
    "HTTPTransport",
    "MultipartEncoder",
    "ReferenceResolver",
    "mime_type_for",
    # Errors
    "UploadError",
    "UnreadableFileError",
    "TransportError",
    "TransportTimeout",
]
