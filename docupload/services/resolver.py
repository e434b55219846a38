"""
Resolver Service - Single Responsibility: turn file references into
readable files with a name, size and MIME type.
"""
import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..exceptions import UnreadableFileError
from ..models import FileReference, PathLike, ResolvedFile, ResolveFailure

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

WORD_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

MIME_TYPES = {
    "pdf": "application/pdf",
    "txt": "text/plain",
    "text": "text/plain",
    "rtf": "application/rtf",
    "doc": WORD_MIME_TYPE,
    "docx": WORD_MIME_TYPE,
    "zip": "application/zip",
}


def mime_type_for(name: Union[str, Path]) -> str:
    """Map a file name to its MIME type by extension, case-insensitively."""
    suffix = Path(name).suffix
    return MIME_TYPES.get(suffix[1:].lower(), DEFAULT_MIME_TYPE)


def as_reference(ref: Union[FileReference, PathLike]) -> FileReference:
    if isinstance(ref, FileReference):
        return ref
    return FileReference.from_path(ref)


@dataclass
class ResolutionReport:
    """Files that resolved, and the ones that were dropped."""
    resolved: List[ResolvedFile] = field(default_factory=list)
    failures: List[ResolveFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def dropped_names(self) -> List[str]:
        return [f.name for f in self.failures]


class ReferenceResolver:
    """
    Resolves FileReferences into ResolvedFiles.

    Stateless: one instance can be shared by any number of concurrent
    uploads.
    """

    def resolve(self, ref: Union[FileReference, PathLike]) -> ResolvedFile:
        """
        Resolve one reference.

        Opens the file once to prove it is readable and to read its size.
        The handle is closed before returning; uploads reopen the file.

        Raises:
            UnreadableFileError: missing file, directory, permission or I/O error
        """
        path = as_reference(ref).path.expanduser()
        if not path.name:
            raise UnreadableFileError(path, "reference has no file name")

        try:
            with open(path, "rb") as fh:
                size = os.fstat(fh.fileno()).st_size
        except FileNotFoundError:
            raise UnreadableFileError(path, "file not found") from None
        except IsADirectoryError:
            raise UnreadableFileError(path, "is a directory") from None
        except PermissionError:
            raise UnreadableFileError(path, "permission denied") from None
        except OSError as exc:
            raise UnreadableFileError(path, exc.strerror or str(exc)) from exc

        # open() succeeds on directories on some platforms
        if path.is_dir():
            raise UnreadableFileError(path, "is a directory")

        return ResolvedFile(
            name=path.name,
            mime_type=mime_type_for(path.name),
            size_bytes=size,
            path=path,
        )

    def resolve_bytes(self, name: str, data: bytes, mime_type: Optional[str] = None) -> ResolvedFile:
        """Wrap an in-memory buffer as a ResolvedFile."""
        return ResolvedFile(
            name=name,
            mime_type=mime_type or mime_type_for(name),
            size_bytes=len(data),
            data=bytes(data),
        )

    def resolve_all(self, refs: Iterable[Union[FileReference, PathLike]]) -> ResolutionReport:
        """Resolve every reference, collecting failures instead of raising."""
        report = ResolutionReport()
        for raw in refs:
            ref = as_reference(raw)
            try:
                report.resolved.append(self.resolve(ref))
            except UnreadableFileError as exc:
                logger.warning("Dropping unreadable file %s: %s", ref.path, exc.reason)
                report.failures.append(ResolveFailure(reference=ref, error=exc.reason))
        return report

    async def resolve_all_async(self, refs: Iterable[Union[FileReference, PathLike]]) -> ResolutionReport:
        """Resolve references in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.resolve_all, list(refs))
