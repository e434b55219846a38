"""Upload orchestrator - pending files, resolution and batch commit."""
import asyncio
import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Tuple, Union

from .manager import BatchUploadManager, CancelHandle
from .models import (
    FileReference,
    PathLike,
    ResolveFailure,
    UploadBatch,
    UploadConfig,
    UploadOutcome,
)
from .protocols import IResolver, ITransport
from .services.resolver import ReferenceResolver, ResolutionReport
from .utils.events import EventEmitter

logger = logging.getLogger(__name__)

RefLike = Union[FileReference, PathLike]


def to_reference(ref: RefLike) -> FileReference:
    """Accept references, paths, or ``file://`` URIs from drop events."""
    if isinstance(ref, FileReference):
        return ref
    if isinstance(ref, str) and ref.startswith("file://"):
        return FileReference.from_uri(ref)
    return FileReference.from_path(ref)


class UploadOrchestrator:
    """
    Coordinates the pending file set, the resolver and the upload manager.

    Follows:
    - Dependency Injection (resolver and transport injected)
    - Single Responsibility (encoding and transport live in the manager)

    Usage:
        async with UploadOrchestrator(UploadConfig(endpoint)) as uploader:
            uploader.add(["terms.pdf", "notes.txt"])
            uploader.on_progress(lambda p: print(f"{p:.0%}"))
            uploader.on_partial_failure(lambda failures: ...)
            outcome = await uploader.upload_files_async()
    """

    def __init__(
        self,
        config: UploadConfig,
        transport: Optional[ITransport] = None,
        resolver: Optional[IResolver] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Upload configuration
            transport: Optional transport passed to the manager
            resolver: Reference resolver (defaults to ReferenceResolver)
        """
        self._config = config
        self._resolver = resolver or ReferenceResolver()
        self._manager = BatchUploadManager(config, transport)
        self._events = EventEmitter()
        self._pending: List[FileReference] = []

    async def __aenter__(self):
        await self._manager.__aenter__()
        return self

    async def __aexit__(self, *args):
        await self._manager.__aexit__(*args)

    # Pending set
    @property
    def pending(self) -> Tuple[FileReference, ...]:
        return tuple(self._pending)

    def add(self, refs: Iterable[RefLike]) -> List[FileReference]:
        """Add picked or dropped files to the pending set."""
        added = [to_reference(ref) for ref in refs]
        self._pending.extend(added)
        return added

    def remove(self, ref_id: str) -> bool:
        """Remove one pending file by id."""
        for idx, ref in enumerate(self._pending):
            if ref.id == ref_id:
                del self._pending[idx]
                return True
        return False

    def clear(self) -> None:
        self._pending.clear()

    # Event subscription methods
    def on_progress(self, callback: Callable[[float], None]):
        """Called with batch progress in [0.0, 1.0]."""
        self._events.on("progress", callback)

    def on_complete(self, callback: Callable[[UploadOutcome], None]):
        """Called once with the terminal outcome of each committed batch."""
        self._events.on("complete", callback)

    def on_partial_failure(self, callback: Callable[[List[ResolveFailure]], None]):
        """Called before upload when some files could not be read."""
        self._events.on("partial_failure", callback)

    # Commit
    def upload_files(self, refs: Optional[Iterable[RefLike]] = None) -> CancelHandle:
        """
        Resolve and upload ``refs`` (default: the pending set) as one batch.

        Unreadable files are dropped and reported through ``partial_failure``.
        If nothing readable remains, the batch fails with INVALID_INPUT
        without touching the network. Resolution runs on the calling
        thread; use ``upload_files_async`` to keep it off the event loop.
        """
        submitted = self._submitted(refs)
        return self._commit(submitted, self._resolver.resolve_all(submitted))

    async def upload_files_async(self, refs: Optional[Iterable[RefLike]] = None) -> UploadOutcome:
        """
        Upload and await the terminal outcome, as delivered to ``on_complete``.

        Files are resolved in the default executor before the batch starts.
        """
        submitted = self._submitted(refs)
        report = await self._resolver.resolve_all_async(submitted)
        result: "asyncio.Future[UploadOutcome]" = asyncio.get_running_loop().create_future()

        def settle(outcome: UploadOutcome) -> None:
            if not result.done():
                result.set_result(outcome)

        handle = self._commit(submitted, report, settle)
        try:
            return await asyncio.shield(result)
        except asyncio.CancelledError:
            handle.cancel()
            raise

    def _submitted(self, refs: Optional[Iterable[RefLike]]) -> List[FileReference]:
        if refs is None:
            return list(self._pending)
        return [to_reference(r) for r in refs]

    def _commit(
        self,
        submitted: List[FileReference],
        report: ResolutionReport,
        settle: Optional[Callable[[UploadOutcome], None]] = None,
    ) -> CancelHandle:
        dropped = report.dropped_names

        if report.has_failures:
            logger.warning(
                "Dropped %d of %d file(s): %s",
                len(report.failures),
                len(submitted),
                ", ".join(dropped),
            )
            self._events.emit("partial_failure", list(report.failures))

        submitted_ids = {ref.id for ref in submitted}
        nothing_readable = not report.resolved

        def on_complete(outcome: UploadOutcome) -> None:
            if nothing_readable and submitted:
                outcome = replace(
                    outcome,
                    detail=f"no readable files ({len(dropped)} dropped)",
                )
            if dropped:
                outcome = outcome.with_dropped(dropped)
            if outcome.success:
                self._pending = [r for r in self._pending if r.id not in submitted_ids]
            if settle is not None:
                settle(outcome)
            self._events.emit("complete", outcome)

        return self._manager.upload(
            UploadBatch.of(report.resolved),
            on_progress=lambda fraction: self._events.emit("progress", fraction),
            on_complete=on_complete,
        )
