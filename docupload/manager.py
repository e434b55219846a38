"""Batch upload manager - one multipart POST per batch with progress."""
import asyncio
import logging
from typing import Callable, Optional, Sequence, Set, Union

import httpx

from .exceptions import UploadError
from .models import ErrorKind, ResolvedFile, UploadBatch, UploadConfig, UploadOutcome
from .protocols import ITransport, TransportResponse
from .services.multipart import MultipartEncoder
from .services.transport import HTTPTransport

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
CompleteCallback = Callable[[UploadOutcome], None]


def _describe_exception(exc: BaseException) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"


def validate_endpoint(endpoint: Optional[str]) -> Optional[str]:
    """Return why endpoint is unusable, or None if it is an absolute http(s) URL."""
    if not endpoint:
        return "endpoint is empty"
    try:
        url = httpx.URL(endpoint)
    except (httpx.InvalidURL, TypeError) as exc:
        return f"malformed endpoint {endpoint!r}: {exc}"
    if url.scheme not in ("http", "https") or not url.host:
        return f"endpoint must be an absolute http(s) URL: {endpoint!r}"
    return None


class _Delivery:
    """
    Callback gate for one upload call.

    Progress is clamped to [0, 1] and only forwarded when it grows. The
    completion callback fires exactly once, after which progress is muted.
    A cancel request turns whatever outcome arrives next into CANCELLED.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_progress: Optional[ProgressCallback],
        on_complete: Optional[CompleteCallback],
    ):
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._last: Optional[float] = None
        self._muted = False
        self.cancel_requested = False
        self.outcome: Optional[UploadOutcome] = None
        self.future: "asyncio.Future[UploadOutcome]" = loop.create_future()

    def progress(self, fraction: float) -> None:
        if self._muted:
            return
        fraction = min(max(float(fraction), 0.0), 1.0)
        if self._last is not None and fraction <= self._last:
            return
        self._last = fraction
        if self._on_progress is not None:
            try:
                self._on_progress(fraction)
            except Exception as e:
                logger.error("Error in progress callback: %s", e, exc_info=True)

    def mute(self) -> None:
        self._muted = True

    def complete(self, outcome: UploadOutcome) -> bool:
        if self.outcome is not None:
            return False
        if self.cancel_requested and not outcome.cancelled:
            outcome = UploadOutcome.fail(ErrorKind.CANCELLED, "cancelled")
        self._muted = True
        self.outcome = outcome
        if not self.future.done():
            self.future.set_result(outcome)
        if self._on_complete is not None:
            try:
                self._on_complete(outcome)
            except Exception as e:
                logger.error("Error in completion callback: %s", e, exc_info=True)
        return True

    def task_done(self, task: asyncio.Task) -> None:
        """Fallback for tasks that ended without reporting (e.g. cancelled before start)."""
        if task.cancelled():
            self.complete(UploadOutcome.fail(ErrorKind.CANCELLED, "cancelled"))
            return
        exc = task.exception()
        if exc is not None:
            self.complete(UploadOutcome.fail(ErrorKind.NETWORK_ERROR, _describe_exception(exc)))


class CancelHandle:
    """Returned by ``BatchUploadManager.upload`` to cancel or await a call."""

    def __init__(self, delivery: _Delivery):
        self._delivery = delivery
        self._task: Optional[asyncio.Task] = None

    def _attach(self, task: asyncio.Task) -> None:
        self._task = task

    def cancel(self) -> bool:
        """
        Abort the transfer.

        Returns False (and does nothing) if the call already completed.
        """
        if self._delivery.outcome is not None:
            return False
        self._delivery.cancel_requested = True
        self._delivery.mute()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    @property
    def done(self) -> bool:
        return self._delivery.outcome is not None

    @property
    def cancelled(self) -> bool:
        outcome = self._delivery.outcome
        return outcome is not None and outcome.cancelled

    @property
    def outcome(self) -> Optional[UploadOutcome]:
        return self._delivery.outcome

    async def wait(self) -> UploadOutcome:
        """Wait for the terminal outcome."""
        return await asyncio.shield(self._delivery.future)


class BatchUploadManager:
    """
    Uploads batches of resolved files as one multipart/form-data POST.

    Usage:
        config = UploadConfig("https://api.example.com/upload", timeout=30)
        async with BatchUploadManager(config) as manager:
            handle = manager.upload(batch, on_progress=bar.update, on_complete=done)
            ...
            outcome = await handle.wait()

    Every call is independent: one task, one request, one boundary, no
    retry. Callbacks run on the event loop that called ``upload``.
    """

    def __init__(self, config: UploadConfig, transport: Optional[ITransport] = None):
        """
        Initialize manager.

        Args:
            config: Endpoint, credential and timeout
            transport: Pre-built transport; an HTTPTransport is created
                in ``__aenter__`` when omitted
        """
        self._config = config
        self._transport = transport
        self._owned_transport: Optional[HTTPTransport] = None
        self._tasks: Set[asyncio.Task] = set()

    async def __aenter__(self):
        if self._transport is None:
            self._owned_transport = HTTPTransport(timeout=self._config.timeout)
            await self._owned_transport.__aenter__()
            self._transport = self._owned_transport
        return self

    async def __aexit__(self, *args):
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self._owned_transport is not None:
            await self._owned_transport.__aexit__(*args)
            self._owned_transport = None
            self._transport = None

    @property
    def config(self) -> UploadConfig:
        return self._config

    def upload(
        self,
        batch: Union[UploadBatch, Sequence[ResolvedFile], None],
        endpoint: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> CancelHandle:
        """
        Start uploading ``batch`` and return immediately.

        Invalid input (empty batch, malformed endpoint) completes
        synchronously with INVALID_INPUT and touches neither the network
        nor ``on_progress``.
        """
        if self._transport is None:
            raise RuntimeError("BatchUploadManager not initialized. Use 'async with' context.")

        loop = asyncio.get_running_loop()
        delivery = _Delivery(loop, on_progress, on_complete)
        handle = CancelHandle(delivery)

        batch = UploadBatch.of(batch or ())
        url = endpoint or self._config.endpoint
        error = validate_endpoint(url)
        if error is None and len(batch) == 0:
            error = "batch is empty"
        if error is not None:
            logger.warning("Rejected upload: %s", error)
            delivery.complete(UploadOutcome.fail(ErrorKind.INVALID_INPUT, error))
            return handle

        encoder = MultipartEncoder(batch, chunk_size=self._config.chunk_size)
        headers = dict(self._config.headers())
        headers["Content-Type"] = encoder.content_type
        headers["Content-Length"] = str(encoder.content_length)

        logger.debug(
            "Upload started: files=%d bytes=%d endpoint=%s",
            len(batch),
            encoder.content_length,
            url,
        )

        task = loop.create_task(self._run(encoder, url, headers, delivery))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(delivery.task_done)
        handle._attach(task)
        return handle

    async def upload_async(
        self,
        batch: Union[UploadBatch, Sequence[ResolvedFile], None],
        endpoint: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadOutcome:
        """Upload and await the outcome. Cancelling the caller cancels the transfer."""
        handle = self.upload(batch, endpoint, on_progress)
        try:
            return await handle.wait()
        except asyncio.CancelledError:
            handle.cancel()
            raise

    async def _run(self, encoder: MultipartEncoder, url: str, headers, delivery: _Delivery) -> None:
        transport = self._transport
        total = encoder.content_length
        stream = None

        def on_sent(sent: int) -> None:
            # 1.0 waits for the response
            if sent < total:
                delivery.progress(sent / total)

        try:
            if transport.streams_body:
                stream = encoder.stream(on_sent=on_sent)
                content = stream
            else:
                content = await encoder.read_all()
            delivery.progress(0.0)
            response = await asyncio.wait_for(
                transport.post(url, headers, content),
                timeout=self._config.timeout,
            )
        except asyncio.CancelledError:
            delivery.complete(UploadOutcome.fail(ErrorKind.CANCELLED, "cancelled"))
            raise
        except asyncio.TimeoutError:
            logger.warning("Upload to %s timed out after %ss", url, self._config.timeout)
            delivery.complete(
                UploadOutcome.fail(
                    ErrorKind.CANCELLED, f"timed out after {self._config.timeout}s"
                )
            )
        except UploadError as exc:
            logger.warning("Upload to %s failed (%s): %s", url, exc.kind.value, exc)
            delivery.complete(UploadOutcome.fail(exc.kind, _describe_exception(exc)))
        except Exception as exc:
            error_msg = _describe_exception(exc)
            logger.error("Unexpected upload failure for %s: %s", url, error_msg, exc_info=True)
            delivery.complete(UploadOutcome.fail(ErrorKind.NETWORK_ERROR, error_msg))
        else:
            delivery.progress(1.0)
            delivery.complete(self._outcome_for(url, response))
        finally:
            if stream is not None:
                await stream.aclose()

    @staticmethod
    def _outcome_for(url: str, response: TransportResponse) -> UploadOutcome:
        if response.status_code is None:
            logger.warning("Upload to %s returned no status", url)
            return UploadOutcome.fail(ErrorKind.SERVER_ERROR, "no status", body=response.body)
        if response.is_success:
            logger.info("Upload to %s succeeded (%s)", url, response.status_code)
            return UploadOutcome.ok(response.status_code)
        logger.warning("Upload to %s rejected with %s", url, response.status_code)
        return UploadOutcome.fail(
            ErrorKind.SERVER_ERROR,
            str(response.status_code),
            status_code=response.status_code,
            body=response.body,
        )
