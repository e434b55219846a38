"""HTTP adapter for batch upload requests."""
from __future__ import annotations

import logging
from typing import AsyncIterable, Dict, Optional, Union

import httpx

from ..exceptions import TransportError, TransportTimeout
from ..protocols import TransportResponse

logger = logging.getLogger(__name__)

BODY_SNIPPET_BYTES = 512


class HTTPTransport:
    """
    HTTP client adapter for multipart uploads.

    Implements ITransport protocol. Makes exactly one attempt per call;
    retry policy belongs to the caller.
    """

    streams_body = True

    def __init__(
        self,
        timeout: Optional[float] = 60,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, *args):
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def post(
        self,
        url: str,
        headers: Dict[str, str],
        content: Union[bytes, AsyncIterable[bytes]],
    ) -> TransportResponse:
        if not self._client:
            raise RuntimeError("HTTPTransport not initialized. Use 'async with' context.")

        try:
            response = await self._client.post(url, content=content, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportTimeout(
                f"timed out after {self._timeout}s ({type(exc).__name__})",
                timeout=self._timeout,
            ) from exc
        except httpx.TransportError as exc:
            message = str(exc).strip() or type(exc).__name__
            raise TransportError(message) from exc

        snippet = response.content[:BODY_SNIPPET_BYTES].decode("utf-8", errors="replace")
        logger.debug("POST %s -> %s", url, response.status_code)
        return TransportResponse(status_code=response.status_code, body=snippet)
