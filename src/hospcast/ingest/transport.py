"""Asynchronous file transports for the forecast data tree."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Optional, Protocol

import httpx

from hospcast.errors import ContractViolation

logger = logging.getLogger(__name__)


class FetchFailed(ContractViolation):
    """A single file could not be read from the transport."""


@dataclass(frozen=True)
class FetchResponse:
    """Status and body of a single fetched file."""

    path: str
    status: int
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(Protocol):
    async def fetch(self, path: str) -> FetchResponse:
        """Return the response for ``path``; raise ``FetchFailed`` on I/O errors."""


class LocalFileTransport:
    """Serve relative paths from a directory, answering 404 for missing files."""

    def __init__(self, root: str | Path = ".") -> None:
        self.root = Path(root)

    def _read(self, path: str) -> FetchResponse:
        target = self.root / path
        if not target.is_file():
            return FetchResponse(path=path, status=404)
        return FetchResponse(
            path=path, status=200, text=target.read_text(encoding="utf-8")
        )

    async def fetch(self, path: str) -> FetchResponse:
        try:
            return await asyncio.to_thread(self._read, path)
        except (OSError, UnicodeDecodeError) as exc:
            raise FetchFailed(
                "file_read_failed", key=path, detail=str(exc)
            ) from exc


class HttpTransport:
    """Fetch relative paths from a static file server with ``httpx``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def fetch(self, path: str) -> FetchResponse:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise FetchFailed("http_error", key=url, detail=str(exc)) from exc
        return FetchResponse(path=path, status=response.status_code, text=response.text)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


async def fetch_text(transport: Transport, path: str) -> Optional[str]:
    """Fetch ``path`` and return its body, or ``None`` when it is absent or failed.

    Missing files and any exception raised by the transport are logged as
    warnings; nothing is retried.
    """

    try:
        response = await transport.fetch(path)
    except FetchFailed as exc:
        logger.warning("failed to load %s: %s", path, exc.context.detail)
        return None
    except Exception as exc:
        # Any transport error drops only this file.
        logger.warning("failed to load %s: %r", path, exc)
        return None
    if not response.ok:
        logger.warning("failed to load %s (%d)", path, response.status)
        return None
    return response.text


async def fetch_required_text(transport: Transport, path: str) -> str:
    """Fetch ``path`` and raise ``FetchFailed`` unless it returns 2xx."""

    response = await transport.fetch(path)
    if not response.ok:
        raise FetchFailed(
            "http_status", key=path, detail=f"status_code={response.status}"
        )
    return response.text
