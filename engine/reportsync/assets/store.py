"""
reportsync — Asset store client.

One request per asset:
  POST {endpoint}
    Content-Length, Content-Type, Content-Disposition: inline; filename="..."
    Content-Address-Seed: <session>:<path>   (only with a session id)
  body: raw bytes
  response: the durable URI as plain text

The seed lets the store deduplicate repeated uploads of the same logical file
within one session.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import IO, AsyncIterator

import httpx

from reportsync.assets.mime import MimeSniffer
from reportsync.errors import AssetNotFoundError, AssetStoreEmptyResponseError, AssetStoreError
from reportsync.models import UploadResult
from reportsync.utils.logging import logger

CHUNK_SIZE = 64 * 1024


async def _read_chunks(fh: IO[bytes]) -> AsyncIterator[bytes]:
    while True:
        chunk = await asyncio.to_thread(fh.read, CHUNK_SIZE)
        if not chunk:
            break
        yield chunk


class AssetStoreClient:
    """Thin async wrapper around the asset store upload endpoint."""

    def __init__(
        self,
        endpoint: str,
        sniffer: MimeSniffer | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self.sniffer = sniffer or MimeSniffer()
        self.timeout = timeout
        self.transport = transport

    def _headers(self, size: int, mime: str, filename: str, seed: str | None) -> dict[str, str]:
        h = {
            "Content-Length": str(size),
            "Content-Type": mime,
            "Content-Disposition": f'inline; filename="{filename}"',
        }
        if seed:
            h["Content-Address-Seed"] = seed
        return h

    async def upload(
        self,
        path: str | Path | None = None,
        buffer: bytes | None = None,
        mime: str | None = None,
        session: str | None = None,
    ) -> UploadResult:
        """Upload a file or buffer and return the stored URI with its MIME type and size."""
        if path is not None:
            path = Path(path)
            try:
                size = path.stat().st_size
            except FileNotFoundError:
                raise AssetNotFoundError(str(path))
        elif buffer is not None:
            size = len(buffer)
        else:
            raise ValueError("upload needs a path or a buffer")

        if not mime:
            mime = await asyncio.to_thread(self.sniffer.detect, path=path, buffer=buffer)

        filename = path.name if path is not None else f"file.{mime.split('/')[1]}"
        seed = f"{session}:{path}" if session else None
        headers = self._headers(size, mime, filename, seed)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            if path is not None:
                with path.open("rb") as fh:
                    resp = await client.post(self.endpoint, headers=headers, content=_read_chunks(fh))
            else:
                resp = await client.post(self.endpoint, headers=headers, content=buffer)

        if not resp.is_success:
            logger.error("  Asset backend returned %d for %s: %s", resp.status_code, filename, resp.text)
            raise AssetStoreError(resp.status_code, resp.text)

        uri = resp.text.strip()
        if not uri:
            raise AssetStoreEmptyResponseError(resp.status_code)

        logger.info("  Uploaded %s (%d bytes, %s) → %s", filename, size, mime, uri)
        return UploadResult(uri=uri, mime=mime, size=size)
