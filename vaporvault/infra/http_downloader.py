"""
Streams files over HTTP(S) to disk.
"""

import asyncio
import logging
import os
from collections.abc import Callable

import aiofiles
import aiohttp

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class HttpDownloader:
    """
    A low-level file downloader backed by a lazily created aiohttp session.

    No retries are attempted; a failed request propagates to the caller.
    """

    CHUNK_SIZE = 131072  # 128 KB

    def __init__(self, session: aiohttp.ClientSession | None = None):
        self._session = session
        self._owns_session = session is None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session and not self._session.closed:
                return self._session

            timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
            log.debug("Created HTTP session for downloads")
        return self._session

    async def download_file(
        self,
        url: str,
        destination_path: str,
        progress: ProgressCallback | None = None,
    ) -> None:
        """
        Downloads ``url`` to ``destination_path``, overwriting any existing file.

        Args:
            url: The URL to fetch.
            destination_path: Where to write the response body.
            progress: Optional callback receiving (bytes_downloaded, total_bytes);
                total is 0 when the server does not send a Content-Length.
        """
        session = await self._get_session()
        log.debug(f"Downloading '{url}' to '{destination_path}'")

        async with session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            total_size = int(response.headers.get("Content-Length", 0))

            async with aiofiles.open(destination_path, "wb") as f:
                bytes_downloaded = 0
                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    await f.write(chunk)
                    bytes_downloaded += len(chunk)
                    if progress:
                        progress(bytes_downloaded, total_size)

        log.debug(
            f"Downloaded {bytes_downloaded} bytes to "
            f"'{os.path.basename(destination_path)}'"
        )

    async def close(self) -> None:
        """Closes the underlying session if this downloader created it."""
        async with self._session_lock:
            if self._owns_session and self._session and not self._session.closed:
                await self._session.close()
                log.debug("HTTP download session closed.")
            self._session = None

    async def __aenter__(self) -> "HttpDownloader":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
