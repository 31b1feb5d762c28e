"""
Async HTTP Client for HQ Launcher

This module provides asynchronous HTTP operations using aiohttp, with session
management, streamed downloads with progress tracking, and mapping of
transport failures onto the HQ Launcher exception taxonomy.
"""

import asyncio
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, Optional

import aiofiles  # type: ignore[import-untyped]
import aiohttp
from aiohttp import ClientSession, ClientTimeout, TCPConnector

from hqlauncher.constants import (
    BYTES_PER_MEGABYTE,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_REQUEST_TIMEOUT,
    HTTP_STATUS_ERROR_THRESHOLD,
    HTTP_STATUS_RETRY_THRESHOLD,
)
from hqlauncher.exceptions import (
    DownloadError,
    FileSystemError,
    HTTPError,
    NetworkError,
)
from hqlauncher.log_utils import logger

from .interfaces import Pathish

# (downloaded bytes, total bytes or None, filename); may return an awaitable
ProgressCallback = Callable[[int, Optional[int], str], Any]


class AsyncHttpClient:
    """
    Asynchronous HTTP client using aiohttp.

    Provides async methods for:
    - Fetching JSON documents (the remote manifest, package metadata)
    - Downloading files with per-chunk progress tracking
    - Session management with connection pooling

    Example:
        async with AsyncHttpClient() as client:
            data = await client.get_json("https://example.com/manifest.json")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        connector_limit: int = 10,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Initialize the async HTTP client.

        Parameters:
            timeout (float): Total request timeout in seconds.
            connector_limit (int): Maximum total connections in the pool.
            headers (Optional[Dict[str, str]]): Extra default headers merged over the defaults.
        """
        self.timeout = ClientTimeout(total=timeout)
        self.connector_limit = max(1, int(connector_limit))
        self.extra_headers = dict(headers or {})
        self._session: Optional[ClientSession] = None
        self._closed: bool = False

    async def __aenter__(self) -> "AsyncHttpClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> ClientSession:
        """
        Ensure a session exists, creating one if needed.

        Returns:
            ClientSession: The active aiohttp session.
        """
        if self._session is None or self._session.closed:
            connector = TCPConnector(
                limit=self.connector_limit,
                enable_cleanup_closed=True,
            )
            self._session = ClientSession(
                connector=connector,
                timeout=self.timeout,
                headers=self._get_default_headers(),
            )
        return self._session

    def _get_default_headers(self) -> Dict[str, str]:
        from hqlauncher.utils import get_user_agent

        headers = {"User-Agent": get_user_agent()}
        headers.update(self.extra_headers)
        return headers

    async def close(self) -> None:
        """Close the client session and release resources."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
        self._closed = True

    @staticmethod
    def _raise_for_status(status: int, url: str) -> None:
        if status >= HTTP_STATUS_ERROR_THRESHOLD:
            raise HTTPError(
                f"HTTP error {status}",
                status_code=status,
                url=url,
                is_retryable=status >= HTTP_STATUS_RETRY_THRESHOLD,
            )

    async def get_json(self, url: str) -> Any:
        """
        Perform one GET request and decode the body as JSON.

        Returns:
            Any: The decoded JSON document.

        Raises:
            HTTPError: On a non-success status.
            NetworkError: On transport failures.
            DownloadError: When the body is not valid JSON.
        """
        session = await self._ensure_session()
        try:
            async with session.get(url) as response:
                self._raise_for_status(response.status, url)
                return await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError) as e:
            logger.error(f"Invalid JSON received from {url}: {e}")
            raise DownloadError(
                f"Invalid JSON response: {e}", url=url, is_retryable=False
            ) from e
        except aiohttp.ClientError as e:
            logger.error(f"Network error fetching {url}: {e}")
            raise NetworkError(f"Network error: {e}", url=url, is_retryable=True) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out fetching {url}")
            raise NetworkError("Request timed out", url=url, is_retryable=True) from e

    async def download_file(
        self,
        url: str,
        target_path: Pathish,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Download a file to the given path with progress tracking and atomic replacement.

        Parameters:
            url (str): Source URL to download.
            target_path (Pathish): Destination file path; parent directories will be created if missing.
            chunk_size (int): Number of bytes to read per chunk.
            progress_callback (Optional[ProgressCallback]): Invoked once per received chunk with
                (downloaded, total or None, filename). May be a coroutine function.

        Returns:
            int: Number of bytes written.

        Raises:
            HTTPError: On a non-success status.
            NetworkError: On transport failures.
            FileSystemError: When the file cannot be written.
            Temporary files are removed on error.
        """
        session = await self._ensure_session()
        target = Path(target_path)
        temp_path = target.with_name(
            f"{target.name}.tmp.{os.getpid()}.{int(time.time() * 1000)}"
        )

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            start_time = time.time()

            async with session.get(url) as response:
                self._raise_for_status(response.status, url)

                raw_content_length = response.headers.get("Content-Length")
                try:
                    total_size = int(raw_content_length) if raw_content_length else 0
                except (TypeError, ValueError):
                    total_size = 0
                downloaded = 0

                async with aiofiles.open(temp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(chunk_size):
                        await f.write(chunk)
                        downloaded += len(chunk)

                        if progress_callback:
                            result = progress_callback(
                                downloaded, total_size or None, target.name
                            )
                            if asyncio.iscoroutine(result):
                                await result

            elapsed = time.time() - start_time
            logger.debug(
                f"Downloaded {url} in {elapsed:.2f}s "
                f"({downloaded / BYTES_PER_MEGABYTE:.2f} MB)"
            )

            temp_path.replace(target)
            logger.info(f"Downloaded: {target.name} ({downloaded} bytes)")
            return downloaded

        except aiohttp.ClientError as e:
            logger.error(f"Download failed for {url}: {e}")
            _remove_quietly(temp_path)
            raise NetworkError(
                f"Download failed: {e}", url=url, is_retryable=True
            ) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Download timed out for {url}")
            _remove_quietly(temp_path)
            raise NetworkError("Download timed out", url=url, is_retryable=True) from e
        except OSError as e:
            logger.error(f"Filesystem error saving {target_path}: {e}")
            _remove_quietly(temp_path)
            raise FileSystemError(
                f"Could not write {target}", path=str(target), details=str(e)
            ) from e
        except DownloadError:
            _remove_quietly(temp_path)
            raise


def _remove_quietly(path: Path) -> None:
    if path.exists():
        try:
            path.unlink()
        except OSError:
            pass


@asynccontextmanager
async def create_async_client(
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> AsyncIterator[AsyncHttpClient]:
    """
    Provide a configured AsyncHttpClient and ensure it is closed after use.
    """
    client = AsyncHttpClient(timeout=timeout)
    try:
        yield client
    finally:
        await client.close()
