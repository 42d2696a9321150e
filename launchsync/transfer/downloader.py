"""
Handles the low-level downloading of release files over HTTP, hashing the bytes
as they stream to disk so the caller can verify them before trusting the file.
"""

import asyncio
import hashlib
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass

import aiofiles
import aiohttp

log = logging.getLogger(__name__)


def create_session(
    max_workers: int = 4,
    ignore_ssl_validation: bool = False,
    total_timeout: float | None = None,
) -> aiohttp.ClientSession:
    """
    Creates an aiohttp ClientSession configured for release downloads.

    Args:
        max_workers: Maximum concurrent connections to the release host.
        ignore_ssl_validation: Disables TLS certificate validation when True.
        total_timeout: Overall request timeout in seconds (None = unlimited).
    """
    if ignore_ssl_validation:
        log.warning(
            "[yellow]TLS certificate validation is DISABLED for release "
            "downloads.[/yellow]"
        )
    connector = aiohttp.TCPConnector(
        limit=max_workers * 2,
        limit_per_host=max_workers,
        ttl_dns_cache=300,
        enable_cleanup_closed=True,
        ssl=False if ignore_ssl_validation else None,
    )
    timeout = aiohttp.ClientTimeout(total=total_timeout, sock_connect=15, sock_read=60)
    return aiohttp.ClientSession(connector=connector, timeout=timeout)


@dataclass(frozen=True)
class DownloadedFile:
    """What was written to disk by a single download."""

    path: str
    size: int
    sha256: str


def _is_retryable(error: BaseException) -> bool:
    """Client errors (4xx) will not fix themselves; everything else may."""
    if isinstance(error, aiohttp.ClientResponseError):
        return error.status >= 500 or error.status == 429
    return isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError))


class Downloader:
    """
    A streaming file downloader with retry logic and exponential backoff.

    The downloader owns one ClientSession for its lifetime; use it as an async
    context manager.
    """

    CHUNK_SIZE = 65536

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        max_workers: int = 4,
        ignore_ssl_validation: bool = False,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_workers = max_workers
        self.ignore_ssl_validation = ignore_ssl_validation
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "Downloader":
        self._session = create_session(self.max_workers, self.ignore_ssl_validation)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            log.debug("Downloader session closed.")
        self._session = None

    async def download_file(
        self,
        url: str,
        destination_path: str,
        on_chunk: Callable[[int], None] | None = None,
        on_restart: Callable[[], None] | None = None,
    ) -> DownloadedFile:
        """
        Streams `url` into `destination_path`, hashing the content as it goes.

        A failed attempt truncates the destination and starts over, after
        `on_restart` lets the caller discard progress reported for it.

        Args:
            url: The file to fetch.
            destination_path: Where to write the bytes (typically a temp file).
            on_chunk: Called with the size of every chunk written.
            on_restart: Called before a retry attempt.

        Returns:
            The size and SHA-256 digest of what was written.

        Raises:
            aiohttp.ClientError, asyncio.TimeoutError: After the final attempt.
        """
        if self._session is None or self._session.closed:
            raise RuntimeError("Downloader must be used inside 'async with'.")

        last_exception: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1 and on_restart:
                on_restart()
            try:
                hasher = hashlib.sha256()
                bytes_written = 0
                async with self._session.get(url, allow_redirects=True) as response:
                    response.raise_for_status()
                    async with aiofiles.open(destination_path, "wb") as f:
                        async for chunk in response.content.iter_chunked(
                            self.CHUNK_SIZE
                        ):
                            await f.write(chunk)
                            hasher.update(chunk)
                            bytes_written += len(chunk)
                            if on_chunk:
                                on_chunk(len(chunk))
                        await f.flush()
                        await asyncio.to_thread(os.fsync, f.fileno())
                return DownloadedFile(
                    path=destination_path, size=bytes_written, sha256=hasher.hexdigest()
                )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                if not _is_retryable(e):
                    raise
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{url}' failed: {e}."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise last_exception
