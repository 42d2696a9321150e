"""
Loads manifests from the release server and from the local cache.
"""

import asyncio
import logging
from pathlib import Path

import aiohttp

from launchsync.exceptions import FetchError
from launchsync.models.manifest import Manifest
from launchsync.storage.manifest_store import ManifestStore
from launchsync.transfer.downloader import create_session

log = logging.getLogger(__name__)


class ManifestSource:
    """
    Retrieves, compares and persists release manifests.

    Remote loads are never retried here; the caller decides what a failure
    means for the current run.
    """

    def __init__(
        self,
        store: ManifestStore,
        ignore_ssl_validation: bool = False,
        timeout: float = 30.0,
    ):
        self.store = store
        self.ignore_ssl_validation = ignore_ssl_validation
        self.timeout = timeout

    async def load_remote(self, uri: str) -> Manifest:
        """
        Fetches and parses the manifest document at `uri`.

        Raises:
            FetchError: If the server is unreachable, answers with an error
                status, or serves a malformed document.
        """
        log.debug(f"Fetching manifest from '{uri}'.")
        session = create_session(
            max_workers=1,
            ignore_ssl_validation=self.ignore_ssl_validation,
            total_timeout=self.timeout,
        )
        async with session:
            try:
                async with session.get(uri, allow_redirects=True) as response:
                    response.raise_for_status()
                    document = await response.read()
            except aiohttp.ClientResponseError as e:
                raise FetchError(
                    f"Manifest request to '{uri}' failed with HTTP {e.status}.", uri
                ) from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                reason = str(e) or type(e).__name__
                raise FetchError(f"Could not reach '{uri}': {reason}", uri) from e

        try:
            manifest = Manifest.from_xml(document)
        except ValueError as e:
            raise FetchError(f"Manifest at '{uri}' is malformed: {e}", uri) from e

        log.debug(
            f"Remote manifest '{manifest.display_name}' "
            f"(version {manifest.version or 'n/a'}, {len(manifest.entries)} files)."
        )
        return manifest

    def load_cached(self, path: Path | None = None) -> Manifest | None:
        """The manifest of the file set on disk, or None on a first run."""
        return self.store.load(path)

    def persist(self, manifest: Manifest, path: Path | None = None) -> None:
        """Atomically makes `manifest` the cached manifest."""
        self.store.save(manifest, path)

    @staticmethod
    def has_update(cached: Manifest | None, remote: Manifest) -> bool:
        return cached is None or cached != remote

    @staticmethod
    def is_downgrade(cached: Manifest | None, remote: Manifest) -> bool:
        """True if the remote release is older than the one already installed."""
        return cached is not None and cached.is_newer_than(remote)

    async def check_for_update(self, current: Manifest) -> Manifest | None:
        """
        Asks the server whether a newer release than `current` is published.

        Returns:
            The remote manifest if it differs from `current`, otherwise None.

        Raises:
            FetchError: If the remote manifest cannot be loaded.
        """
        remote = await self.load_remote(current.manifest_uri)
        if not self.has_update(current, remote):
            log.debug("Application is up to date.")
            return None
        if self.is_downgrade(current, remote) and not remote.accept_downgrade:
            log.info(
                f"Ignoring remote release {remote.version or remote.ts}: it is "
                f"older than the installed {current.version or current.ts}."
            )
            return None
        return remote
