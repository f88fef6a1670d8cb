"""Artifact fetch service"""

import asyncio
import logging
import tempfile
import time
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import aiofiles
import requests

from ..api.exceptions import ArtifactNotFound, TransferFailed
from ..constants import (
    ARCHIVE_FILE_PATTERN,
    ARTIFACT_URL_PATTERN,
    DEFAULT_ARTIFACT_HOST,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_TRANSFER_TIMEOUT,
    FETCH_PREFIX,
)
from ..core.path_resolver import AppPaths, validate_release_id
from ..utils.async_utils import run_blocking
from ..utils.file_utils import format_size, remove_path

logger = logging.getLogger(__name__)


class ArtifactFetcher:
    """Resolves a release id to an artifact URL and downloads it to scratch space

    Supports ``http(s)://`` hosts and ``file://`` mirrors. Every fetch gets its
    own scratch directory; on failure nothing is left behind.
    """

    def __init__(self,
                 paths: AppPaths,
                 artifact_host: str = DEFAULT_ARTIFACT_HOST,
                 probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
                 transfer_timeout: float = DEFAULT_TRANSFER_TIMEOUT,
                 session: Optional[requests.Session] = None,
                 chunk_size: int = DEFAULT_CHUNK_SIZE):
        """Initialize fetcher

        Args:
            paths: Application path resolver
            artifact_host: Base URL prepended to ``owner/repo`` sources
            probe_timeout: Timeout in seconds for the existence probe
            transfer_timeout: Overall deadline in seconds for the transfer
            session: HTTP session (created on demand)
            chunk_size: Transfer chunk size
        """
        self.paths = paths
        self.artifact_host = artifact_host.rstrip("/")
        self.probe_timeout = probe_timeout
        self.transfer_timeout = transfer_timeout
        self.chunk_size = chunk_size
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def source_base(self, source: str) -> str:
        """Base URL of a source identity"""
        source = source.strip().rstrip("/")
        if "://" in source:
            return source
        if source.startswith("/"):
            return Path(source).as_uri()
        return f"{self.artifact_host}/{source}"

    @staticmethod
    def archive_name(source: str, release_id: str) -> str:
        """Deterministic archive file name for a source and release"""
        repo = source.strip().rstrip("/").rsplit("/", 1)[-1]
        if repo.endswith(".git"):
            repo = repo[:-len(".git")]
        return ARCHIVE_FILE_PATTERN.format(repo=repo, release=release_id)

    def artifact_url(self, source: str, release_id: str) -> str:
        """Build the download URL for a release

        Args:
            source: Source identity (``owner/repo``, URL or absolute path)
            release_id: Release identifier

        Returns:
            Artifact URL
        """
        validate_release_id(release_id)
        return ARTIFACT_URL_PATTERN.format(
            base=self.source_base(source),
            release=release_id,
            archive=self.archive_name(source, release_id)
        )

    async def fetch(self, source: str, release_id: str) -> Path:
        """Download a release artifact into a fresh scratch directory

        Args:
            source: Source identity
            release_id: Release identifier

        Returns:
            Path to the downloaded archive

        Raises:
            ArtifactNotFound: If the source reports the artifact absent
            TransferFailed: On any probe or transfer error
        """
        url = self.artifact_url(source, release_id)
        scheme = urlparse(url).scheme

        self.paths.scratch_dir.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(
            prefix=f"{FETCH_PREFIX}{release_id}-",
            dir=self.paths.scratch_dir
        ))
        destination = scratch / self.archive_name(source, release_id)

        logger.info(f"Fetching {url}")
        try:
            if scheme == "file":
                await self._fetch_local(url, destination)
            elif scheme in ("http", "https"):
                await run_blocking(self._probe_http, url)
                await run_blocking(self._download_http, url, destination)
            else:
                raise TransferFailed(f"Unsupported artifact URL scheme: {url}")

            size = destination.stat().st_size
            if size == 0:
                raise TransferFailed(f"Downloaded artifact is empty: {url}")
        except BaseException:
            remove_path(scratch)
            raise

        logger.info(f"Fetched {destination.name} ({format_size(size)})")
        return destination

    def discard(self, artifact_path: Path) -> None:
        """Remove a fetched artifact together with its scratch directory"""
        scratch = artifact_path.parent
        if scratch.parent == self.paths.scratch_dir:
            remove_path(scratch)
        else:
            remove_path(artifact_path)

    async def _fetch_local(self, url: str, destination: Path) -> None:
        """Copy an artifact from a ``file://`` mirror"""
        source_path = Path(url2pathname(urlparse(url).path))
        if not source_path.is_file():
            raise ArtifactNotFound(url)

        try:
            await asyncio.wait_for(
                self._copy_file(source_path, destination),
                timeout=self.transfer_timeout
            )
        except asyncio.TimeoutError:
            raise TransferFailed(
                f"Transfer of {url} exceeded {self.transfer_timeout:g}s"
            ) from None
        except OSError as e:
            raise TransferFailed(f"Copy of {url} failed: {e}") from e

    async def _copy_file(self, source_path: Path, destination: Path) -> None:
        async with aiofiles.open(source_path, 'rb') as src:
            async with aiofiles.open(destination, 'wb') as dst:
                while True:
                    chunk = await src.read(self.chunk_size)
                    if not chunk:
                        break
                    await dst.write(chunk)

    def _probe_http(self, url: str) -> None:
        """Check the artifact exists before committing to the transfer"""
        try:
            response = self.session.head(url, allow_redirects=True, timeout=self.probe_timeout)
        except requests.exceptions.Timeout:
            raise TransferFailed(
                f"Probe of {url} timed out after {self.probe_timeout:g}s"
            ) from None
        except requests.exceptions.RequestException as e:
            raise TransferFailed(f"Probe of {url} failed: {e}") from e

        if response.status_code == 404:
            raise ArtifactNotFound(url)
        if response.status_code >= 400:
            raise TransferFailed(f"Probe of {url} returned HTTP {response.status_code}")

    def _download_http(self, url: str, destination: Path) -> None:
        """Stream the artifact to ``destination`` within the transfer deadline"""
        deadline = time.monotonic() + self.transfer_timeout

        try:
            response = self.session.get(
                url,
                stream=True,
                allow_redirects=True,
                timeout=(self.probe_timeout, self.transfer_timeout)
            )
        except requests.exceptions.Timeout:
            raise TransferFailed(f"Transfer of {url} timed out") from None
        except requests.exceptions.RequestException as e:
            raise TransferFailed(f"Transfer of {url} failed: {e}") from e

        try:
            if response.status_code == 404:
                raise ArtifactNotFound(url)
            if response.status_code >= 400:
                raise TransferFailed(f"Transfer of {url} returned HTTP {response.status_code}")

            with open(destination, 'wb') as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if time.monotonic() > deadline:
                        raise TransferFailed(
                            f"Transfer of {url} exceeded {self.transfer_timeout:g}s"
                        )
                    if chunk:
                        f.write(chunk)
        except requests.exceptions.RequestException as e:
            raise TransferFailed(f"Transfer of {url} failed: {e}") from e
        except OSError as e:
            raise TransferFailed(f"Writing {destination} failed: {e}") from e
        finally:
            response.close()
