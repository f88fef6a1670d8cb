"""Tests for artifact fetching."""

from unittest.mock import Mock

import pytest
import requests

from release_tool.api.exceptions import ArtifactNotFound, TransferFailed
from release_tool.services.fetch_service import ArtifactFetcher


@pytest.fixture
def http_session():
    session = Mock(spec=requests.Session)
    session.head.return_value = Mock(status_code=200)
    session.get.return_value = Mock(
        status_code=200,
        iter_content=Mock(return_value=[b"\x1f\x8b", b"payload"])
    )
    return session


@pytest.fixture
def http_fetcher(app_paths, http_session):
    return ArtifactFetcher(app_paths, artifact_host="https://github.com/", session=http_session)


class TestArtifactUrl:
    """Tests for artifact location."""

    def test_owner_repo_source(self, app_paths) -> None:
        fetcher = ArtifactFetcher(app_paths)

        assert fetcher.artifact_url("acme/demo", "v1.0.0") == (
            "https://github.com/acme/demo/releases/download/v1.0.0/demo-v1.0.0.tar.gz"
        )

    def test_url_source(self, app_paths) -> None:
        fetcher = ArtifactFetcher(app_paths)

        assert fetcher.artifact_url("https://git.example.com/acme/demo.git/", "v2") == (
            "https://git.example.com/acme/demo.git/releases/download/v2/demo-v2.tar.gz"
        )

    def test_absolute_path_source(self, app_paths, temp_dir) -> None:
        fetcher = ArtifactFetcher(app_paths)

        url = fetcher.artifact_url(str(temp_dir / "acme" / "demo"), "v1")

        assert url.startswith("file://")
        assert url.endswith("/acme/demo/releases/download/v1/demo-v1.tar.gz")


class TestFetchLocal:
    """Tests for ``file://`` mirrors."""

    @pytest.mark.asyncio
    async def test_fetch_copies_one_file(self, app_paths, mirror) -> None:
        published = mirror.publish("acme/demo", "v1.0.0")
        fetcher = ArtifactFetcher(app_paths, artifact_host=mirror.url)

        artifact = await fetcher.fetch("acme/demo", "v1.0.0")

        assert artifact.read_bytes() == published.read_bytes()
        assert artifact.parent.parent == app_paths.scratch_dir
        assert list(artifact.parent.iterdir()) == [artifact]

        fetcher.discard(artifact)
        assert list(app_paths.scratch_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_artifact(self, app_paths, mirror) -> None:
        fetcher = ArtifactFetcher(app_paths, artifact_host=mirror.url)

        with pytest.raises(ArtifactNotFound):
            await fetcher.fetch("acme/demo", "v0")

        assert list(app_paths.scratch_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_empty_artifact(self, app_paths, mirror) -> None:
        published = mirror.publish("acme/demo", "v1")
        published.write_bytes(b"")
        fetcher = ArtifactFetcher(app_paths, artifact_host=mirror.url)

        with pytest.raises(TransferFailed, match="empty"):
            await fetcher.fetch("acme/demo", "v1")

        assert list(app_paths.scratch_dir.iterdir()) == []


class TestFetchHttp:
    """Tests for HTTP hosts with a mocked session."""

    @pytest.mark.asyncio
    async def test_probe_then_download(self, http_fetcher, http_session) -> None:
        artifact = await http_fetcher.fetch("acme/demo", "v1")

        assert artifact.read_bytes() == b"\x1f\x8bpayload"
        url = "https://github.com/acme/demo/releases/download/v1/demo-v1.tar.gz"
        assert http_session.head.call_args[0][0] == url
        assert http_session.head.call_args[1]["timeout"] == 10.0
        assert http_session.get.call_args[1]["stream"] is True
        http_session.get.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_probe_404_skips_transfer(self, http_fetcher, http_session, app_paths) -> None:
        """An absent artifact is detected before any body is written."""
        http_session.head.return_value = Mock(status_code=404)

        with pytest.raises(ArtifactNotFound):
            await http_fetcher.fetch("acme/demo", "v1")

        http_session.get.assert_not_called()
        assert list(app_paths.scratch_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_probe_server_error(self, http_fetcher, http_session) -> None:
        http_session.head.return_value = Mock(status_code=503)

        with pytest.raises(TransferFailed, match="503"):
            await http_fetcher.fetch("acme/demo", "v1")

    @pytest.mark.asyncio
    async def test_probe_timeout(self, http_fetcher, http_session) -> None:
        http_session.head.side_effect = requests.exceptions.ConnectTimeout("slow")

        with pytest.raises(TransferFailed, match="timed out"):
            await http_fetcher.fetch("acme/demo", "v1")

    @pytest.mark.asyncio
    async def test_broken_transfer_cleans_up(self, http_fetcher, http_session, app_paths) -> None:
        """A connection dropped mid-transfer leaves no partial file."""
        def chunks(chunk_size):
            yield b"partial"
            raise requests.exceptions.ChunkedEncodingError("connection reset")

        http_session.get.return_value = Mock(status_code=200, iter_content=chunks)

        with pytest.raises(TransferFailed, match="connection reset"):
            await http_fetcher.fetch("acme/demo", "v1")

        assert list(app_paths.scratch_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unsupported_scheme(self, app_paths) -> None:
        fetcher = ArtifactFetcher(app_paths, artifact_host="ftp://mirror.example.com")

        with pytest.raises(TransferFailed, match="Unsupported"):
            await fetcher.fetch("acme/demo", "v1")
