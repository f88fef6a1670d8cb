"""Pytest configuration and shared fixtures for release-tool tests."""

import io
import json
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional, Set

import pytest

from release_tool.api.exceptions import InstallerError, SupervisorError
from release_tool.core.path_resolver import AppPaths
from release_tool.core.settings import ToolSettings
from release_tool.models.config import DeployConfig
from release_tool.services.orchestrator import Orchestrator
from release_tool.services.process_service import ProcessState, ProcessSupervisor
from release_tool.services.release_service import DependencyInstaller


class FakeSupervisor(ProcessSupervisor):
    """In-memory supervisor that 'runs' a release if its entry script exists

    Releases named in ``broken`` start but error out; releases named in
    ``denied`` make ``start`` itself raise ``PermissionError``.
    """

    def __init__(self):
        self.states: Dict[str, ProcessState] = {}
        self.manifests: Dict[str, dict] = {}
        self.broken: Set[str] = set()
        self.denied: Set[str] = set()
        self.fail_stop = False
        self.calls: List[tuple] = []

    def status(self, name: str) -> ProcessState:
        return self.states.get(name, ProcessState.NOT_FOUND)

    def stop(self, name: str) -> None:
        self.calls.append(("stop", name))
        if self.fail_stop:
            raise SupervisorError(f"cannot stop {name}")
        self.states[name] = ProcessState.STOPPED

    def start(self, manifest_path: Path, name: str) -> None:
        self.calls.append(("start", name))
        manifest = json.loads(Path(manifest_path).read_text())
        app = manifest["apps"][0]
        cwd = Path(app["cwd"])
        if cwd.name in self.denied:
            raise PermissionError(13, "Permission denied", str(cwd))
        self.manifests[name] = app

        if cwd.name in self.broken or not (cwd / app["script"]).is_file():
            self.states[name] = ProcessState.ERRORED
        else:
            self.states[name] = ProcessState.ONLINE

    def running_release(self, name: str) -> Optional[str]:
        """Release directory name the process was started from, if online"""
        if self.states.get(name) != ProcessState.ONLINE:
            return None
        return Path(self.manifests[name]["cwd"]).name

    def env(self, name: str) -> Dict[str, str]:
        return self.manifests[name]["env"]


class FakeInstaller(DependencyInstaller):
    """Fails for releases whose package.json version is listed in ``failing``"""

    def __init__(self):
        self.failing: Set[str] = set()
        self.installed: List[str] = []

    def install(self, release_dir: Path) -> None:
        package = json.loads((release_dir / "package.json").read_text())
        version = package["version"]
        if version in self.failing:
            raise InstallerError(f"npm ERR! dependency resolution failed for {version}")
        (release_dir / "node_modules").mkdir()
        self.installed.append(version)


def build_tarball(destination: Path, repo: str, release_id: str,
                  files: Optional[Dict[str, str]] = None) -> Path:
    """Write ``<repo>-<release_id>.tar.gz`` with a single wrapping directory"""
    if files is None:
        files = {
            "server.js": f"console.log('{release_id}');\n",
            "package.json": json.dumps({"name": repo, "version": release_id}),
        }

    destination.mkdir(parents=True, exist_ok=True)
    archive = destination / f"{repo}-{release_id}.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(f"{repo}-{release_id}/{name}")
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return archive


class ArtifactMirror:
    """``file://`` artifact host laid out like a release download site"""

    def __init__(self, root: Path):
        self.root = root

    @property
    def url(self) -> str:
        return self.root.as_uri()

    def publish(self, source: str, release_id: str,
                files: Optional[Dict[str, str]] = None) -> Path:
        repo = source.rsplit("/", 1)[-1]
        destination = self.root / source / "releases" / "download" / release_id
        return build_tarball(destination, repo, release_id, files)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test file operations."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def mirror(temp_dir: Path) -> ArtifactMirror:
    """Artifact host serving tarballs from disk."""
    root = temp_dir / "mirror"
    root.mkdir()
    return ArtifactMirror(root)


@pytest.fixture
def settings(temp_dir: Path, mirror: ArtifactMirror) -> ToolSettings:
    """Settings rooted in the temp directory, with no start-check delays."""
    return ToolSettings(
        root=temp_dir / "apps",
        artifact_host=mirror.url,
        keep_releases=5,
        lock_timeout=0.3,
        grace_period=0,
        start_check_attempts=2,
        start_check_interval=0,
    )


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def installer() -> FakeInstaller:
    return FakeInstaller()


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
    return lambda seconds: None


@pytest.fixture
def orchestrator(settings, supervisor, installer, no_sleep) -> Orchestrator:
    return Orchestrator(settings, supervisor=supervisor, installer=installer, sleep=no_sleep)


@pytest.fixture
def app_paths(settings: ToolSettings) -> AppPaths:
    """Paths of the ``demo`` application."""
    return AppPaths(settings.root, "demo")


@pytest.fixture
def demo_config() -> DeployConfig:
    return DeployConfig(source="acme/demo", script="server.js", env={"PORT": "3000"})
