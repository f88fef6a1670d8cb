"""Tests for process control."""

import json
import os
import subprocess
from unittest.mock import Mock, call, patch

import pytest

from release_tool.api.exceptions import ProcessStartFailed, ProcessStopFailed, SupervisorError
from release_tool.services.process_service import (
    Pm2Supervisor,
    ProcessController,
    ProcessState,
)


@pytest.fixture
def release_dir(app_paths):
    """Installed release ``v1`` with ``current`` pointing at it."""
    directory = app_paths.release_dir("v1")
    directory.mkdir(parents=True)
    (directory / "server.js").write_text("")
    os.symlink("releases/v1", app_paths.current_link)
    return directory


@pytest.fixture
def controller(app_paths, supervisor, no_sleep):
    return ProcessController(app_paths, supervisor, start_check_attempts=3,
                             start_check_interval=0, sleep=no_sleep)


class TestProcessController:
    """Tests for ProcessController."""

    def test_manifest_projection(self, controller, demo_config, release_dir, app_paths) -> None:
        """The manifest runs the current release with merged environment."""
        path = controller.write_manifest(demo_config)

        app = json.loads(path.read_text())["apps"][0]
        assert app["name"] == "demo"
        assert app["script"] == "server.js"
        assert app["cwd"] == str(app_paths.base_dir / "releases" / "v1")
        assert app["out_file"] == str(app_paths.out_log)
        assert app["error_file"] == str(app_paths.error_log)
        assert app["env"] == {"NODE_ENV": "production", "PORT": "3000"}

    def test_config_env_overrides_default(self, controller, release_dir) -> None:
        from release_tool.models.config import DeployConfig

        config = DeployConfig(source="acme/demo", script="server.js",
                              env={"NODE_ENV": "staging"})

        assert controller.build_manifest(config).env == {"NODE_ENV": "staging"}

    def test_stop_when_not_running(self, controller, supervisor) -> None:
        assert controller.stop() is False
        assert supervisor.calls == []

    def test_stop_running(self, controller, supervisor) -> None:
        supervisor.states["demo"] = ProcessState.ONLINE

        assert controller.stop() is True
        assert supervisor.states["demo"] == ProcessState.STOPPED

    def test_stop_failure(self, controller, supervisor) -> None:
        supervisor.states["demo"] = ProcessState.ONLINE
        supervisor.fail_stop = True

        with pytest.raises(ProcessStopFailed):
            controller.stop()

    def test_start(self, controller, supervisor, demo_config, release_dir) -> None:
        manifest = controller.start(demo_config)

        assert manifest.cwd.name == "v1"
        assert supervisor.running_release("demo") == "v1"

    def test_start_failure(self, controller, supervisor, demo_config, release_dir) -> None:
        supervisor.broken.add("v1")

        with pytest.raises(ProcessStartFailed, match="errored"):
            controller.start(demo_config)

    def test_start_os_error_is_start_failure(self, controller, supervisor, demo_config,
                                             release_dir) -> None:
        supervisor.denied.add("v1")

        with pytest.raises(ProcessStartFailed, match="Permission denied"):
            controller.start(demo_config)

    def test_manifest_write_error_is_start_failure(self, controller, supervisor, demo_config,
                                                   release_dir, monkeypatch) -> None:
        def disk_full(path, data):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr("release_tool.services.process_service.atomic_write_json", disk_full)

        with pytest.raises(ProcessStartFailed, match="cannot write manifest"):
            controller.start(demo_config)
        assert supervisor.calls == []

    def test_start_polls_until_online(self, app_paths, demo_config, release_dir) -> None:
        """A launching process gets further status checks."""
        fake = Mock()
        fake.status.side_effect = [ProcessState.LAUNCHING, ProcessState.ONLINE]
        sleeps = []
        controller = ProcessController(app_paths, fake, start_check_attempts=3,
                                       start_check_interval=0.5, sleep=sleeps.append)

        controller.start(demo_config)

        assert sleeps == [0.5, 0.5]

    def test_start_still_launching_fails(self, app_paths, demo_config, release_dir) -> None:
        fake = Mock()
        fake.status.return_value = ProcessState.LAUNCHING
        controller = ProcessController(app_paths, fake, start_check_attempts=2,
                                       start_check_interval=0, sleep=lambda s: None)

        with pytest.raises(ProcessStartFailed, match="launching"):
            controller.start(demo_config)


def completed(stdout="", returncode=0, stderr=""):
    return Mock(returncode=returncode, stdout=stdout, stderr=stderr)


class TestPm2Supervisor:
    """Tests for the pm2 command line driver."""

    def test_status_parses_jlist(self) -> None:
        listing = json.dumps([
            {"name": "other", "pm2_env": {"status": "online"}},
            {"name": "demo", "pm2_env": {"status": "stopped"}},
        ])

        with patch("subprocess.run", return_value=completed(listing)):
            assert Pm2Supervisor().status("demo") == ProcessState.STOPPED

    def test_status_ignores_banner(self) -> None:
        output = ">>>> In-memory PM2 is out-of-date\n[]"

        with patch("subprocess.run", return_value=completed(output)):
            assert Pm2Supervisor().status("demo") == ProcessState.NOT_FOUND

    def test_unknown_state_is_errored(self) -> None:
        listing = json.dumps([{"name": "demo", "pm2_env": {"status": "one-launch-status"}}])

        with patch("subprocess.run", return_value=completed(listing)):
            assert Pm2Supervisor().status("demo") == ProcessState.ERRORED

    def test_start_deletes_existing_process(self, temp_dir) -> None:
        """Restarting drops the cached environment by deleting first."""
        listing = json.dumps([{"name": "demo", "pm2_env": {"status": "stopped"}}])
        manifest = temp_dir / "ecosystem.config.json"

        with patch("subprocess.run", return_value=completed(listing)) as mock_run:
            Pm2Supervisor().start(manifest, "demo")

        commands = [c[0][0] for c in mock_run.call_args_list]
        assert commands == [
            ["pm2", "jlist"],
            ["pm2", "delete", "demo"],
            ["pm2", "start", str(manifest)],
        ]

    def test_start_new_process(self, temp_dir) -> None:
        manifest = temp_dir / "ecosystem.config.json"

        with patch("subprocess.run", return_value=completed("[]")) as mock_run:
            Pm2Supervisor("/usr/local/bin/pm2").start(manifest, "demo")

        assert mock_run.call_args_list[-1] == call(
            ["/usr/local/bin/pm2", "start", str(manifest)],
            capture_output=True, text=True, timeout=60.0
        )

    def test_command_failure(self) -> None:
        with patch("subprocess.run", return_value=completed(returncode=1, stderr="boom")):
            with pytest.raises(SupervisorError, match="boom"):
                Pm2Supervisor().stop("demo")

    def test_missing_command(self) -> None:
        with patch("subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(SupervisorError, match="not found"):
                Pm2Supervisor().status("demo")

    def test_timeout(self) -> None:
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("pm2", 60)):
            with pytest.raises(SupervisorError, match="timed out"):
                Pm2Supervisor().stop("demo")

    def test_os_error_running_command(self) -> None:
        """Errors such as a non-executable binary surface as SupervisorError."""
        with patch("subprocess.run", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(SupervisorError, match="Permission denied"):
                Pm2Supervisor().status("demo")
