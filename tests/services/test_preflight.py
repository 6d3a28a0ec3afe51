import subprocess

import pytest

from piholeupdater.errors import RuntimeUnavailable
from piholeupdater.services.preflight import PreflightService


class FakeSubprocess:
    CalledProcessError = subprocess.CalledProcessError

    def __init__(self, available):
        self.available = set(available)
        self.calls = []

    def run(self, cmd, check=False, capture_output=False):
        self.calls.append(cmd)
        if cmd[0] not in self.available and " ".join(cmd[:2]) not in self.available:
            raise FileNotFoundError(cmd[0])
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


def _run_cmd(responses):
    def run_cmd(cmd, check=True, capture_output=False, timeout=None, cwd=None):
        returncode, stdout, stderr = responses.get(" ".join(cmd), (0, "", ""))
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

    return run_cmd


def test_prefers_compose_plugin(dummy_logger, dummy_console):
    service = PreflightService(dummy_logger, dummy_console, subprocess_module=FakeSubprocess({"docker compose"}))

    assert service.get_docker_compose_cmd() == ["docker", "compose"]


def test_falls_back_to_standalone_compose(dummy_logger, dummy_console):
    service = PreflightService(dummy_logger, dummy_console, subprocess_module=FakeSubprocess({"docker-compose"}))

    assert service.get_docker_compose_cmd() == ["docker-compose"]


def test_missing_compose_is_reported(dummy_logger, dummy_console):
    service = PreflightService(dummy_logger, dummy_console, subprocess_module=FakeSubprocess(set()))

    with pytest.raises(RuntimeUnavailable, match="Docker Compose is not available"):
        service.get_docker_compose_cmd()


def test_run_requires_docker_binary(dummy_logger, dummy_console):
    service = PreflightService(dummy_logger, dummy_console, which=lambda _name: None)

    with pytest.raises(RuntimeUnavailable, match="`docker` is not installed"):
        service.run(_run_cmd({}))


def test_run_requires_reachable_daemon(dummy_logger, dummy_console):
    service = PreflightService(dummy_logger, dummy_console, which=lambda name: f"/usr/bin/{name}")

    with pytest.raises(RuntimeUnavailable, match="permission denied"):
        service.run(_run_cmd({"docker ps": (1, "", "permission denied")}))


def test_run_returns_compose_command_and_warns_on_old_version(dummy_logger, dummy_console):
    service = PreflightService(
        dummy_logger,
        dummy_console,
        subprocess_module=FakeSubprocess({"docker compose"}),
        which=lambda name: f"/usr/bin/{name}",
    )

    compose_cmd = service.run(_run_cmd({"docker compose version --short": (0, "1.25.0\n", "")}))

    assert compose_cmd == ["docker", "compose"]
    assert "v1.29.0+ is recommended" in dummy_logger.text("warning")


def test_parse_compose_version():
    assert str(PreflightService.parse_compose_version("Docker Compose version v2.24.5")) == "2.24.5"
    assert PreflightService.parse_compose_version("garbage") is None
