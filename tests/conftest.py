import os
import subprocess
from dataclasses import replace

import pytest

from piholeupdater.constants import DEFAULT_COMPONENTS
from piholeupdater.models import ComponentSpec, Environment, ProbeResult


class DummyLogger:
    def __init__(self):
        self.messages = []

    def _record(self, level, message, *args):
        self.messages.append((level, message % args if args else message))

    def debug(self, message, *args, **_kwargs):
        self._record("debug", message, *args)

    def info(self, message, *args, **_kwargs):
        self._record("info", message, *args)

    def warning(self, message, *args, **_kwargs):
        self._record("warning", message, *args)

    def error(self, message, *args, **_kwargs):
        self._record("error", message, *args)

    def exception(self, message, *args, **_kwargs):
        self._record("error", message, *args)

    def log(self, level, message, *args, **_kwargs):
        self._record(level, message, *args)

    def text(self, level=None):
        return "\n".join(message for lvl, message in self.messages if level is None or lvl == level)


class DummyConsole:
    def __init__(self):
        self.lines = []

    def print(self, *args, **_kwargs):
        self.lines.append(" ".join(str(arg) for arg in args))

    def rule(self, *args, **_kwargs):
        self.lines.append(" ".join(str(arg) for arg in args))


VERSION_OUTPUT = {
    "redis": "Redis server v=7.2.4 sha=00000000:0 malloc=jemalloc-5.3.0 bits=64",
    "unbound": "Version 1.19.0\nConfigure line: --prefix=/usr",
    "pihole": "Core version is v6.0.4 (Latest: v6.0.4)",
}

MUTATING_CALLS = {
    "build_component",
    "start_component",
    "stop_component",
    "stop_all",
    "start_all",
    "extract_volume",
}


class FakeRuntime:
    """In-memory stand-in for DockerRuntimeService."""

    def __init__(self, environment: Environment):
        self.environment = environment
        self.calls = []
        self.available = True
        self.running = {spec.container: True for spec in environment.components}
        self.status = {spec.container: "healthy" for spec in environment.components}
        self.running_hash = {spec.name: f"sha256:{spec.name}-1" for spec in environment.components}
        self.latest_hash = dict(self.running_hash)
        self.probe_ok = {spec.name: True for spec in environment.components}
        self.version_output = dict(VERSION_OUTPUT)
        self.files = {("pihole", "/etc/pihole/pihole.toml"): "[dns]\nupstreams = ['unbound#53']\n"}
        self.failing_builds = set()
        self.failing_starts = set()
        self.archive_ok = True
        self.extract_ok = True
        self.stop_all_ok = True
        self.start_all_ok = True
        self.heal_on_restart = True
        self.image_created = "2024-01-01T00:00:00.123456789Z"
        self.logs = ""
        self.volumes = []

    def mutating_calls(self):
        return [call for call in self.calls if call[0] in MUTATING_CALLS]

    def is_available(self):
        self.calls.append(("is_available",))
        return self.available

    def is_running(self, container):
        return self.running.get(container, False)

    def container_status(self, container):
        return self.status.get(container, "missing")

    def get_image_hash(self, image):
        return None

    def get_image_created(self, image):
        return self.image_created

    def get_running_artifact_hash(self, component):
        self.calls.append(("get_running_artifact_hash", component.name))
        return self.running_hash.get(component.name)

    def pull_latest_artifact(self, component):
        self.calls.append(("pull_latest_artifact", component.name))
        return self.latest_hash.get(component.name)

    def build_component(self, component):
        self.calls.append(("build_component", component.name))
        return component.name not in self.failing_builds

    def start_component(self, component):
        self.calls.append(("start_component", component.name))
        if component.name in self.failing_starts:
            return False
        self.running_hash[component.name] = self.latest_hash.get(component.name)
        return True

    def stop_component(self, component):
        self.calls.append(("stop_component", component.name))
        return True

    def stop_all(self):
        self.calls.append(("stop_all",))
        return self.stop_all_ok

    def start_all(self):
        self.calls.append(("start_all",))
        if self.start_all_ok and self.heal_on_restart:
            self.probe_ok = {name: True for name in self.probe_ok}
        return self.start_all_ok

    def exec_in_component(self, component, command):
        self.calls.append(("exec_in_component", component.name, tuple(command)))
        if tuple(command) == tuple(component.probe):
            if self.probe_ok.get(component.name, False):
                return subprocess.CompletedProcess(command, 0, stdout=component.probe_expect or "ok", stderr="")
            return subprocess.CompletedProcess(command, 1, stdout="", stderr="connection refused")
        if tuple(command) == tuple(component.version_cmd) and component.name in self.version_output:
            return subprocess.CompletedProcess(command, 0, stdout=self.version_output[component.name], stderr="")
        return subprocess.CompletedProcess(command, 1, stdout="", stderr="unsupported")

    def read_file_in_component(self, component, path):
        return self.files.get((component.container, path))

    def archive_volume(self, volume, backup_dir, archive_name):
        self.calls.append(("archive_volume", volume))
        if not self.archive_ok:
            return False
        with open(os.path.join(backup_dir, archive_name), "wb") as file_obj:
            file_obj.write(b"archive")
        return True

    def extract_volume(self, volume, backup_dir, archive_name):
        self.calls.append(("extract_volume", volume, archive_name))
        return self.extract_ok

    def logs_since(self, component, since):
        return self.logs

    def list_volumes(self, prefix):
        return list(self.volumes)


class FakeDnsCheck:
    def __init__(self):
        self.resolution_ok = True
        self.blocking_ok = True
        self.queries = []

    def check_resolution(self, domain):
        self.queries.append(("resolve", domain))
        if self.resolution_ok:
            return ProbeResult(True, f"{domain} -> 142.250.72.14")
        return ProbeResult(False, f"{domain}: Timeout")

    def check_blocked(self, domain, sentinels):
        self.queries.append(("blocked", domain))
        if self.blocking_ok:
            return ProbeResult(True, f"{domain} -> 0.0.0.0 (blocked)")
        return ProbeResult(False, f"{domain} -> 142.250.72.14 (not blocked)")

    def time_query(self, domain):
        self.queries.append(("time", domain))
        return 0.01


@pytest.fixture
def environment(tmp_path):
    project_dir = tmp_path / "pihole-unbound"
    project_dir.mkdir()
    compose_file = project_dir / "docker-compose.yml"
    compose_file.write_text("services:\n  pihole:\n    image: pihole/pihole:latest\n", encoding="utf-8")

    components = tuple(
        replace(
            ComponentSpec(**entry),
            service=entry["name"],
            container=entry["name"],
            health_attempts=2,
            health_interval=0.0,
            settle_seconds=0.0,
            volumes=tuple(f"pihole-unbound_{volume}" for volume in entry.get("volumes", ())),
        )
        for entry in DEFAULT_COMPONENTS
    )

    return Environment(
        run_id="abc123",
        project_dir=str(project_dir),
        compose_file=str(compose_file),
        compose_cmd=("docker", "compose"),
        dns_server="127.0.0.1",
        volume_prefix="pihole-unbound_",
        components=components,
        backup_root=str(tmp_path / "backups"),
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def fake_runtime(environment):
    return FakeRuntime(environment)


@pytest.fixture
def fake_dns():
    return FakeDnsCheck()


@pytest.fixture
def dummy_logger():
    return DummyLogger()


@pytest.fixture
def dummy_console():
    return DummyConsole()
