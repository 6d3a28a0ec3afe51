import subprocess
from datetime import datetime, timezone

import pytest

from piholeupdater.errors import ComponentNotRunning, RuntimeUnavailable
from piholeupdater.services.docker_runtime import DockerRuntimeService
from piholeupdater.services.inventory import InventoryService
from piholeupdater.services.planner import UpdatePlannerService


def _service(environment, runtime, dummy_logger, dummy_console):
    return InventoryService(environment, runtime, dummy_logger, dummy_console)


def test_collect_reads_running_hash_before_pulling(environment, fake_runtime, dummy_logger, dummy_console):
    identities = _service(environment, fake_runtime, dummy_logger, dummy_console).collect()

    assert [identity.name for identity in identities] == ["redis", "unbound", "pihole"]
    hash_calls = [call for call in fake_runtime.calls if call[0] in ("get_running_artifact_hash", "pull_latest_artifact")]
    for name in ("redis", "unbound", "pihole"):
        assert hash_calls.index(("get_running_artifact_hash", name)) < hash_calls.index(("pull_latest_artifact", name))


def test_collect_populates_identity_fields(environment, fake_runtime, dummy_logger, dummy_console):
    fake_runtime.latest_hash["pihole"] = "sha256:pihole-2"

    identities = {
        identity.name: identity
        for identity in _service(environment, fake_runtime, dummy_logger, dummy_console).collect()
    }

    pihole = identities["pihole"]
    assert pihole.running_version_tag == "6.0.4"
    assert pihole.running_content_hash == "sha256:pihole-1"
    assert pihole.latest_content_hash == "sha256:pihole-2"
    assert pihole.dependency_rank == 3
    assert pihole.is_outdated
    assert identities["redis"].running_version_tag == "7.2.4"
    assert identities["unbound"].running_version_tag == "1.19.0"
    assert not identities["redis"].is_outdated


def test_unresolved_latest_hash_marks_component_unknown(environment, fake_runtime, dummy_logger, dummy_console):
    fake_runtime.latest_hash["redis"] = None

    identities = _service(environment, fake_runtime, dummy_logger, dummy_console).collect()

    redis = identities[0]
    assert not redis.is_known
    assert not redis.is_outdated
    assert "Latest content hash for redis could not be resolved." in dummy_logger.text("warning")


def test_version_tag_falls_back_to_unknown(environment, fake_runtime, dummy_logger, dummy_console):
    fake_runtime.version_output.pop("unbound")
    service = _service(environment, fake_runtime, dummy_logger, dummy_console)

    assert service.read_version_tag(environment.component("unbound")) == "unknown"


def test_image_age_days_parses_docker_timestamps(environment, fake_runtime, dummy_logger, dummy_console):
    service = _service(environment, fake_runtime, dummy_logger, dummy_console)
    now = datetime(2024, 1, 31, tzinfo=timezone.utc)

    assert service.image_age_days(environment.component("redis"), now=now) == 30

    fake_runtime.image_created = None
    assert service.image_age_days(environment.component("redis"), now=now) is None


def test_ensure_running_requires_runtime(environment, fake_runtime, dummy_logger, dummy_console):
    fake_runtime.available = False

    with pytest.raises(RuntimeUnavailable):
        _service(environment, fake_runtime, dummy_logger, dummy_console).collect()


def test_ensure_running_lists_stopped_containers(environment, fake_runtime, dummy_logger, dummy_console):
    fake_runtime.running["unbound"] = False

    with pytest.raises(ComponentNotRunning, match="Containers are not running: unbound"):
        _service(environment, fake_runtime, dummy_logger, dummy_console).collect()
    assert not any(call[0] == "pull_latest_artifact" for call in fake_runtime.calls)


class DockerCli:
    """Docker CLI double whose local tags move when an image is pulled."""

    def __init__(self):
        self.registry = {
            "redis:7-alpine": ("sha256:redis-1", "sha256:redis-layer"),
            "alpine:latest": ("sha256:alpine-2", "sha256:alpine-layer-2"),
            "pihole/pihole:latest": ("sha256:pihole-1", "sha256:pihole-layer"),
        }
        self.layers = {
            "sha256:redis-1": "sha256:redis-layer",
            "sha256:alpine-1": "sha256:alpine-layer-1",
            "sha256:unbound-build": "sha256:alpine-layer-1",
            "sha256:pihole-1": "sha256:pihole-layer",
        }
        self.tags = {"redis:7-alpine": "sha256:redis-1", "alpine:latest": "sha256:alpine-1", "pihole/pihole:latest": "sha256:pihole-1"}
        self.containers = {"redis": "sha256:redis-1", "unbound": "sha256:unbound-build", "pihole": "sha256:pihole-1"}

    def __call__(self, cmd, check=True, capture_output=False, timeout=None, cwd=None):
        args = cmd[1:]
        stdout, returncode = "", 0
        if args[0] == "pull":
            image_id, layer = self.registry[args[1]]
            self.tags[args[1]] = image_id
            self.layers[image_id] = layer
        elif args[:3] == ["image", "inspect", "--format"]:
            image_id = self.tags.get(args[4], args[4])
            if args[3] == "{{.Id}}":
                stdout = image_id
            elif args[3] == "{{index .RootFS.Layers 0}}":
                stdout = self.layers.get(image_id, "")
        elif args[:2] == ["inspect", "--format"]:
            if args[2] == "{{.Image}}":
                stdout = self.containers[args[3]]
            elif args[2] == "{{.State.Running}}":
                stdout = "true"
        elif args[0] == "exec":
            returncode = 1
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")


def test_unrebuilt_resolver_stays_planned_after_base_image_pull(environment, dummy_logger, dummy_console):
    cli = DockerCli()
    runtime = DockerRuntimeService(environment, run_cmd=cli, logger=dummy_logger)
    inventory = _service(environment, runtime, dummy_logger, dummy_console)
    planner = UpdatePlannerService(dummy_logger, dummy_console)

    # First run pulls the new base image, then the operator cancels without rebuilding.
    first = planner.plan(inventory.collect())
    second = planner.plan(inventory.collect())

    assert first.names == ["unbound"]
    assert second.names == ["unbound"]
    assert cli.tags["alpine:latest"] == "sha256:alpine-2"
