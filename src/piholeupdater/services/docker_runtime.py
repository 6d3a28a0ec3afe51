"""Docker runtime client for PiholeUpdater.

Every interaction with the container runtime goes through this service, so
the orchestration phases can be exercised against a fake with the same
methods: inspect (hashes, status, logs), pull, build, start, stop, exec and
volume archive/extract.
"""

import os
import subprocess
from typing import Callable, List, Optional

from piholeupdater.constants import HELPER_IMAGE
from piholeupdater.models import ComponentSpec, Environment


class DockerRuntimeService:
    """Docker CLI and compose wrapper bound to one discovered environment."""

    def __init__(
        self,
        environment: Environment,
        run_cmd: Callable[..., subprocess.CompletedProcess],
        logger,
        pull_timeout: Optional[float] = None,
    ):
        self.environment = environment
        self.run_cmd = run_cmd
        self.logger = logger
        self.pull_timeout = pull_timeout

    def _compose(self, *args: str) -> List[str]:
        return list(self.environment.compose_cmd) + ["-f", self.environment.compose_file, *args]

    def _ok(self, cmd: List[str], timeout: Optional[float] = None) -> bool:
        result = self.run_cmd(
            cmd,
            check=False,
            capture_output=True,
            timeout=timeout,
            cwd=self.environment.project_dir,
        )
        return result.returncode == 0

    def _inspect(self, *args: str) -> Optional[str]:
        result = self.run_cmd(["docker", *args], check=False, capture_output=True)
        if result.returncode != 0:
            return None
        value = (result.stdout or "").strip()
        if not value or value == "<none>":
            return None
        return value

    def is_available(self) -> bool:
        result = self.run_cmd(["docker", "ps"], check=False, capture_output=True)
        return result.returncode == 0

    def is_running(self, container: str) -> bool:
        return self._inspect("inspect", "--format", "{{.State.Running}}", container) == "true"

    def container_status(self, container: str) -> str:
        """Returns the health status, or the plain state for containers without a health check."""
        status = self._inspect(
            "inspect",
            "--format",
            "{{if .State.Health}}{{.State.Health.Status}}{{else}}{{.State.Status}}{{end}}",
            container,
        )
        return status or "missing"

    def get_image_hash(self, image: str) -> Optional[str]:
        return self._inspect("image", "inspect", "--format", "{{.Id}}", image)

    def get_image_created(self, image: str) -> Optional[str]:
        return self._inspect("image", "inspect", "--format", "{{.Created}}", image)

    def get_base_layer(self, image: str) -> Optional[str]:
        return self._inspect("image", "inspect", "--format", "{{index .RootFS.Layers 0}}", image)

    def get_running_artifact_hash(self, component: ComponentSpec) -> Optional[str]:
        running_image = self._inspect("inspect", "--format", "{{.Image}}", component.container)
        if not component.build or running_image is None:
            return running_image
        # Built components are identified by the base layer their running build sits on,
        # not by the local base tag, which a pull moves even when nothing is rebuilt.
        return self.get_base_layer(running_image)

    def pull_latest_artifact(self, component: ComponentSpec) -> Optional[str]:
        result = self.run_cmd(
            ["docker", "pull", component.image],
            check=False,
            capture_output=True,
            timeout=self.pull_timeout,
        )
        if result.returncode != 0:
            self.logger.warning(
                "Could not pull %s: %s", component.image, (result.stderr or "").strip() or "no output"
            )
            return None
        if component.build:
            return self.get_base_layer(component.image)
        return self.get_image_hash(component.image)

    def build_component(self, component: ComponentSpec) -> bool:
        return self._ok(self._compose("build", "--no-cache", component.service))

    def start_component(self, component: ComponentSpec) -> bool:
        return self._ok(self._compose("up", "-d", component.service))

    def stop_component(self, component: ComponentSpec) -> bool:
        return self._ok(self._compose("stop", component.service))

    def stop_all(self) -> bool:
        return self._ok(self._compose("down"))

    def start_all(self) -> bool:
        return self._ok(self._compose("up", "-d"))

    def exec_in_component(self, component: ComponentSpec, command) -> subprocess.CompletedProcess:
        return self.run_cmd(
            ["docker", "exec", component.container, *command],
            check=False,
            capture_output=True,
        )

    def read_file_in_component(self, component: ComponentSpec, path: str) -> Optional[str]:
        result = self.exec_in_component(component, ["cat", path])
        if result.returncode != 0:
            return None
        return result.stdout

    def archive_volume(self, volume: str, backup_dir: str, archive_name: str) -> bool:
        return self._ok(
            [
                "docker",
                "run",
                "--rm",
                "-v",
                f"{volume}:/source:ro",
                "-v",
                f"{os.path.abspath(backup_dir)}:/backup",
                HELPER_IMAGE,
                "tar",
                "czf",
                f"/backup/{archive_name}",
                "-C",
                "/source",
                ".",
            ]
        )

    def extract_volume(self, volume: str, backup_dir: str, archive_name: str) -> bool:
        return self._ok(
            [
                "docker",
                "run",
                "--rm",
                "-v",
                f"{volume}:/target",
                "-v",
                f"{os.path.abspath(backup_dir)}:/backup:ro",
                HELPER_IMAGE,
                "sh",
                "-c",
                f"find /target -mindepth 1 -delete && tar xzf /backup/{archive_name} -C /target",
            ]
        )

    def logs_since(self, component: ComponentSpec, since: str) -> str:
        result = self.run_cmd(
            ["docker", "logs", "--since", since, component.container],
            check=False,
            capture_output=True,
        )
        return f"{result.stdout or ''}{result.stderr or ''}"

    def list_volumes(self, prefix: str) -> List[str]:
        result = self.run_cmd(
            ["docker", "volume", "ls", "--filter", f"name={prefix}", "--format", "{{.Name}}"],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return []
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]
