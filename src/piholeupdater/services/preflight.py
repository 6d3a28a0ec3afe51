"""Dependency checks run before any other phase."""

import re
import shutil
import subprocess
from typing import Callable, List, Optional

from packaging import version

from piholeupdater.constants import MIN_COMPOSE_VERSION
from piholeupdater.errors import RuntimeUnavailable
from piholeupdater.errors_catalog import actionable_error


class PreflightService:
    """Detects docker, the compose flavour and a reachable daemon."""

    def __init__(self, logger, console, subprocess_module=subprocess, which=shutil.which):
        self.logger = logger
        self.console = console
        self.subprocess = subprocess_module
        self.which = which

    def get_docker_compose_cmd(self) -> List[str]:
        try:
            self.subprocess.run(["docker", "compose", "version"], check=True, capture_output=True)
            return ["docker", "compose"]
        except (self.subprocess.CalledProcessError, FileNotFoundError):
            try:
                self.subprocess.run(["docker-compose", "--version"], check=True, capture_output=True)
                return ["docker-compose"]
            except (self.subprocess.CalledProcessError, FileNotFoundError):
                raise RuntimeUnavailable(actionable_error("compose_unavailable"))

    @staticmethod
    def parse_compose_version(output: str) -> Optional[version.Version]:
        match = re.search(r"(\d+\.\d+\.\d+)", output or "")
        if not match:
            return None
        return version.parse(match.group(1))

    def check_compose_version(self, compose_cmd: List[str], run_cmd: Callable):
        args = ["version", "--short"] if compose_cmd == ["docker", "compose"] else ["--version"]
        result = run_cmd(compose_cmd + args, check=False, capture_output=True)
        found = self.parse_compose_version(result.stdout if result.returncode == 0 else "")

        if found is None:
            self.logger.warning("Could not determine Docker Compose version.")
            return
        if found < version.parse(MIN_COMPOSE_VERSION):
            self.logger.warning(
                "Docker Compose v%s found; v%s+ is recommended for health check dependencies.",
                found,
                MIN_COMPOSE_VERSION,
            )
            return
        self.console.print(f"[green]Docker Compose v{found} meets requirement (v{MIN_COMPOSE_VERSION}+).[/green]")

    def run(self, run_cmd: Callable) -> List[str]:
        """Validates the toolchain and returns the compose command to use."""
        self.console.print("[blue]Checking required commands...[/blue]")
        if not self.which("docker"):
            raise RuntimeUnavailable(actionable_error("runtime_unavailable", reason="`docker` is not installed"))

        result = run_cmd(["docker", "ps"], check=False, capture_output=True)
        if result.returncode != 0:
            reason = (result.stderr or "").strip() or "daemon is not running or not accessible"
            raise RuntimeUnavailable(actionable_error("runtime_unavailable", reason=reason))
        self.console.print("[green]Docker daemon is running.[/green]")

        compose_cmd = self.get_docker_compose_cmd()
        self.check_compose_version(compose_cmd, run_cmd)
        return compose_cmd
