"""Inventory collection: running vs. latest content hashes per component."""

import re
from datetime import datetime, timezone
from typing import List, Optional

from piholeupdater.errors import ComponentNotRunning, RuntimeUnavailable
from piholeupdater.errors_catalog import actionable_error
from piholeupdater.models import ComponentIdentity, ComponentSpec, Environment

UNKNOWN_VERSION = "unknown"


class InventoryService:
    """Resolves the identity of every declared component."""

    def __init__(self, environment: Environment, runtime, logger, console):
        self.environment = environment
        self.runtime = runtime
        self.logger = logger
        self.console = console

    def ensure_running(self):
        if not self.runtime.is_available():
            raise RuntimeUnavailable(
                actionable_error("runtime_unavailable", reason="`docker ps` did not succeed")
            )

        stopped = [
            spec.container for spec in self.environment.components if not self.runtime.is_running(spec.container)
        ]
        if stopped:
            raise ComponentNotRunning(
                actionable_error(
                    "components_not_running",
                    containers=", ".join(stopped),
                    project_dir=self.environment.project_dir,
                )
            )

    def read_version_tag(self, component: ComponentSpec) -> str:
        if not component.version_cmd or not component.version_pattern:
            return UNKNOWN_VERSION

        result = self.runtime.exec_in_component(component, list(component.version_cmd))
        if result.returncode != 0:
            return UNKNOWN_VERSION

        match = re.search(component.version_pattern, result.stdout or "")
        return match.group(1) if match else UNKNOWN_VERSION

    def image_age_days(self, component: ComponentSpec, now: Optional[datetime] = None) -> Optional[int]:
        created = self.runtime.get_image_created(component.image)
        if not created:
            return None

        # Docker reports nanosecond precision, which fromisoformat cannot parse.
        match = re.match(r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})", created)
        if not match:
            return None

        created_at = datetime.strptime(match.group(1), "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        return max(0, (now - created_at).days)

    def collect(self) -> List[ComponentIdentity]:
        self.ensure_running()
        identities: List[ComponentIdentity] = []

        for component in self.environment.components:
            self.console.print(f"[blue]Checking {component.name} ({component.image})...[/blue]")
            version_tag = self.read_version_tag(component)
            age_days = self.image_age_days(component)

            running_hash = self.runtime.get_running_artifact_hash(component)
            latest_hash = self.runtime.pull_latest_artifact(component)

            self.logger.info("%s running version: %s", component.name, version_tag)
            self.logger.info("%s running hash: %s", component.name, running_hash or "<unresolved>")
            self.logger.info("%s latest hash: %s", component.name, latest_hash or "<unresolved>")
            if age_days is not None:
                self.logger.info("%s image age: %s days", component.name, age_days)

            if latest_hash is None:
                self.logger.warning("Latest content hash for %s could not be resolved.", component.name)

            identities.append(
                ComponentIdentity(
                    name=component.name,
                    running_version_tag=version_tag,
                    running_content_hash=running_hash,
                    latest_content_hash=latest_hash,
                    dependency_rank=component.rank,
                    image_age_days=age_days,
                )
            )

        return identities
