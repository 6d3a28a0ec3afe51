"""Environment discovery from the compose project."""

import os
import re
import socket
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from piholeupdater.constants import COMPOSE_FILE_NAME, DEFAULT_PROJECT_DIR
from piholeupdater.errors import UpdaterError
from piholeupdater.errors_catalog import actionable_error
from piholeupdater.models import ComponentSpec, Environment


class EnvironmentService:
    """Builds the immutable Environment a run works against."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def locate_project_dir(self, project_dir: Optional[str], compose_file: str = COMPOSE_FILE_NAME) -> str:
        if project_dir:
            candidates = [project_dir]
        else:
            candidates = [os.getcwd(), DEFAULT_PROJECT_DIR]

        for candidate in candidates:
            path = Path(candidate).expanduser()
            if (path / compose_file).is_file():
                return str(path.resolve())

        raise UpdaterError(actionable_error("project_not_found", path=", ".join(candidates)))

    def load_compose(self, compose_path: str) -> Dict[str, Any]:
        try:
            parsed = yaml.safe_load(Path(compose_path).read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise UpdaterError(f"Invalid compose file '{compose_path}': {exc}") from exc

        if not isinstance(parsed, dict) or not isinstance(parsed.get("services"), dict):
            raise UpdaterError(f"Compose file '{compose_path}' has no services mapping.")
        return parsed

    @staticmethod
    def project_name(compose: Dict[str, Any], project_dir: str) -> str:
        name = compose.get("name") or os.path.basename(project_dir.rstrip(os.sep))
        return re.sub(r"[^a-z0-9_-]", "", str(name).lower())

    @staticmethod
    def find_service(services: Dict[str, Any], match: str, project: str) -> Optional[Tuple[str, str]]:
        for service_name, definition in services.items():
            container = (definition or {}).get("container_name")
            if container and match in str(container):
                return service_name, str(container)

        for service_name, definition in services.items():
            if match in service_name:
                container = (definition or {}).get("container_name") or f"{project}-{service_name}-1"
                return service_name, str(container)
        return None

    @staticmethod
    def resolve_volume(compose: Dict[str, Any], short_name: str, prefix: str) -> str:
        definition = (compose.get("volumes") or {}).get(short_name) or {}
        if definition.get("name"):
            return str(definition["name"])
        if definition.get("external"):
            return short_name
        return f"{prefix}{short_name}"

    @staticmethod
    def detect_device_ip() -> str:
        # A connected UDP socket exposes the primary interface address without sending packets.
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            try:
                probe.connect(("192.0.2.1", 53))
                return probe.getsockname()[0]
            except OSError:
                return "127.0.0.1"

    def build_components(
        self,
        compose: Dict[str, Any],
        compose_path: str,
        settings: Iterable[Dict[str, Any]],
        prefix: str,
        project: str,
    ) -> Tuple[ComponentSpec, ...]:
        services = compose["services"]
        components: List[ComponentSpec] = []

        for entry in settings:
            spec = ComponentSpec(**entry)
            found = self.find_service(services, spec.match, project)
            if not found:
                raise UpdaterError(
                    actionable_error(
                        "component_not_detected",
                        component=spec.name,
                        compose_file=compose_path,
                        match=spec.match,
                    )
                )

            service_name, container = found
            volumes = tuple(self.resolve_volume(compose, name, prefix) for name in spec.volumes)
            components.append(replace(spec, service=service_name, container=container, volumes=volumes))

        return tuple(components)

    def discover(
        self,
        compose_cmd: List[str],
        component_settings: Iterable[Dict[str, Any]],
        backup_root: str,
        log_dir: str,
        project_dir: Optional[str] = None,
        compose_file: str = COMPOSE_FILE_NAME,
        dns_server: Optional[str] = None,
    ) -> Environment:
        resolved_dir = self.locate_project_dir(project_dir, compose_file)
        compose_path = os.path.join(resolved_dir, compose_file)
        compose = self.load_compose(compose_path)

        project = self.project_name(compose, resolved_dir)
        prefix = f"{project}_"
        components = self.build_components(compose, compose_path, component_settings, prefix, project)

        environment = Environment(
            run_id=uuid.uuid4().hex[:10],
            project_dir=resolved_dir,
            compose_file=compose_path,
            compose_cmd=tuple(compose_cmd),
            dns_server=dns_server or self.detect_device_ip(),
            volume_prefix=prefix,
            components=components,
            backup_root=os.path.expanduser(backup_root),
            log_dir=os.path.expanduser(log_dir),
        )

        self.logger.info("Project directory: %s", environment.project_dir)
        self.logger.info("DNS entry point: %s", environment.dns_server)
        self.logger.info("Volume prefix: %s", environment.volume_prefix)
        for spec in environment.components:
            self.logger.info("Component %s: service=%s container=%s", spec.name, spec.service, spec.container)
        return environment
