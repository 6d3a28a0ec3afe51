"""Backup snapshots of configuration and persisted volumes."""

import os
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List

from piholeupdater.constants import DIR_MODE, FILE_MODE
from piholeupdater.errors import BackupIncomplete, RestoreIncomplete, UpdaterError
from piholeupdater.errors_catalog import actionable_error
from piholeupdater.models import BackupSnapshot, ComponentSpec, Environment

COMPOSE_BACKUP_NAME = "docker-compose-backup.yml"
SNAPSHOT_DESCRIPTOR = "snapshot.json"


class BackupService:
    """Creates complete snapshots and restores them."""

    def __init__(self, environment: Environment, runtime, filesystem_service, logger, console):
        self.environment = environment
        self.runtime = runtime
        self.filesystem = filesystem_service
        self.logger = logger
        self.console = console

    @staticmethod
    def archive_name(volume: str) -> str:
        return f"{volume}.tar.gz"

    def _capture_config(self, component: ComponentSpec, location: str) -> str:
        for path in component.config_files:
            content = self.runtime.read_file_in_component(component, path)
            if content is None:
                self.logger.debug("Config %s not readable in %s", path, component.container)
                continue
            target = os.path.join(location, f"{component.name}-{os.path.basename(path)}.backup")
            self.filesystem.write_text(target, content, FILE_MODE)
            return target

        raise BackupIncomplete(
            actionable_error(
                "backup_incomplete",
                reason=f"no configuration file of {component.name} could be read "
                f"({', '.join(component.config_files)})",
            )
        )

    def _archive_volumes(self, location: str) -> Dict[str, str]:
        archives: Dict[str, str] = {}
        for volume in self.environment.volumes:
            name = self.archive_name(volume)
            self.console.print(f"[blue]Archiving volume {volume}...[/blue]")
            archived = self.runtime.archive_volume(volume, location, name)
            path = os.path.join(location, name)
            if not archived or not self.filesystem.is_nonempty_file(path):
                raise BackupIncomplete(
                    actionable_error("backup_incomplete", reason=f"volume {volume} could not be archived")
                )
            archives[volume] = path
        return archives

    def snapshot(self) -> BackupSnapshot:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        location = os.path.join(self.environment.backup_root, timestamp)
        self.logger.info("Backup directory: %s", location)

        try:
            self.filesystem.ensure_dir(location, DIR_MODE)

            compose_copy = os.path.join(location, COMPOSE_BACKUP_NAME)
            self.filesystem.copy_file(self.environment.compose_file, compose_copy, FILE_MODE)

            captures: Dict[str, str] = {}
            for component in self.environment.components:
                if component.config_files:
                    captures[component.name] = self._capture_config(component, location)

            archives = self._archive_volumes(location)

            snapshot = BackupSnapshot(
                timestamp=timestamp,
                location=location,
                source_config_copy=compose_copy,
                volume_archives=archives,
                config_captures=captures,
            )
            self.filesystem.write_json(os.path.join(location, SNAPSHOT_DESCRIPTOR), asdict(snapshot), FILE_MODE)
        except BackupIncomplete:
            raise
        except (OSError, UpdaterError) as exc:
            raise BackupIncomplete(actionable_error("backup_incomplete", reason=str(exc))) from exc

        self.logger.info("Backup complete: %s", location)
        self.console.print(f"[green]Backup complete: {location}[/green]")
        return snapshot

    def _missing_artifacts(self, snapshot: BackupSnapshot) -> List[str]:
        expected = [snapshot.source_config_copy, *snapshot.volume_archives.values()]
        return [path for path in expected if not os.path.isfile(path)]

    def restore(self, snapshot: BackupSnapshot):
        self.logger.warning("Restoring from backup: %s", snapshot.location)

        missing = self._missing_artifacts(snapshot)
        if missing:
            raise RestoreIncomplete(f"Backup artifacts are missing: {', '.join(missing)}")

        try:
            self.filesystem.copy_file(snapshot.source_config_copy, self.environment.compose_file, FILE_MODE)
        except OSError as exc:
            raise RestoreIncomplete(f"Could not restore compose file: {exc}") from exc

        for volume, archive in snapshot.volume_archives.items():
            self.logger.info("Restoring volume %s", volume)
            try:
                extracted = self.runtime.extract_volume(volume, os.path.dirname(archive), os.path.basename(archive))
            except UpdaterError as exc:
                raise RestoreIncomplete(f"Extraction of {archive} failed: {exc}") from exc
            if not extracted:
                raise RestoreIncomplete(f"Extraction of {archive} into volume {volume} failed.")

        self.logger.info("Backup restoration complete")
