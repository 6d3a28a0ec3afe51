"""Configuration loader for PiholeUpdater."""

from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from piholeupdater.constants import DEFAULT_COMPONENTS
from piholeupdater.errors import UpdaterError
from piholeupdater.models import ComponentSpec


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "project_dir",
        "compose_file",
        "backup_root",
        "log_dir",
        "log_file",
        "dns_server",
        "resolve_domain",
        "blocked_domain",
        "block_sentinels",
        "verbose",
        "decision",
        "command_timeout",
        "pull_timeout",
        "rollback_settle_seconds",
        "check_only",
        "components",
    }
    COMPONENT_KEYS = {f.name for f in fields(ComponentSpec)} - {"name", "service", "container"}
    LIST_COMPONENT_KEYS = {f.name for f in fields(ComponentSpec) if f.default == ()}
    REQUIRED_COMPONENT_KEYS = ("match", "image", "rank")

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise UpdaterError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise UpdaterError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise UpdaterError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise UpdaterError(f"Unknown configuration keys: {unknown_list}")

        return parsed

    def merge_components(self, overrides: Optional[Dict[str, Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """Applies per-component overrides on top of the declared stack."""
        merged = [dict(entry) for entry in DEFAULT_COMPONENTS]
        if not overrides:
            return merged
        if not isinstance(overrides, dict):
            raise UpdaterError("`components` must be a mapping of component name to settings.")

        by_name = {entry["name"]: entry for entry in merged}
        for name, settings in overrides.items():
            if not isinstance(settings, dict):
                raise UpdaterError(f"Settings for component '{name}' must be a mapping.")

            unknown = sorted(set(settings) - self.COMPONENT_KEYS)
            if unknown:
                raise UpdaterError(f"Unknown settings for component '{name}': {', '.join(unknown)}")

            not_lists = sorted(
                key for key in set(settings) & self.LIST_COMPONENT_KEYS if not isinstance(settings[key], list)
            )
            if not_lists:
                raise UpdaterError(f"Settings for component '{name}' must be lists: {', '.join(not_lists)}")

            normalized = {
                key: tuple(value) if isinstance(value, list) else value
                for key, value in settings.items()
            }

            if name in by_name:
                by_name[name].update(normalized)
                continue

            missing = [key for key in self.REQUIRED_COMPONENT_KEYS if key not in normalized]
            if missing:
                raise UpdaterError(f"New component '{name}' is missing: {', '.join(missing)}")
            entry = {"name": name, **normalized}
            merged.append(entry)
            by_name[name] = entry

        return merged
