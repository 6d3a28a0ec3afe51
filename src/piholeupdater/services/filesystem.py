"""Filesystem helpers for PiholeUpdater."""

import json
import logging
import os
import shutil
import sys
from typing import Any, Dict

from rich.console import Console


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except OSError as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def ensure_dir(self, path: str, mode: int) -> str:
        os.makedirs(path, exist_ok=True)
        self.set_permissions(path, mode)
        return path

    def copy_file(self, source: str, destination: str, mode: int):
        shutil.copy2(source, destination)
        self.set_permissions(destination, mode)
        self.logger.debug("Copied %s to %s", source, destination)

    def write_text(self, path: str, content: str, mode: int):
        with open(path, "w", encoding="utf-8", newline="\n") as file_obj:
            file_obj.write(content)
        self.set_permissions(path, mode)

    def write_json(self, path: str, data: Dict[str, Any], mode: int):
        self.write_text(path, json.dumps(data, indent=2, sort_keys=True) + "\n", mode)

    def is_nonempty_file(self, path: str) -> bool:
        return os.path.isfile(path) and os.path.getsize(path) > 0
