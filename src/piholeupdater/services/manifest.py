"""Machine-readable record of one update run, written next to the run log."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def _elapsed(started: Optional[str], finished: Optional[str]) -> Optional[float]:
    if not started or not finished:
        return None
    return (datetime.fromisoformat(finished) - datetime.fromisoformat(started)).total_seconds()


class ManifestService:
    """Tracks phases, inventory, plan and outcome; rewrites the JSON file on every change."""

    def __init__(self, manifest_file: str, logger):
        self.manifest_file = manifest_file
        self.logger = logger
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "outcome": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "metadata": {},
            "components": [],
            "plan": [],
            "phases": [],
            "artifacts": {},
            "error": None,
        }

    def _update(self, **values: Any):
        self.manifest.update(values)
        self.write()

    def start_run(self, run_id: str, metadata: Dict[str, Any]):
        self._update(run_id=run_id, outcome="running", started_at=self._now(), metadata=metadata)

    def set_components(self, components: List[Dict[str, Any]]):
        self._update(components=components)

    def set_plan(self, names: List[str]):
        self._update(plan=list(names))

    def _open_phase(self, name: str) -> Optional[Dict[str, Any]]:
        for phase in reversed(self.manifest["phases"]):
            if phase["name"] == name and phase["finished_at"] is None:
                return phase
        return None

    def phase_started(self, name: str):
        self.manifest["phases"].append({"name": name, "status": "running", "started_at": self._now(), "finished_at": None})
        self.write()

    def phase_finished(self, name: str, status: str, error: Optional[str] = None):
        phase = self._open_phase(name)
        if phase is None:
            self.logger.debug("Manifest phase '%s' was not started", name)
            return

        phase["status"] = status
        phase["finished_at"] = self._now()
        phase["duration_seconds"] = _elapsed(phase["started_at"], phase["finished_at"])
        if error:
            phase["error"] = error
        self.write()

    def add_artifact(self, key: str, value: str):
        self.manifest["artifacts"][key] = value
        self.write()

    def finalize(self, outcome: str, error: Optional[str] = None):
        finished_at = self._now()
        self._update(
            outcome=outcome,
            finished_at=finished_at,
            duration_seconds=_elapsed(self.manifest["started_at"], finished_at),
            error=error,
        )

    def write(self):
        directory = os.path.dirname(self.manifest_file) or "."
        os.makedirs(directory, exist_ok=True)

        # Same-directory temp file keeps os.replace atomic.
        fd, temp_path = tempfile.mkstemp(prefix=".manifest-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.manifest, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.manifest_file)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            if os.path.exists(temp_path):
                os.remove(temp_path)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
