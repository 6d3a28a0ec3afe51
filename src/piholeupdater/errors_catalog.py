"""Actionable error catalog for PiholeUpdater."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "runtime_unavailable": {
        "what": "Docker is not reachable: {reason}",
        "next": "Start the daemon with `sudo systemctl start docker` and check that your user can run `docker ps`.",
    },
    "compose_unavailable": {
        "what": "Docker Compose is not available.",
        "next": "Install Docker Compose v2 (`docker compose`) or v1 (`docker-compose`) and try again.",
    },
    "project_not_found": {
        "what": "Cannot find a compose project in {path}.",
        "next": "Run from the project directory or pass `--project-dir` pointing at the directory holding docker-compose.yml.",
    },
    "component_not_detected": {
        "what": "Could not detect the {component} service in {compose_file}.",
        "next": "Check that a service with `container_name` containing `{match}` is declared.",
    },
    "components_not_running": {
        "what": "Containers are not running: {containers}",
        "next": "Start them with `cd {project_dir} && docker compose up -d`.",
    },
    "backup_incomplete": {
        "what": "Backup could not be completed: {reason}",
        "next": "No changes were made. Free disk space or fix volume access, then retry.",
    },
    "update_failed_no_backup": {
        "what": "Update of {component} failed and no backup was created.",
        "next": "Check `{log_file}`, run `docker logs {container}` and try `docker compose restart {service}`.",
    },
    "verification_failed_no_backup": {
        "what": "Verification failed ({checks}) and no backup was created.",
        "next": "Check `{log_file}` and restart services with `docker compose restart`.",
    },
    "rolled_back": {
        "what": "System was rolled back to the previous state after: {reason}",
        "next": "Review `{log_file}`, investigate the failure and try the update again later.",
    },
    "rollback_failed": {
        "what": "Automatic rollback failed: {reason}",
        "next": "Manual recovery required. Check `{log_file}`, run `docker compose ps`, and restore from `{backup}`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
