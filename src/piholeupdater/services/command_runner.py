"""Subprocess execution service for PiholeUpdater."""

import subprocess
from typing import List, Optional

from piholeupdater.errors import RuntimeUnavailable, UpdaterError
from piholeupdater.services.run_log import CMD, EXIT


class CommandRunner:
    """Runs external commands and records each one with its exit status."""

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.log(CMD, cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                cwd=cwd,
            )
        except FileNotFoundError as exc:
            self.logger.log(EXIT, "Command not found: %s", cmd[0])
            raise RuntimeUnavailable(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            self.logger.log(EXIT, "Command timed out after %ss", effective_timeout)
            raise UpdaterError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            self.logger.log(EXIT, "Command could not be started: %s", exc)
            raise UpdaterError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        self.logger.log(EXIT, "Command exited with code: %s", result.returncode)

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise UpdaterError(message)

        self.logger.debug(message)
        return result
