"""Domain errors for PiholeUpdater."""

from typing import Optional


class UpdaterError(RuntimeError):
    """Raised when the update cannot continue safely."""


class RuntimeUnavailable(UpdaterError):
    """The container runtime cannot be reached."""


class ComponentNotRunning(UpdaterError):
    """An expected component is absent or stopped."""


class BackupIncomplete(UpdaterError):
    """A declared volume or config source could not be archived."""


class RestoreIncomplete(UpdaterError):
    """A backup artifact is missing or could not be extracted."""


class VerificationFailed(UpdaterError):
    """Post-update verification did not pass."""

    def __init__(self, checks):
        self.checks = list(checks)
        super().__init__(f"Post-update verification failed: {', '.join(self.checks)}")


class StepError(UpdaterError):
    """Base class for failures bound to a single plan entry."""

    def __init__(self, component: str, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.component = component
        self.detail = detail


class StepApplyFailed(StepError):
    """The runtime rejected the build/restart of a component."""


class StepUnhealthy(StepError):
    """A component did not pass its health probe within its budget."""
