"""Full-stop / full-start recovery from a backup snapshot."""

import time
from typing import Optional

from piholeupdater.constants import DEFAULT_ROLLBACK_SETTLE_SECONDS
from piholeupdater.errors import RestoreIncomplete, UpdaterError
from piholeupdater.models import BackupSnapshot, Environment, RunOutcome


class RollbackService:
    """Restores the whole stack; never recovers components one by one."""

    def __init__(
        self,
        environment: Environment,
        runtime,
        backup_service,
        health_service,
        verifier,
        logger,
        console,
        settle_seconds: float = DEFAULT_ROLLBACK_SETTLE_SECONDS,
    ):
        self.environment = environment
        self.runtime = runtime
        self.backup = backup_service
        self.health = health_service
        self.verifier = verifier
        self.logger = logger
        self.console = console
        self.settle_seconds = settle_seconds
        self.failure_reason: Optional[str] = None

    def _fail(self, reason: str) -> RunOutcome:
        self.failure_reason = reason
        self.logger.error("Rollback failed: %s", reason)
        self.console.print(f"[bold red]Rollback failed:[/bold red] {reason}")
        return RunOutcome.FAILED_ROLLBACK_FAILED

    def rollback(self, snapshot: Optional[BackupSnapshot]) -> RunOutcome:
        self.failure_reason = None
        if snapshot is None:
            return self._fail("no backup available")

        self.logger.warning("Rolling back to snapshot %s", snapshot.location)

        try:
            self.console.print("[yellow]Stopping all containers...[/yellow]")
            if not self.runtime.stop_all():
                return self._fail("could not stop the stack")

            self.backup.restore(snapshot)

            self.console.print("[yellow]Restarting services with previous configuration...[/yellow]")
            if not self.runtime.start_all():
                return self._fail("could not start the stack")
        except RestoreIncomplete as exc:
            return self._fail(f"restore incomplete: {exc}")
        except UpdaterError as exc:
            return self._fail(str(exc))

        if self.settle_seconds > 0:
            time.sleep(self.settle_seconds)

        for component in self.environment.components:
            healthy, _, probe = self.health.poll(component)
            if not healthy:
                return self._fail(f"{component.name} did not recover: {probe.detail}")

        smoke = self.verifier.smoke_test()
        if smoke.failed:
            return self._fail(f"smoke test failed: {', '.join(smoke.failed_checks)}")

        self.logger.info("Rollback successful - DNS is working")
        self.console.print("[green]Rollback successful: system restored to its previous state.[/green]")
        return RunOutcome.FAILED_ROLLED_BACK
