"""Component health probes and bounded polling."""

import time
from typing import Tuple

from piholeupdater.errors import UpdaterError
from piholeupdater.models import ComponentSpec, ProbeResult


class HealthProbeService:
    """Runs the probe declared by each component inside its container."""

    def __init__(self, runtime, logger, console):
        self.runtime = runtime
        self.logger = logger
        self.console = console

    def probe(self, component: ComponentSpec) -> ProbeResult:
        if not component.probe:
            return ProbeResult(self.runtime.is_running(component.container), "container running")

        try:
            result = self.runtime.exec_in_component(component, list(component.probe))
        except UpdaterError as exc:
            return ProbeResult(False, str(exc))

        output = (result.stdout or "").strip()
        if result.returncode != 0:
            return ProbeResult(False, f"exit code {result.returncode}: {output or (result.stderr or '').strip()}")
        if component.probe_expect and component.probe_expect not in output:
            return ProbeResult(False, f"expected '{component.probe_expect}', got '{output}'")
        return ProbeResult(True, output)

    def poll(self, component: ComponentSpec) -> Tuple[bool, int, ProbeResult]:
        """Waits for the first passing probe within the component's budget.

        Returns ``(healthy, attempts_used, last_result)``.
        """
        if component.settle_seconds > 0:
            self.console.print(f"[yellow]Waiting {component.settle_seconds:g}s for {component.name} to stabilize...[/yellow]")
            time.sleep(component.settle_seconds)

        result = ProbeResult(False, "not probed")
        attempts = max(1, component.health_attempts)
        for attempt in range(1, attempts + 1):
            result = self.probe(component)
            if result.passed:
                self.logger.info("%s is responding (attempt %s/%s)", component.name, attempt, attempts)
                self.console.print(f"[green]  {component.name} is responding[/green]")
                return True, attempt, result

            self.logger.debug("%s probe failed: %s", component.name, result.detail)
            self.console.print(f"[dim]  Waiting... ({attempt}/{attempts})[/dim]")
            if attempt < attempts:
                time.sleep(component.health_interval)

        self.logger.error("%s failed to respond after %s attempts: %s", component.name, attempts, result.detail)
        return False, attempts, result
