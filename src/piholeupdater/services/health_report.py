"""Routine health report for the running stack."""

import re
from typing import Optional, Sequence

from rich.table import Table

from piholeupdater.constants import LOG_ERROR_IGNORED, LOG_ERROR_PATTERN
from piholeupdater.models import Environment


class HealthReportService:
    """Prints container, DNS, blocking, cache and log status; returns overall health."""

    def __init__(
        self,
        environment: Environment,
        runtime,
        verifier,
        logger,
        console,
        log_component: Optional[str] = "pihole",
        ignored_patterns: Sequence[str] = LOG_ERROR_IGNORED,
    ):
        self.environment = environment
        self.runtime = runtime
        self.verifier = verifier
        self.logger = logger
        self.console = console
        self.log_component = log_component
        self.ignored_patterns = [re.compile(pattern, re.IGNORECASE) for pattern in ignored_patterns]

    def count_log_errors(self, since: str = "1h") -> int:
        if not self.log_component:
            return 0
        try:
            component = self.environment.component(self.log_component)
        except KeyError:
            return 0

        output = self.runtime.logs_since(component, since)
        error_line = re.compile(LOG_ERROR_PATTERN, re.IGNORECASE)
        return sum(
            1
            for line in output.splitlines()
            if error_line.search(line) and not any(pattern.search(line) for pattern in self.ignored_patterns)
        )

    def run(self) -> bool:
        self.console.rule("[bold]Pi-hole health check[/bold]")

        table = Table(title="Containers")
        table.add_column("Component")
        table.add_column("Container")
        table.add_column("Status")
        running = 0
        for spec in self.environment.components:
            status = self.runtime.container_status(spec.container)
            if status != "missing" and self.runtime.is_running(spec.container):
                running += 1
            table.add_row(spec.name, spec.container or "", status)
        self.console.print(table)
        expected = len(self.environment.components)
        self.console.print(f"Running: {running}/{expected}")

        result = self.verifier.verify(full=True)

        errors = self.count_log_errors()
        if errors:
            self.console.print(f"[yellow]Found {errors} potential error(s) in the last hour of logs.[/yellow]")
        else:
            self.console.print("[green]No errors in the last hour of logs.[/green]")

        volumes = self.runtime.list_volumes(self.environment.volume_prefix)
        self.console.print(f"Volumes found: {len(volumes)}")

        healthy = running == expected and not result.failed
        self.logger.info(
            "Health check: running=%s/%s failed_checks=%s log_errors=%s",
            running,
            expected,
            ",".join(result.failed_checks) or "none",
            errors,
        )
        if healthy:
            self.console.print("[bold green]Summary: HEALTHY[/bold green]")
        else:
            self.console.print("[bold yellow]Summary: NEEDS ATTENTION[/bold yellow]")
        return healthy
