"""End-to-end verification of the deployed stack."""

import time
from typing import Sequence

from piholeupdater.constants import (
    DEFAULT_BLOCK_SENTINELS,
    DEFAULT_BLOCKED_DOMAIN,
    DEFAULT_CACHE_MISS_DOMAIN,
    DEFAULT_RESOLVE_DOMAIN,
)
from piholeupdater.models import CheckResult, Environment, VerificationResult

HEALTHY_STATES = {"healthy", "running"}


class VerifierService:
    """Runs the named verification checks; all gating checks must pass."""

    def __init__(
        self,
        environment: Environment,
        runtime,
        dns_check,
        logger,
        console,
        resolve_domain: str = DEFAULT_RESOLVE_DOMAIN,
        blocked_domain: str = DEFAULT_BLOCKED_DOMAIN,
        block_sentinels: Sequence[str] = DEFAULT_BLOCK_SENTINELS,
    ):
        self.environment = environment
        self.runtime = runtime
        self.dns_check = dns_check
        self.logger = logger
        self.console = console
        self.resolve_domain = resolve_domain
        self.blocked_domain = blocked_domain
        self.block_sentinels = tuple(block_sentinels)

    def check_components_healthy(self) -> CheckResult:
        statuses = {
            spec.name: self.runtime.container_status(spec.container) for spec in self.environment.components
        }
        unhealthy = {name: status for name, status in statuses.items() if status not in HEALTHY_STATES}
        total = len(statuses)
        if unhealthy:
            detail = ", ".join(f"{name}={status}" for name, status in unhealthy.items())
            return CheckResult("components_healthy", False, f"{total - len(unhealthy)}/{total} healthy ({detail})")
        return CheckResult("components_healthy", True, f"{total}/{total} healthy")

    def check_dns_resolution(self) -> CheckResult:
        probe = self.dns_check.check_resolution(self.resolve_domain)
        return CheckResult("dns_resolution", probe.passed, probe.detail)

    def check_ad_blocking(self) -> CheckResult:
        probe = self.dns_check.check_blocked(self.blocked_domain, self.block_sentinels)
        return CheckResult("ad_blocking", probe.passed, probe.detail)

    def sample_latency(self) -> CheckResult:
        miss_domain = DEFAULT_CACHE_MISS_DOMAIN.format(stamp=int(time.time()))
        first = self.dns_check.time_query(miss_domain)
        second = self.dns_check.time_query(self.resolve_domain)
        detail = f"first query {first * 1000:.0f} ms, cached query {second * 1000:.0f} ms"
        return CheckResult("latency", True, detail, informational=True)

    def _report(self, check: CheckResult):
        if check.informational:
            self.logger.info("Verification: %s - %s", check.name, check.detail)
            self.console.print(f"[dim]  {check.name}: {check.detail}[/dim]")
        elif check.passed:
            self.logger.info("Verification: %s - PASS (%s)", check.name, check.detail)
            self.console.print(f"[green]  {check.name}: PASS[/green] {check.detail}")
        else:
            self.logger.error("Verification: %s - FAIL (%s)", check.name, check.detail)
            self.console.print(f"[red]  {check.name}: FAIL[/red] {check.detail}")

    def verify(self, full: bool = True) -> VerificationResult:
        checks = [self.check_components_healthy, self.check_dns_resolution]
        if full:
            checks.extend([self.check_ad_blocking, self.sample_latency])

        result = VerificationResult()
        for check in checks:
            outcome = check()
            self._report(outcome)
            result.checks.append(outcome)
        return result

    def smoke_test(self) -> VerificationResult:
        return self.verify(full=False)
