import logging
import os
import subprocess
from typing import Any, Callable, Dict, List, Optional, Sequence

import click
from packaging import version
from rich.console import Console

from .constants import (
    COMPOSE_FILE_NAME,
    DEFAULT_BACKUP_ROOT,
    DEFAULT_BLOCK_SENTINELS,
    DEFAULT_BLOCKED_DOMAIN,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_LOG_DIR,
    DEFAULT_PULL_TIMEOUT,
    DEFAULT_RESOLVE_DOMAIN,
    DEFAULT_ROLLBACK_SETTLE_SECONDS,
)
from .errors import UpdaterError, VerificationFailed
from .errors_catalog import actionable_error
from .models import (
    BackupSnapshot,
    ComponentIdentity,
    Decision,
    Environment,
    ExecutionResult,
    RunOutcome,
    UpdatePlan,
)
from .services.backup import BackupService
from .services.command_runner import CommandRunner
from .services.config_loader import ConfigLoader
from .services.decision import DecisionService
from .services.dns_check import DnsCheckService
from .services.docker_runtime import DockerRuntimeService
from .services.environment import EnvironmentService
from .services.executor import UpdateExecutorService
from .services.filesystem import FileSystemService
from .services.health import HealthProbeService
from .services.health_report import HealthReportService
from .services.inventory import InventoryService
from .services.manifest import ManifestService
from .services.planner import UpdatePlannerService
from .services.preflight import PreflightService
from .services.rollback import RollbackService
from .services.run_log import RunLogService
from .services.verifier import VerifierService

console = Console()
logger = logging.getLogger("piholeupdater")


class StackUpdater:
    VALID_DECISIONS = [decision.value for decision in Decision]

    def __init__(
        self,
        project_dir: Optional[str] = None,
        compose_file: str = COMPOSE_FILE_NAME,
        backup_root: str = DEFAULT_BACKUP_ROOT,
        log_dir: str = DEFAULT_LOG_DIR,
        log_file: Optional[str] = None,
        dns_server: Optional[str] = None,
        resolve_domain: str = DEFAULT_RESOLVE_DOMAIN,
        blocked_domain: str = DEFAULT_BLOCKED_DOMAIN,
        block_sentinels: Sequence[str] = DEFAULT_BLOCK_SENTINELS,
        verbose: bool = False,
        decision: Optional[str] = None,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        pull_timeout: float = DEFAULT_PULL_TIMEOUT,
        rollback_settle_seconds: float = DEFAULT_ROLLBACK_SETTLE_SECONDS,
        component_overrides: Optional[Dict[str, Dict[str, Any]]] = None,
        prompt: Callable = click.prompt,
    ):
        if decision is not None and decision not in self.VALID_DECISIONS:
            raise UpdaterError(f"Invalid decision. Supported values: {', '.join(self.VALID_DECISIONS)}")

        self.project_dir = project_dir
        self.compose_file = compose_file
        self.backup_root = backup_root
        self.log_dir = os.path.expanduser(log_dir)
        self.dns_server = dns_server
        self.resolve_domain = resolve_domain
        self.blocked_domain = blocked_domain
        self.block_sentinels = tuple(block_sentinels)
        self.verbose = verbose
        self.decision = decision
        self.pull_timeout = pull_timeout
        self.rollback_settle_seconds = rollback_settle_seconds
        self.prompt = prompt
        self.component_settings = ConfigLoader().merge_components(component_overrides)

        self.run_log = RunLogService(logger=logger, console=console, log_dir=self.log_dir, log_file=log_file)
        self.manifest_service = ManifestService(
            manifest_file=f"{os.path.splitext(self.run_log.log_file)[0]}.json",
            logger=logger,
        )
        self.command_runner = CommandRunner(logger=logger, default_timeout=command_timeout)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.preflight_service = PreflightService(logger=logger, console=console, subprocess_module=subprocess)
        self.environment_service = EnvironmentService(logger=logger, console=console)

        self.environment: Optional[Environment] = None
        self.snapshot: Optional[BackupSnapshot] = None
        self.outcome: Optional[RunOutcome] = None
        self.mutation_started = False

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, timeout=timeout, cwd=cwd)

    def _run_phase(self, name: str, callback, *args, **kwargs):
        self.manifest_service.phase_started(name)

        try:
            result = callback(*args, **kwargs)
        except (Exception, KeyboardInterrupt) as exc:
            self.manifest_service.phase_finished(name, "failed", error=str(exc))
            raise

        self.manifest_service.phase_finished(name, "success")
        return result

    def discover_environment(self) -> Environment:
        compose_cmd = self.preflight_service.run(self._run_cmd)
        return self.environment_service.discover(
            compose_cmd=compose_cmd,
            component_settings=self.component_settings,
            backup_root=self.backup_root,
            log_dir=self.log_dir,
            project_dir=self.project_dir,
            compose_file=self.compose_file,
            dns_server=self.dns_server,
        )

    def build_runtime(self, environment: Environment):
        return DockerRuntimeService(
            environment=environment,
            run_cmd=self._run_cmd,
            logger=logger,
            pull_timeout=self.pull_timeout,
        )

    def build_dns_check(self, environment: Environment) -> DnsCheckService:
        return DnsCheckService(server=environment.dns_server)

    def _build_services(self, environment: Environment):
        self.runtime = self.build_runtime(environment)
        self.dns_check = self.build_dns_check(environment)
        self.inventory_service = InventoryService(environment, self.runtime, logger, console)
        self.planner_service = UpdatePlannerService(logger, console)
        self.decision_service = DecisionService(logger, console, preset=self.decision, prompt=self.prompt)
        self.backup_service = BackupService(environment, self.runtime, self.filesystem_service, logger, console)
        self.health_service = HealthProbeService(self.runtime, logger, console)
        self.executor_service = UpdateExecutorService(environment, self.runtime, self.health_service, logger, console)
        self.verifier_service = VerifierService(
            environment,
            self.runtime,
            self.dns_check,
            logger,
            console,
            resolve_domain=self.resolve_domain,
            blocked_domain=self.blocked_domain,
            block_sentinels=self.block_sentinels,
        )
        self.rollback_service = RollbackService(
            environment,
            self.runtime,
            self.backup_service,
            self.health_service,
            self.verifier_service,
            logger,
            console,
            settle_seconds=self.rollback_settle_seconds,
        )
        self.health_report_service = HealthReportService(
            environment, self.runtime, self.verifier_service, logger, console
        )

    def prepare(self):
        self.run_log.phase("Phase 0: Dependency checks & environment detection")
        self.environment = self._run_phase("discover_environment", self.discover_environment)
        self._build_services(self.environment)
        self.manifest_service.start_run(
            run_id=self.environment.run_id,
            metadata={
                "project_dir": self.environment.project_dir,
                "dns_server": self.environment.dns_server,
                "components": [spec.name for spec in self.environment.components],
                "decision": self.decision,
            },
        )
        self.manifest_service.add_artifact("log_file", self.run_log.log_file)

    def gather(self) -> List[ComponentIdentity]:
        self.run_log.phase("Phase 1: Gathering system information")
        identities = self._run_phase("collect_inventory", self.inventory_service.collect)
        self.manifest_service.set_components(
            [
                {
                    "name": identity.name,
                    "version": identity.running_version_tag,
                    "running_hash": identity.running_content_hash,
                    "latest_hash": identity.latest_content_hash,
                    "image_age_days": identity.image_age_days,
                }
                for identity in identities
            ]
        )

        preflight = self.dns_check.check_resolution(self.resolve_domain)
        if preflight.passed:
            logger.info("Pre-flight DNS test: PASSED")
            console.print("[green]DNS is working before update.[/green]")
        else:
            logger.warning("Pre-flight DNS test: FAILED (%s)", preflight.detail)
            console.print("[yellow]DNS issue detected before update - proceed with caution.[/yellow]")
        return identities

    def build_plan(self, identities: List[ComponentIdentity]) -> UpdatePlan:
        self.run_log.phase("Phase 2: Analysis & recommendations")
        plan = self._run_phase("plan", self.planner_service.plan, identities)
        self.planner_service.render(plan, identities, self.environment)
        self.manifest_service.set_plan(plan.names)
        return plan

    def take_backup(self) -> BackupSnapshot:
        self.run_log.phase("Phase 4: Creating backup")
        snapshot = self._run_phase("backup", self.backup_service.snapshot)
        self.manifest_service.add_artifact("backup", snapshot.location)
        return snapshot

    def execute(self, plan: UpdatePlan) -> ExecutionResult:
        self.run_log.phase("Phase 5: Executing update")
        self.mutation_started = True
        return self._run_phase("execute", self.executor_service.execute, plan)

    def recover(
        self,
        reason: str,
        failed_component: Optional[str] = None,
        failed_checks: Optional[List[str]] = None,
    ) -> RunOutcome:
        self.run_log.phase("Rollback: restoring previous state")
        log_file = self.run_log.log_file

        if self.snapshot is None:
            if failed_component:
                spec = self.environment.component(failed_component)
                message = actionable_error(
                    "update_failed_no_backup",
                    component=failed_component,
                    log_file=log_file,
                    container=spec.container or failed_component,
                    service=spec.service or failed_component,
                )
            else:
                checks = ", ".join(failed_checks) if failed_checks else reason
                message = actionable_error("verification_failed_no_backup", checks=checks, log_file=log_file)
            logger.error("No backup available - cannot rollback automatically")
            console.print(f"[bold red]Error:[/bold red] {message}")
            return RunOutcome.FAILED_NOT_ROLLED_BACK

        outcome = self._run_phase("rollback", self.rollback_service.rollback, self.snapshot)
        if outcome is RunOutcome.FAILED_ROLLED_BACK:
            console.print(f"[yellow]{actionable_error('rolled_back', reason=reason, log_file=log_file)}[/yellow]")
        else:
            message = actionable_error(
                "rollback_failed",
                reason=self.rollback_service.failure_reason or "unknown",
                log_file=log_file,
                backup=self.snapshot.location,
            )
            console.print(f"[bold red]CRITICAL:[/bold red] {message}")
        return outcome

    @staticmethod
    def describe_version_change(old: str, new: str) -> str:
        try:
            old_version = version.parse(old)
            new_version = version.parse(new)
        except version.InvalidVersion:
            return f"{old} -> {new}"

        if new_version > old_version:
            return f"{old} -> {new} (upgraded)"
        if new_version < old_version:
            return f"{old} -> {new} (downgraded)"
        return f"{new} (version tag unchanged, new build)"

    def summarize(self, plan: UpdatePlan):
        self.run_log.phase("Phase 7: Update complete - success")
        console.print(f"[bold green]Updated components: {', '.join(plan.names)}[/bold green]")
        for entry in plan:
            new_tag = self.inventory_service.read_version_tag(self.environment.component(entry.name))
            change = self.describe_version_change(entry.running_version_tag, new_tag)
            logger.info("New version - %s: %s", entry.name, change)
            console.print(f"  {entry.name}: {change}")

        if self.snapshot:
            console.print(f"Backup location: {self.snapshot.location}")
        console.print(f"Log file: {self.run_log.log_file}")
        console.print(f"Web interface: http://{self.environment.dns_server}/admin")

    def _workflow(self) -> RunOutcome:
        self.prepare()
        identities = self.gather()
        plan = self.build_plan(identities)

        if plan.is_empty:
            logger.info("All components are current - no updates needed")
            console.print("[bold green]All components are current - no updates needed![/bold green]")
            return RunOutcome.NO_UPDATE_NEEDED

        self.run_log.phase("Phase 3: Your decision")
        decision = self.decision_service.ask(plan)
        if decision is Decision.CANCEL:
            logger.info("Update cancelled by user")
            console.print("[bold red]Update cancelled - no changes made.[/bold red]")
            return RunOutcome.CANCELLED_BY_USER

        if decision is Decision.BACKUP_THEN_PROCEED:
            self.snapshot = self.take_backup()

        execution = self.execute(plan)
        if not execution.succeeded:
            raise execution.error

        self.run_log.phase("Phase 6: Post-update verification")
        verification = self._run_phase("verify", self.verifier_service.verify)
        if verification.failed:
            raise VerificationFailed(verification.failed_checks)

        logger.info("All verification tests passed")
        self.summarize(plan)
        return RunOutcome.SUCCESS

    def run(self) -> int:
        self.run_log.open()
        error: Optional[str] = None

        try:
            logger.info("Starting PiholeUpdater...")
            logger.info("Log file: %s", self.run_log.log_file)
            self.outcome = self._workflow()
        except KeyboardInterrupt:
            if self.mutation_started:
                console.print("[bold red]Operation interrupted while changes were in progress.[/bold red]")
                logger.warning("Operation interrupted after mutation started; components may be in a partial state")
                console.print("Review `docker compose ps` before retrying.")
                error = "Operation interrupted after changes were made; no rollback was attempted."
                self.outcome = RunOutcome.FAILED_NOT_ROLLED_BACK
            else:
                console.print("[bold red]Operation cancelled by user.[/bold red]")
                logger.warning("Operation cancelled by user")
                error = "Operation cancelled by user."
                self.outcome = RunOutcome.CANCELLED_BY_USER
        except UpdaterError as exc:
            error = str(exc)
            logger.error(error)
            console.print(f"[bold red]Error:[/bold red] {exc}")
            self.outcome = self._after_error(exc)
        except Exception as exc:
            error = str(exc)
            logger.exception("Unexpected error")
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            self.outcome = self._after_error(exc)
        finally:
            if self.outcome is None:
                self.outcome = RunOutcome.ABORTED
            self.manifest_service.finalize(self.outcome.value, error=error)
            logger.info("Run outcome: %s", self.outcome.value)
            self.run_log.close()

        return self.outcome.exit_code

    def _after_error(self, exc: Exception) -> RunOutcome:
        # Before any mutation the run fails closed; afterwards recovery is attempted.
        if not self.mutation_started or self.environment is None:
            return RunOutcome.ABORTED
        try:
            return self.recover(
                str(exc),
                failed_component=getattr(exc, "component", None),
                failed_checks=getattr(exc, "checks", None),
            )
        except Exception as recovery_error:
            logger.error("Recovery failed: %s", recovery_error)
            return RunOutcome.FAILED_ROLLBACK_FAILED

    def run_check(self) -> int:
        self.run_log.open()
        try:
            self.prepare()
            healthy = self._run_phase("health_report", self.health_report_service.run)
            self.manifest_service.finalize("healthy" if healthy else "needs_attention")
            return 0 if healthy else 1
        except UpdaterError as exc:
            logger.error(str(exc))
            console.print(f"[bold red]Error:[/bold red] {exc}")
            self.manifest_service.finalize("aborted", error=str(exc))
            return 1
        finally:
            self.run_log.close()
