"""Sequential plan execution with per-step health polling."""

from piholeupdater.errors import StepApplyFailed, StepUnhealthy, UpdaterError
from piholeupdater.models import (
    ComponentSpec,
    Environment,
    ExecutionResult,
    StepResult,
    StepState,
    UpdatePlan,
)


class UpdateExecutorService:
    """Applies plan entries strictly in order and halts on the first failure."""

    def __init__(self, environment: Environment, runtime, health_service, logger, console):
        self.environment = environment
        self.runtime = runtime
        self.health = health_service
        self.logger = logger
        self.console = console

    def _apply(self, component: ComponentSpec) -> bool:
        if component.build:
            self.console.print(f"[blue]Rebuilding {component.name}...[/blue]")
            if not self.runtime.build_component(component):
                self.logger.error("%s build failed", component.name)
                return False

        self.console.print(f"[blue]Restarting {component.name}...[/blue]")
        if not self.runtime.start_component(component):
            self.logger.error("%s restart failed", component.name)
            return False
        return True

    def execute_step(self, component: ComponentSpec, step: StepResult):
        step.state = StepState.APPLYING
        try:
            applied = self._apply(component)
        except UpdaterError as exc:
            applied = False
            step.detail = str(exc)

        if not applied:
            step.state = StepState.APPLY_FAILED
            raise StepApplyFailed(
                component.name,
                f"Update of {component.name} could not be applied.",
                detail=step.detail or None,
            )

        step.state = StepState.HEALTH_POLLING
        healthy, attempts, probe = self.health.poll(component)
        step.attempts = attempts
        step.detail = probe.detail

        if not healthy:
            step.state = StepState.UNHEALTHY
            raise StepUnhealthy(
                component.name,
                f"{component.name} did not become healthy after {attempts} probe(s).",
                detail=probe.detail,
            )

        step.state = StepState.HEALTHY
        self.logger.info("%s container status: %s", component.name, self.runtime.container_status(component.container))

    def execute(self, plan: UpdatePlan) -> ExecutionResult:
        result = ExecutionResult(steps=[StepResult(component=entry.name) for entry in plan])

        for index, (entry, step) in enumerate(zip(plan, result.steps), start=1):
            component = self.environment.component(entry.name)
            self.logger.info("Step %s/%s: updating %s", index, len(plan), entry.name)
            self.console.print(f"[bold]Step {index}/{len(plan)}: {entry.name}[/bold]")

            try:
                self.execute_step(component, step)
            except (StepApplyFailed, StepUnhealthy) as exc:
                self.logger.error("%s", exc)
                result.error = exc
                return result

        return result
