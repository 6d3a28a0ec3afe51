"""Update planning from collected component identities."""

from typing import Sequence

from rich.table import Table

from piholeupdater.models import ComponentIdentity, Environment, UpdatePlan


class UpdatePlannerService:
    """Derives the ordered update plan and presents it."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def plan(self, identities: Sequence[ComponentIdentity]) -> UpdatePlan:
        unknown = tuple(identity.name for identity in identities if not identity.is_known)
        for name in unknown:
            self.logger.warning("Update state of %s is unknown; excluding it from the plan.", name)

        # sorted() is stable, so equal ranks keep the collector's order.
        outdated = sorted(
            (identity for identity in identities if identity.is_outdated),
            key=lambda identity: identity.dependency_rank,
        )
        return UpdatePlan(entries=tuple(outdated), unknown=unknown)

    def render(self, plan: UpdatePlan, identities: Sequence[ComponentIdentity], environment: Environment):
        table = Table(title="Component status")
        table.add_column("Component")
        table.add_column("Version")
        table.add_column("Status")
        table.add_column("Effort")
        table.add_column("Risk")

        planned = set(plan.names)
        for identity in identities:
            spec = environment.component(identity.name)
            if identity.name in planned:
                status = "[yellow]update available[/yellow]"
            elif not identity.is_known:
                status = "[red]unknown[/red]"
            else:
                status = "[green]current[/green]"
            table.add_row(identity.name, identity.running_version_tag, status, spec.update_effort, spec.risk_level)

        self.console.print(table)

        if plan.is_empty:
            return

        self.console.print("[bold]Update order:[/bold]")
        for index, entry in enumerate(plan, start=1):
            spec = environment.component(entry.name)
            action = "rebuild" if spec.build else "pull and restart"
            self.console.print(f"  {index}. {entry.name} ({action}, rank {entry.dependency_rank})")
        self.logger.info("Update plan: %s", ", ".join(plan.names))
