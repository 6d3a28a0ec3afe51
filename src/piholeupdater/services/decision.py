"""The single operator decision point before any mutation."""

from typing import Callable, Optional

import click

from piholeupdater.models import Decision, UpdatePlan

_CHOICES = {
    "1": Decision.PROCEED,
    "2": Decision.BACKUP_THEN_PROCEED,
    "3": Decision.CANCEL,
}


class DecisionService:
    """Asks proceed / backup-then-proceed / cancel."""

    def __init__(self, logger, console, preset: Optional[str] = None, prompt: Callable = click.prompt):
        self.logger = logger
        self.console = console
        self.preset = preset
        self.prompt = prompt

    def ask(self, plan: UpdatePlan) -> Decision:
        if self.preset:
            decision = Decision(self.preset)
            self.logger.info("Using preset decision: %s", decision.value)
            return decision

        self.console.print(f"[bold yellow]This will update: {', '.join(plan.names)}[/bold yellow]")
        self.console.print("  1) Proceed with update")
        self.console.print("  2) Create backup first, then update (recommended)")
        self.console.print("  3) Cancel (no changes)")

        choice = self.prompt("Enter choice", type=click.Choice(sorted(_CHOICES)), show_choices=False)
        decision = _CHOICES[choice]
        self.logger.info("User selected option: %s", decision.value)

        if decision is Decision.PROCEED:
            self.console.print("[yellow]Proceeding WITHOUT backup: automatic rollback will not be available.[/yellow]")
            confirm = self.prompt("Are you absolutely sure? (yes/no)", default="no")
            self.logger.info("User confirmation for no-backup: %s", confirm)
            if str(confirm).strip().lower() != "yes":
                return Decision.CANCEL

        return decision
