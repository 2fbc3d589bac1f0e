"""Convergence reporter."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from infra_reconciler.orchestrator.executor import ExecutionResult, ExecutionStatus
from infra_reconciler.orchestrator.planner import ActionType, ReconciliationAction, ReconciliationPlan
from infra_reconciler.utils.logging import get_logger

logger = get_logger(__name__)


class ConvergenceStatus(Enum):
    """Overall outcome of a run."""
    CONVERGED = "converged"
    NEEDS_ATTENTION = "needs_attention"


@dataclass
class ConvergenceSummary:
    """Aggregated outcome of executing a plan."""

    status: ConvergenceStatus
    counts: Dict[str, int] = field(default_factory=dict)
    imported: List[str] = field(default_factory=list)
    deferred: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    pending: List[str] = field(default_factory=list)
    conflicts: List[ReconciliationAction] = field(default_factory=list)
    failures: List[ExecutionResult] = field(default_factory=list)

    def is_converged(self) -> bool:
        return self.status == ConvergenceStatus.CONVERGED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            'status': self.status.value,
            'counts': dict(self.counts),
            'imported': list(self.imported),
            'deferred_to_engine': list(self.deferred),
            'unchanged': list(self.unchanged),
            'removed_from_state': list(self.removed),
            'pending': list(self.pending),
            'conflicts': [
                {
                    'logical_name': c.logical_name,
                    'address': c.address,
                    'reason': c.reason.value,
                    'detail': c.detail,
                    'live_id': c.live_id,
                    'tracked_id': c.tracked_id,
                }
                for c in self.conflicts
            ],
            'failures': [
                {
                    'logical_name': f.logical_name,
                    'action': f.action.action_type.value,
                    'reason': f.reason,
                }
                for f in self.failures
            ],
        }


class ConvergenceReporter:
    """Summarizes execution results and renders them for operators."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def report(self, results: List[ExecutionResult]) -> ConvergenceSummary:
        """Build the convergence summary.

        The run is converged only when nothing conflicted, nothing failed and
        no import was left pending.
        """
        counts = {status.value: 0 for status in ExecutionStatus}
        summary = ConvergenceSummary(status=ConvergenceStatus.CONVERGED, counts=counts)

        for result in results:
            counts[result.status.value] += 1
            action = result.action

            if result.is_failed():
                summary.failures.append(result)
            elif result.is_applied():
                if action.action_type == ActionType.IMPORT:
                    summary.imported.append(action.logical_name)
                else:
                    summary.removed.append(action.logical_name)
            elif action.is_conflict():
                summary.conflicts.append(action)
            elif action.action_type == ActionType.CREATE:
                summary.deferred.append(action.logical_name)
            elif action.action_type == ActionType.NOOP:
                summary.unchanged.append(action.logical_name)
            else:
                # Import that was cancelled or not run: still untracked
                summary.pending.append(action.logical_name)

        if summary.conflicts or summary.failures or summary.pending:
            summary.status = ConvergenceStatus.NEEDS_ATTENTION

        logger.info(
            f"Run {summary.status.value}: {len(summary.imported)} imported, "
            f"{len(summary.conflicts)} conflicts, {len(summary.failures)} failures"
        )
        return summary

    def render(self, summary: ConvergenceSummary, title: str = "Reconciliation") -> None:
        """Print the summary as rich tables."""
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Outcome", style="cyan")
        table.add_column("Count", justify="right")
        table.add_row("Imported", str(len(summary.imported)))
        table.add_row("Deferred to engine", str(len(summary.deferred)))
        table.add_row("Unchanged", str(len(summary.unchanged)))
        if summary.removed:
            table.add_row("Removed from state", str(len(summary.removed)))
        if summary.pending:
            table.add_row("Pending imports", str(len(summary.pending)), style="yellow")
        table.add_row("Conflicts", str(len(summary.conflicts)), style="yellow" if summary.conflicts else None)
        table.add_row("Failures", str(len(summary.failures)), style="red" if summary.failures else None)
        self.console.print(table)

        if summary.conflicts:
            conflicts = Table(title="Conflicts (operator action required)", header_style="bold yellow")
            conflicts.add_column("Resource")
            conflicts.add_column("Reason")
            conflicts.add_column("Detail", overflow="fold")
            for action in summary.conflicts:
                conflicts.add_row(action.logical_name, action.reason.value, action.detail)
            self.console.print(conflicts)

        if summary.failures:
            failures = Table(title="Failures", header_style="bold red")
            failures.add_column("Resource")
            failures.add_column("Action")
            failures.add_column("Error", overflow="fold")
            for result in summary.failures:
                failures.add_row(result.logical_name, result.action.action_type.value, result.reason or "")
            self.console.print(failures)

        if summary.is_converged():
            self.console.print(Panel("[bold green]✓ Converged[/bold green]", border_style="green"))
        else:
            self.console.print(Panel(
                "[bold yellow]Needs attention[/bold yellow]\n"
                "Resolve the conflicts and failures above, then run again.",
                border_style="yellow"
            ))

    def report_plan(self, plan: ReconciliationPlan) -> ConvergenceSummary:
        """Summarize a plan that has not been executed.

        Planned imports count as pending, so only a plan that needs no work
        from the reconciler reports as converged.
        """
        results = [
            ExecutionResult(
                action,
                ExecutionStatus.FAILED if action.action_type == ActionType.PROBE_FAILED else ExecutionStatus.SKIPPED,
                reason=action.detail or None
            )
            for action in plan
        ]
        return self.report(results)

    def render_plan(self, plan: ReconciliationPlan) -> None:
        """Print the planned actions in execution order."""
        styles = {
            ActionType.NOOP: "dim",
            ActionType.IMPORT: "green",
            ActionType.CREATE: "cyan",
            ActionType.CONFLICT: "yellow",
            ActionType.PROBE_FAILED: "red",
        }
        table = Table(title="Reconciliation plan", header_style="bold cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Resource")
        table.add_column("Address", style="dim")
        table.add_column("Action")
        table.add_column("Detail", overflow="fold")

        for index, action in enumerate(plan, start=1):
            style = styles[action.action_type]
            detail = action.native_id if action.action_type == ActionType.IMPORT else action.detail
            table.add_row(
                str(index),
                action.logical_name,
                action.address,
                f"[{style}]{action.action_type.value}[/{style}]",
                detail or ""
            )
        self.console.print(table)
