"""Run coordinator driving probe, plan, execute and report."""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from infra_reconciler.catalog.catalog import ResourceCatalog
from infra_reconciler.confirmation import ConfirmationChannel
from infra_reconciler.orchestrator.executor import (
    ActionExecutor,
    ExecutionResult,
    ExecutionStatus,
    ProgressCallback,
)
from infra_reconciler.orchestrator.planner import ActionType, ReconciliationPlan, ReconciliationPlanner
from infra_reconciler.orchestrator.reporter import ConvergenceReporter, ConvergenceSummary
from infra_reconciler.probers.base import BaseProber, ProbeOutcome
from infra_reconciler.state.models import TrackedResourceState
from infra_reconciler.state.terraform import TerraformStateReader
from infra_reconciler.utils.errors import ReconcileError
from infra_reconciler.utils.logging import get_logger

logger = get_logger(__name__)


class RunPhase(Enum):
    """Phases of a reconciliation run."""
    START = "start"
    PROBING = "probing"
    PLANNING = "planning"
    EXECUTING = "executing"
    REPORTED = "reported"
    CONVERGED = "converged"
    NEEDS_ATTENTION = "needs_attention"


TRANSITIONS = {
    RunPhase.START: {RunPhase.PROBING},
    RunPhase.PROBING: {RunPhase.PLANNING},
    RunPhase.PLANNING: {RunPhase.EXECUTING},
    RunPhase.EXECUTING: {RunPhase.REPORTED},
    RunPhase.REPORTED: {RunPhase.CONVERGED, RunPhase.NEEDS_ATTENTION},
    RunPhase.CONVERGED: set(),
    RunPhase.NEEDS_ATTENTION: set(),
}


@dataclass
class RunResult:
    """Everything a run produced. Discarded after reporting."""

    plan: ReconciliationPlan
    results: List[ExecutionResult] = field(default_factory=list)
    summary: Optional[ConvergenceSummary] = None
    phase: RunPhase = RunPhase.START

    def is_converged(self) -> bool:
        return self.phase == RunPhase.CONVERGED


class Reconciler:
    """Coordinates one reconciliation run.

    Each run recomputes live and tracked state from scratch; nothing carries
    over between runs.
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        prober: BaseProber,
        reader: TerraformStateReader,
        executor: ActionExecutor,
        planner: Optional[ReconciliationPlanner] = None,
        reporter: Optional[ConvergenceReporter] = None
    ):
        """Initialize reconciler.

        Args:
            catalog: Validated resource catalog
            prober: Live state prober
            reader: Tracked state reader
            executor: Action executor
            planner: Reconciliation planner
            reporter: Convergence reporter
        """
        self.catalog = catalog
        self.prober = prober
        self.reader = reader
        self.executor = executor
        self.planner = planner or ReconciliationPlanner()
        self.reporter = reporter or ConvergenceReporter()
        self.phase = RunPhase.START
        self.history: List[RunPhase] = [RunPhase.START]

    def _transition(self, phase: RunPhase) -> None:
        if phase not in TRANSITIONS[self.phase]:
            raise ReconcileError(f"Invalid run transition {self.phase.value} -> {phase.value}")
        logger.debug(f"Run phase: {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.history.append(phase)

    def _reset(self) -> None:
        self.phase = RunPhase.START
        self.history = [RunPhase.START]

    def _snapshot(self) -> Tuple[Dict[str, ProbeOutcome], Dict[str, TrackedResourceState]]:
        self._transition(RunPhase.PROBING)
        live = self.prober.probe_all(self.catalog.all_descriptors())

        self._transition(RunPhase.PLANNING)
        tracked = self.reader.read_tracked()
        return live, tracked

    def plan_only(self) -> ReconciliationPlan:
        """Probe and plan without executing anything.

        Raises:
            ConfigurationError: If tracked state is malformed
            CredentialError: If the provider rejected the credentials
        """
        self._reset()
        live, tracked = self._snapshot()
        return self.planner.plan(self.catalog, live, tracked)

    def run(
        self,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> RunResult:
        """Run a full reconciliation: probe, plan, import, report.

        Args:
            cancel_event: When set, actions not yet started are skipped
            progress_callback: Per-action progress callback

        Returns:
            RunResult ending in CONVERGED or NEEDS_ATTENTION

        Raises:
            ConfigurationError: Before any action executes, on invalid state
            CredentialError: If the provider rejected the credentials
        """
        plan = self.plan_only()
        return self._finish(plan, lambda: self.executor.execute_plan(
            plan, cancel_event=cancel_event, progress_callback=progress_callback
        ))

    def forget_stale(self, confirmation: ConfirmationChannel) -> RunResult:
        """Drop stale tracking entries after operator confirmation.

        Imports are not performed; any still pending keep the run in
        NEEDS_ATTENTION.
        """
        plan = self.plan_only()

        def execute() -> List[ExecutionResult]:
            removals = {r.logical_name: r for r in self.executor.execute_removals(plan, confirmation)}
            results = []
            for action in plan:
                if action.logical_name in removals:
                    results.append(removals[action.logical_name])
                elif action.action_type == ActionType.IMPORT:
                    results.append(ExecutionResult(
                        action, ExecutionStatus.SKIPPED, reason="import not run by forget-stale"
                    ))
                else:
                    results.append(self.executor.execute(action))
            return results

        return self._finish(plan, execute)

    def _finish(self, plan: ReconciliationPlan, execute) -> RunResult:
        self._transition(RunPhase.EXECUTING)
        results = execute()

        self._transition(RunPhase.REPORTED)
        summary = self.reporter.report(results)

        self._transition(RunPhase.CONVERGED if summary.is_converged() else RunPhase.NEEDS_ATTENTION)
        return RunResult(plan=plan, results=results, summary=summary, phase=self.phase)
