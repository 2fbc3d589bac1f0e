"""Reconciliation planning, execution and reporting."""

from infra_reconciler.orchestrator.planner import (
    ActionType,
    ConflictReason,
    ReconciliationAction,
    ReconciliationPlan,
    ReconciliationPlanner,
    ids_match,
)
from infra_reconciler.orchestrator.executor import (
    ActionExecutor,
    ExecutionResult,
    ExecutionStatus,
    ProgressCallback,
)
from infra_reconciler.orchestrator.reporter import (
    ConvergenceReporter,
    ConvergenceStatus,
    ConvergenceSummary,
)
from infra_reconciler.orchestrator.reconciler import Reconciler, RunPhase, RunResult

__all__ = [
    'ActionType',
    'ConflictReason',
    'ReconciliationAction',
    'ReconciliationPlan',
    'ReconciliationPlanner',
    'ids_match',
    'ActionExecutor',
    'ExecutionResult',
    'ExecutionStatus',
    'ProgressCallback',
    'ConvergenceReporter',
    'ConvergenceStatus',
    'ConvergenceSummary',
    'Reconciler',
    'RunPhase',
    'RunResult',
]
