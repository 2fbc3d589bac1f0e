"""Action executor applying reconciliation plans through the engine."""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from infra_reconciler.confirmation import ConfirmationChannel
from infra_reconciler.engine.terraform import TerraformEngine
from infra_reconciler.orchestrator.planner import (
    ActionType,
    ConflictReason,
    ReconciliationAction,
    ReconciliationPlan,
)
from infra_reconciler.utils.errors import (
    ConfigurationError,
    ErrorContext,
    ReconcileError,
    error_handler,
)
from infra_reconciler.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

# Word the operator must type to drop stale tracking entries
REMOVAL_CONFIRMATION_WORD = "forget"


class ExecutionStatus(Enum):
    """Outcome of executing one action."""
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ExecutionResult:
    """Result of executing a single action."""

    action: ReconciliationAction
    status: ExecutionStatus
    reason: Optional[str] = None
    error: Optional[ReconcileError] = None
    duration: float = 0.0  # seconds

    @property
    def logical_name(self) -> str:
        return self.action.logical_name

    def is_failed(self) -> bool:
        """Check if execution failed."""
        return self.status == ExecutionStatus.FAILED

    def is_applied(self) -> bool:
        """Check if the action changed tracked state."""
        return self.status == ExecutionStatus.APPLIED


# Type alias for progress callback
ProgressCallback = Callable[[str, ExecutionStatus, Optional[str]], None]


class ActionExecutor:
    """Executes plan actions sequentially in dependency order.

    Only imports and confirmed removals touch the engine. Creation is left to
    the engine's own apply; conflicts are passed through untouched.
    """

    def __init__(self, engine: TerraformEngine):
        """Initialize action executor.

        Args:
            engine: Declarative engine adapter
        """
        self.engine = engine
        self.logger = get_logger(__name__)

    def execute(self, action: ReconciliationAction) -> ExecutionResult:
        """Execute one action.

        A failed import is recorded on the result and never raised, so one
        resource cannot stop the rest of the plan.

        Raises:
            ConfigurationError: If the engine itself is unusable
        """
        if action.action_type == ActionType.NOOP:
            return ExecutionResult(action, ExecutionStatus.SKIPPED, reason="in sync")
        if action.action_type == ActionType.CREATE:
            return ExecutionResult(action, ExecutionStatus.SKIPPED, reason="deferred to engine apply")
        if action.action_type == ActionType.CONFLICT:
            return ExecutionResult(action, ExecutionStatus.SKIPPED, reason=action.detail)
        if action.action_type == ActionType.PROBE_FAILED:
            return ExecutionResult(action, ExecutionStatus.FAILED, reason=action.detail)

        return self._run_engine(
            action,
            lambda: self.engine.import_resource(action.address, action.native_id),
            operation='import'
        )

    def _run_engine(self, action: ReconciliationAction, call, operation: str) -> ExecutionResult:
        start = time.time()
        with LogContext(self.logger, resource_id=action.logical_name, operation=operation):
            try:
                call()
            except ConfigurationError:
                raise
            except Exception as e:
                error = error_handler.handle_exception(
                    e,
                    ErrorContext(
                        resource_id=action.logical_name,
                        operation=operation,
                        native_id=action.native_id or action.tracked_id
                    )
                )
                duration = time.time() - start
                self.logger.error(f"{operation} failed for {action.address}: {error.message}")
                return ExecutionResult(
                    action, ExecutionStatus.FAILED,
                    reason=error.message, error=error, duration=duration
                )

            duration = time.time() - start
            self.logger.info(f"{operation} succeeded for {action.address} in {duration:.1f}s")
            return ExecutionResult(action, ExecutionStatus.APPLIED, duration=duration)

    def execute_plan(
        self,
        plan: ReconciliationPlan,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> List[ExecutionResult]:
        """Execute every action of a plan in order.

        Args:
            plan: Reconciliation plan
            cancel_event: When set, remaining actions are skipped
            progress_callback: Called after each action with
                (logical_name, status, reason)

        Returns:
            One result per action, in plan order
        """
        self.logger.info(f"Executing plan ({len(plan)} actions)...")
        results = []

        for action in plan:
            if cancel_event is not None and cancel_event.is_set():
                result = ExecutionResult(action, ExecutionStatus.SKIPPED, reason="cancelled")
            else:
                result = self.execute(action)

            results.append(result)
            if progress_callback:
                progress_callback(action.logical_name, result.status, result.reason)

        applied = sum(1 for r in results if r.is_applied())
        failed = sum(1 for r in results if r.is_failed())
        self.logger.info(f"Execution complete: {applied} applied, {failed} failed")
        return results

    def execute_removals(
        self,
        plan: ReconciliationPlan,
        confirmation: ConfirmationChannel
    ) -> List[ExecutionResult]:
        """Drop stale tracking entries after operator confirmation.

        Only entries whose resource no longer exists are eligible. They are
        removed from tracked state in reverse dependency order; the cloud is
        never touched.

        Args:
            plan: Reconciliation plan
            confirmation: Operator confirmation channel

        Returns:
            One result per stale entry (empty when there is nothing to remove)
        """
        stale = list(reversed(plan.conflicts(ConflictReason.STALE)))
        if not stale:
            return []

        listing = "\n".join(f"  - {a.address} ({a.tracked_id})" for a in stale)
        prompt = (
            f"The following {len(stale)} tracking entries point at resources that no longer exist:\n"
            f"{listing}\n"
            f"They will be removed from engine state (no cloud resource is deleted)."
        )

        if not confirmation.confirm_typed(prompt, REMOVAL_CONFIRMATION_WORD):
            self.logger.info("Removal of stale tracking entries declined")
            return [
                ExecutionResult(action, ExecutionStatus.SKIPPED, reason="removal declined")
                for action in stale
            ]

        return [
            self._run_engine(action, lambda a=action: self.engine.remove(a.address), operation='remove')
            for action in stale
        ]
