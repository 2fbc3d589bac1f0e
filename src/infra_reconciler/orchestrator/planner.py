"""Reconciliation planner comparing live and tracked state."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional

from infra_reconciler.catalog.catalog import ResourceCatalog
from infra_reconciler.catalog.identifiers import ids_match
from infra_reconciler.catalog.models import ResourceDescriptor
from infra_reconciler.probers.base import ProbeOutcome
from infra_reconciler.probers.models import LiveResourceState
from infra_reconciler.state.models import TrackedResourceState
from infra_reconciler.utils.errors import ProbeFailure
from infra_reconciler.utils.logging import get_logger

logger = get_logger(__name__)


class ActionType(Enum):
    """Kind of reconciliation action."""
    NOOP = "noop"
    IMPORT = "import"
    CREATE = "create"
    CONFLICT = "conflict"
    PROBE_FAILED = "probe_failed"


class ConflictReason(Enum):
    """Why live and tracked state could not be reconciled automatically."""
    DRIFT = "drift"  # both exist with different identifiers
    STALE = "stale"  # tracked, but gone from the cloud
    UNIMPORTABLE = "unimportable"  # exists, untracked, engine cannot import it


@dataclass(frozen=True)
class ReconciliationAction:
    """One planned action for one logical resource."""

    action_type: ActionType
    logical_name: str
    address: str
    native_id: Optional[str] = None
    reason: Optional[ConflictReason] = None
    detail: str = ""
    live_id: Optional[str] = None
    tracked_id: Optional[str] = None

    def is_conflict(self) -> bool:
        return self.action_type == ActionType.CONFLICT

    def describe(self) -> str:
        """One-line description for reports and prompts."""
        if self.action_type == ActionType.IMPORT:
            return f"import {self.address} <- {self.native_id}"
        if self.action_type == ActionType.CREATE:
            return f"create {self.address} (deferred to engine apply)"
        if self.action_type == ActionType.CONFLICT:
            return f"conflict ({self.reason.value}): {self.detail}"
        if self.action_type == ActionType.PROBE_FAILED:
            return f"probe failed: {self.detail}"
        return "in sync"


@dataclass
class ReconciliationPlan:
    """Ordered actions, exactly one per catalog entry, in dependency order."""

    actions: List[ReconciliationAction] = field(default_factory=list)

    def get(self, logical_name: str) -> Optional[ReconciliationAction]:
        """Get the action for a logical name."""
        for action in self.actions:
            if action.logical_name == logical_name:
                return action
        return None

    def get_actions_by_type(self, action_type: ActionType) -> List[ReconciliationAction]:
        """Get all actions of a specific type."""
        return [a for a in self.actions if a.action_type == action_type]

    def conflicts(self, reason: Optional[ConflictReason] = None) -> List[ReconciliationAction]:
        """Conflict actions, optionally of one reason."""
        return [
            a for a in self.get_actions_by_type(ActionType.CONFLICT)
            if reason is None or a.reason == reason
        ]

    def get_summary(self) -> Dict[str, int]:
        """Get a count of actions by type."""
        summary = {action_type.value: 0 for action_type in ActionType}
        for action in self.actions:
            summary[action.action_type.value] += 1
        return summary

    def __len__(self) -> int:
        return len(self.actions)

    def __iter__(self):
        return iter(self.actions)


class ReconciliationPlanner:
    """Turns live and tracked snapshots into a reconciliation plan.

    Planning has no side effects: the same inputs always give the same plan.
    """

    def plan(
        self,
        catalog: ResourceCatalog,
        live_states: Mapping[str, ProbeOutcome],
        tracked_states: Mapping[str, TrackedResourceState]
    ) -> ReconciliationPlan:
        """Create a reconciliation plan.

        Args:
            catalog: Validated resource catalog
            live_states: Probe outcomes keyed by logical name
            tracked_states: Tracked states keyed by logical name

        Returns:
            ReconciliationPlan in catalog dependency order
        """
        actions = [
            self._decide(descriptor, live_states.get(descriptor.logical_name),
                         tracked_states.get(descriptor.logical_name))
            for descriptor in catalog.all_descriptors()
        ]
        plan = ReconciliationPlan(actions=actions)

        summary = plan.get_summary()
        logger.info(
            f"Plan: {summary['import']} import, {summary['create']} create, "
            f"{summary['noop']} unchanged, {summary['conflict']} conflict, "
            f"{summary['probe_failed']} probe failure"
        )
        return plan

    def _decide(
        self,
        descriptor: ResourceDescriptor,
        live: Optional[ProbeOutcome],
        tracked: Optional[TrackedResourceState]
    ) -> ReconciliationAction:
        name = descriptor.logical_name
        address = descriptor.engine_address
        tracked_id = tracked.native_id if tracked else None

        if isinstance(live, ProbeFailure):
            return ReconciliationAction(
                ActionType.PROBE_FAILED, name, address,
                detail=live.message, tracked_id=tracked_id
            )
        if not isinstance(live, LiveResourceState):
            return ReconciliationAction(
                ActionType.PROBE_FAILED, name, address,
                detail="resource was not probed", tracked_id=tracked_id
            )

        if not live.exists:
            if tracked is None:
                return ReconciliationAction(ActionType.CREATE, name, address)
            return ReconciliationAction(
                ActionType.CONFLICT, name, address,
                reason=ConflictReason.STALE,
                detail=f"{address} is tracked as {tracked_id} but no longer exists",
                tracked_id=tracked_id
            )

        if tracked is None:
            if not descriptor.importable:
                return ReconciliationAction(
                    ActionType.CONFLICT, name, address,
                    reason=ConflictReason.UNIMPORTABLE,
                    detail=f"{live.native_id} exists but {descriptor.label} cannot be imported",
                    live_id=live.native_id
                )
            return ReconciliationAction(
                ActionType.IMPORT, name, address,
                native_id=live.native_id, live_id=live.native_id
            )

        if ids_match(live.native_id, tracked_id):
            return ReconciliationAction(
                ActionType.NOOP, name, address,
                native_id=tracked_id, live_id=live.native_id, tracked_id=tracked_id
            )

        return ReconciliationAction(
            ActionType.CONFLICT, name, address,
            reason=ConflictReason.DRIFT,
            detail=f"{address} is tracked as {tracked_id} but the live resource is {live.native_id}",
            live_id=live.native_id,
            tracked_id=tracked_id
        )
