"""Tests for convergence summaries and their rendering."""

import io
import json

import pytest
from rich.console import Console

from infra_reconciler.orchestrator import (
    ActionType,
    ConflictReason,
    ConvergenceReporter,
    ConvergenceStatus,
    ExecutionResult,
    ExecutionStatus,
    ReconciliationAction,
    ReconciliationPlan,
)


def action(action_type, name, **kwargs):
    return ReconciliationAction(action_type, name, f"aws_thing.{name}", **kwargs)


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def reporter(output):
    return ConvergenceReporter(Console(file=output, width=200))


def test_all_clean_is_converged(reporter):
    summary = reporter.report([
        ExecutionResult(action(ActionType.IMPORT, "vpc", native_id="vpc-1"), ExecutionStatus.APPLIED),
        ExecutionResult(action(ActionType.CREATE, "bucket"), ExecutionStatus.SKIPPED),
        ExecutionResult(action(ActionType.NOOP, "role"), ExecutionStatus.SKIPPED),
    ])

    assert summary.status == ConvergenceStatus.CONVERGED
    assert summary.imported == ["vpc"]
    assert summary.deferred == ["bucket"]
    assert summary.unchanged == ["role"]
    assert summary.counts == {"applied": 1, "skipped": 2, "failed": 0}


def test_conflicts_and_failures_need_attention(reporter):
    drift = action(ActionType.CONFLICT, "vm", reason=ConflictReason.DRIFT, detail="ids differ",
                   live_id="i-2", tracked_id="i-1")
    summary = reporter.report([
        ExecutionResult(drift, ExecutionStatus.SKIPPED, reason="ids differ"),
        ExecutionResult(action(ActionType.IMPORT, "vpc", native_id="vpc-1"), ExecutionStatus.FAILED,
                        reason="terraform import failed: boom"),
    ])

    assert summary.status == ConvergenceStatus.NEEDS_ATTENTION
    assert summary.conflicts == [drift]
    assert [f.logical_name for f in summary.failures] == ["vpc"]


def test_skipped_import_is_pending(reporter):
    summary = reporter.report([
        ExecutionResult(action(ActionType.IMPORT, "vpc", native_id="vpc-1"), ExecutionStatus.SKIPPED,
                        reason="cancelled"),
    ])

    assert summary.pending == ["vpc"]
    assert not summary.is_converged()


def test_applied_removal_is_counted_as_removed(reporter):
    stale = action(ActionType.CONFLICT, "vm", reason=ConflictReason.STALE, tracked_id="i-1")

    summary = reporter.report([ExecutionResult(stale, ExecutionStatus.APPLIED)])

    assert summary.removed == ["vm"]
    assert summary.is_converged()


def test_to_dict_is_json_serializable(reporter):
    drift = action(ActionType.CONFLICT, "vm", reason=ConflictReason.DRIFT, detail="ids differ",
                   live_id="i-2", tracked_id="i-1")
    summary = reporter.report([
        ExecutionResult(drift, ExecutionStatus.SKIPPED),
        ExecutionResult(action(ActionType.PROBE_FAILED, "subnet", detail="timeout"), ExecutionStatus.FAILED,
                        reason="timeout"),
    ])

    data = json.loads(json.dumps(summary.to_dict()))

    assert data["status"] == "needs_attention"
    assert data["conflicts"][0] == {
        "logical_name": "vm",
        "address": "aws_thing.vm",
        "reason": "drift",
        "detail": "ids differ",
        "live_id": "i-2",
        "tracked_id": "i-1",
    }
    assert data["failures"] == [{"logical_name": "subnet", "action": "probe_failed", "reason": "timeout"}]


def test_report_plan_treats_imports_as_pending(reporter):
    plan = ReconciliationPlan([
        action(ActionType.NOOP, "role"),
        action(ActionType.IMPORT, "vpc", native_id="vpc-1"),
        action(ActionType.PROBE_FAILED, "subnet", detail="Read timed out"),
    ])

    summary = reporter.report_plan(plan)

    assert summary.unchanged == ["role"]
    assert summary.pending == ["vpc"]
    assert summary.failures[0].reason == "Read timed out"


def test_report_plan_of_synced_plan_is_converged(reporter):
    plan = ReconciliationPlan([action(ActionType.NOOP, "role"), action(ActionType.CREATE, "bucket")])

    assert reporter.report_plan(plan).is_converged()


def test_render_lists_conflicts_and_failures(reporter, output):
    summary = reporter.report([
        ExecutionResult(action(ActionType.CONFLICT, "vm", reason=ConflictReason.STALE,
                               detail="tracked as i-1 but no longer exists"), ExecutionStatus.SKIPPED),
        ExecutionResult(action(ActionType.IMPORT, "vpc", native_id="vpc-1"), ExecutionStatus.FAILED,
                        reason="terraform import failed: boom"),
    ])

    reporter.render(summary)

    text = output.getvalue()
    assert "stale" in text
    assert "terraform import failed: boom" in text
    assert "Needs attention" in text


def test_render_plan(reporter, output):
    reporter.render_plan(ReconciliationPlan([action(ActionType.IMPORT, "vpc", native_id="vpc-0a1")]))

    assert "vpc-0a1" in output.getvalue()
