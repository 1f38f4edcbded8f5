"""Tests for expense_workflow.auto_approval."""

from __future__ import annotations

import pytest

from expense_workflow import (
    ApprovalLedger,
    ApprovalRecord,
    ApprovalStatus,
    ApprovalStep,
    Decision,
    FlowDefinition,
    InvalidConfigurationError,
    PendingDecision,
    RuleType,
    evaluate,
)
from expense_workflow.auto_approval import approval_ratio


def approved_ledger(count: int, pending_approver: str) -> ApprovalLedger:
    records = [
        ApprovalRecord(id=f"r{i}", expense_id="e1", approver_id=f"x{i}", status=ApprovalStatus.APPROVED)
        for i in range(count)
    ]
    records.append(ApprovalRecord(id="active", expense_id="e1", approver_id=pending_approver))
    return ApprovalLedger.of("e1", records)


class TestPercentageRule:
    def test_in_flight_approval_is_counted(self, percentage_flow: FlowDefinition) -> None:
        result = evaluate(percentage_flow, approved_ledger(0, "A"), PendingDecision("A", Decision.APPROVED))
        assert result.auto_approved is True
        assert result.matched_rule == RuleType.PERCENTAGE

    def test_below_threshold(self, hybrid_flow: FlowDefinition) -> None:
        # 2 of 4 approved = 50% < 75%, and B is not critical.
        result = evaluate(hybrid_flow, approved_ledger(1, "B"), PendingDecision("B", Decision.APPROVED))
        assert result.auto_approved is False

    def test_threshold_reached_exactly(self, hybrid_flow: FlowDefinition) -> None:
        result = evaluate(hybrid_flow, approved_ledger(2, "C"), PendingDecision("C", Decision.APPROVED))
        assert result.auto_approved is True
        assert result.matched_rule == RuleType.PERCENTAGE

    def test_ratio_on_empty_flow_uses_one_step(self) -> None:
        flow = FlowDefinition(
            id="m",
            is_manager_approver_first=True,
            rule_type=RuleType.PERCENTAGE,
            approval_percentage=100,
        )
        pending = PendingDecision("mgr", Decision.APPROVED)
        assert approval_ratio(flow, approved_ledger(0, "mgr"), pending) == 100
        assert evaluate(flow, approved_ledger(0, "mgr"), pending).auto_approved is True

    def test_missing_percentage_raises(self) -> None:
        flow = FlowDefinition(id="p", steps=(ApprovalStep(1, "A"),), rule_type=RuleType.PERCENTAGE)
        with pytest.raises(InvalidConfigurationError, match="approval percentage"):
            evaluate(flow, approved_ledger(0, "A"), PendingDecision("A", Decision.APPROVED))


class TestSpecificApproverRule:
    def test_critical_approver_fires(self, specific_flow: FlowDefinition) -> None:
        result = evaluate(specific_flow, approved_ledger(1, "B"), PendingDecision("B", Decision.APPROVED))
        assert result.auto_approved is True
        assert result.matched_rule == RuleType.SPECIFIC_APPROVER

    def test_other_approver_does_not_fire(self, specific_flow: FlowDefinition) -> None:
        result = evaluate(specific_flow, approved_ledger(0, "A"), PendingDecision("A", Decision.APPROVED))
        assert result.auto_approved is False

    def test_critical_rejection_never_auto_approves(self, specific_flow: FlowDefinition) -> None:
        result = evaluate(specific_flow, approved_ledger(1, "B"), PendingDecision("B", Decision.REJECTED))
        assert result.auto_approved is False


class TestHybridRule:
    def test_critical_approver_alone_fires(self, hybrid_flow: FlowDefinition) -> None:
        result = evaluate(hybrid_flow, approved_ledger(0, "D"), PendingDecision("D", Decision.APPROVED))
        assert result.auto_approved is True
        assert result.matched_rule == RuleType.SPECIFIC_APPROVER

    def test_missing_critical_approver_raises_even_if_percentage_met(self) -> None:
        flow = FlowDefinition(
            id="h",
            steps=(ApprovalStep(1, "A"),),
            rule_type=RuleType.HYBRID,
            approval_percentage=0,
        )
        with pytest.raises(InvalidConfigurationError, match="critical approver"):
            evaluate(flow, approved_ledger(0, "A"), PendingDecision("A", Decision.APPROVED))


class TestNoRule:
    def test_never_fires(self, sequential_flow: FlowDefinition) -> None:
        result = evaluate(sequential_flow, approved_ledger(2, "C"), PendingDecision("C", Decision.APPROVED))
        assert result.auto_approved is False
        assert result.matched_rule is None
