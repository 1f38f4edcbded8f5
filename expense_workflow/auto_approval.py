"""Conditional auto-approval rules."""

from __future__ import annotations

from expense_workflow.exceptions import InvalidConfigurationError
from expense_workflow.ledger import ApprovalLedger
from expense_workflow.models import (
    AutoApprovalResult,
    Decision,
    FlowDefinition,
    PendingDecision,
    RuleType,
)


def approval_ratio(flow: FlowDefinition, ledger: ApprovalLedger, pending: PendingDecision) -> float:
    """Percentage of steps approved, counting the in-flight decision."""
    approved = ledger.approved_count()
    if pending.decision == Decision.APPROVED:
        approved += 1
    return approved / flow.total_steps * 100


def _percentage_met(flow: FlowDefinition, ledger: ApprovalLedger, pending: PendingDecision) -> bool:
    if flow.approval_percentage is None:
        raise InvalidConfigurationError(
            f"Flow '{flow.id}' uses rule {flow.rule_type.value} without an approval percentage."
        )
    return approval_ratio(flow, ledger, pending) >= flow.approval_percentage


def _critical_approver_met(flow: FlowDefinition, pending: PendingDecision) -> bool:
    if not flow.critical_approver_id:
        raise InvalidConfigurationError(
            f"Flow '{flow.id}' uses rule {flow.rule_type.value} without a critical approver."
        )
    return (
        pending.approver_id == flow.critical_approver_id
        and pending.decision == Decision.APPROVED
    )


def evaluate(
    flow: FlowDefinition,
    ledger: ApprovalLedger,
    pending: PendingDecision,
) -> AutoApprovalResult:
    """Decide whether the flow's rule force-approves the expense now.

    Rejections never auto-approve; they follow normal rejection handling.

    Raises:
        InvalidConfigurationError: If the rule lacks its percentage or critical approver.
    """
    rule = flow.rule_type
    if rule == RuleType.NONE or pending.decision != Decision.APPROVED:
        return AutoApprovalResult(auto_approved=False)

    # Evaluate both halves: a hybrid rule missing either field is invalid.
    critical = _critical_approver_met(flow, pending) if rule.uses_critical_approver else False
    percentage = _percentage_met(flow, ledger, pending) if rule.uses_percentage else False

    if critical:
        return AutoApprovalResult(auto_approved=True, matched_rule=RuleType.SPECIFIC_APPROVER)
    if percentage:
        return AutoApprovalResult(auto_approved=True, matched_rule=RuleType.PERCENTAGE)
    return AutoApprovalResult(auto_approved=False)
