"""Expense approval state machine with deterministic replay."""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterable

from expense_workflow import auto_approval, sequencer
from expense_workflow.exceptions import InvalidStateError, NotFoundError
from expense_workflow.ledger import ApprovalLedger
from expense_workflow.models import (
    ApprovalRecord,
    Decision,
    Expense,
    ExpenseStatus,
    FlowDefinition,
    PendingDecision,
    ReplayResult,
    WorkflowOutcome,
)
from expense_workflow.schema import validate_flow

logger = logging.getLogger(__name__)

RECORD_NAMESPACE = uuid.UUID("6f1c2b9e-3d4a-5b7c-8e9f-0a1b2c3d4e5f")

IdFactory = Callable[[str, int], str]


def derive_record_id(expense_id: str, position: int) -> str:
    """Derive a stable approval record id from its place in the ledger."""
    return uuid.uuid5(RECORD_NAMESPACE, f"{expense_id}:{position}").hex


class ExpenseWorkflowEngine:
    """Decides what happens to an expense after each approval decision.

    The engine performs no I/O: every call takes a snapshot of the expense,
    its flow and its ledger, and returns a WorkflowOutcome for the caller to
    persist.

    Usage::

        engine = ExpenseWorkflowEngine()
        outcome = engine.submit_expense(expense, flow, manager_id="mgr1")
        outcome = engine.process_decision(
            expense, flow, ledger, "mgr1", Decision.APPROVED, record_id
        )
    """

    def __init__(self, id_factory: IdFactory | None = None) -> None:
        self._id_factory = id_factory or derive_record_id

    def submit_expense(
        self,
        expense: Expense,
        flow: FlowDefinition,
        manager_id: str | None = None,
        ledger: ApprovalLedger | None = None,
    ) -> WorkflowOutcome:
        """Open the approval sequence for a newly submitted expense.

        Args:
            expense: The submitted expense, still Pending.
            flow: The flow referenced by ``expense.flow_id``.
            manager_id: The submitting employee's manager, if one is assigned.
            ledger: Existing records, which must be empty.

        Returns:
            An outcome creating the first pending approval record.

        Raises:
            NotFoundError: If ``flow`` is not the expense's flow.
            InvalidConfigurationError: If the flow is malformed or has no first approver.
            InvalidStateError: If the expense is terminal or already has records.
        """
        self._check_snapshot(expense, flow)
        validate_flow(flow)
        ledger = ledger if ledger is not None else ApprovalLedger.of(expense.id)
        if len(ledger):
            raise InvalidStateError(
                f"Expense '{expense.id}' was already submitted ({len(ledger)} approval records)."
            )

        approver_id = sequencer.first_approver(flow, manager_id)
        record = ApprovalRecord(
            id=self._id_factory(expense.id, 0),
            expense_id=expense.id,
            approver_id=approver_id,
            comments=(
                "Initial manager approval."
                if flow.is_manager_approver_first and approver_id == manager_id
                else "First step in the flow."
            ),
        )
        logger.info("Expense %s submitted; first approver %s", expense.id, approver_id)
        return WorkflowOutcome(
            expense_id=expense.id,
            previous_status=expense.status,
            new_expense_status=ExpenseStatus.PENDING,
            new_approval_record=record,
        )

    def process_decision(
        self,
        expense: Expense,
        flow: FlowDefinition,
        ledger: ApprovalLedger,
        approver_id: str,
        decision: Decision,
        active_approval_record_id: str,
        comments: str | None = None,
    ) -> WorkflowOutcome:
        """Apply an approver's decision to an expense.

        Args:
            expense: Snapshot of the expense.
            flow: The flow referenced by ``expense.flow_id``.
            ledger: All approval records of the expense, read with the expense.
            approver_id: The approver deciding.
            decision: Approved or Rejected.
            active_approval_record_id: The pending record the approver resolves.
            comments: Optional comments stored on the resolved record.

        Returns:
            The complete outcome to persist.

        Raises:
            NotFoundError: If ``flow`` is not the expense's flow.
            InvalidStateError: If the expense is terminal or the record is not
                the approver's active pending record.
            InvalidConfigurationError: If the flow is malformed.
        """
        decision = Decision(decision)
        self._check_snapshot(expense, flow)
        validate_flow(flow)
        active = self._active_record(expense, ledger, approver_id, active_approval_record_id)

        resolved = active.resolve(decision, comments)
        logger.debug(
            "Expense %s: %s decided %s on record %s",
            expense.id,
            approver_id,
            decision.value,
            active.id,
        )

        if decision == Decision.REJECTED:
            logger.info("Expense %s rejected by %s", expense.id, approver_id)
            return self._outcome(expense, resolved, ExpenseStatus.REJECTED)

        result = auto_approval.evaluate(flow, ledger, PendingDecision(approver_id, decision))
        if result.auto_approved:
            logger.info(
                "Expense %s auto-approved by %s rule after %s approved",
                expense.id,
                result.matched_rule.value if result.matched_rule else "unknown",
                approver_id,
            )
            return self._outcome(expense, resolved, ExpenseStatus.APPROVED, auto_approved=True)

        step = sequencer.next_step(flow, ledger, approver_id)
        if step.has_next and step.next_approver_id is not None:
            record = ApprovalRecord(
                id=self._id_factory(expense.id, len(ledger)),
                expense_id=expense.id,
                approver_id=step.next_approver_id,
            )
            logger.debug("Expense %s advanced to approver %s", expense.id, record.approver_id)
            return self._outcome(expense, resolved, ExpenseStatus.PENDING, new_record=record)

        logger.info("Expense %s approved after final step by %s", expense.id, approver_id)
        return self._outcome(expense, resolved, ExpenseStatus.APPROVED)

    def replay(
        self,
        expense: Expense,
        flow: FlowDefinition,
        decisions: Iterable[tuple[str, Decision]],
        manager_id: str | None = None,
    ) -> ReplayResult:
        """Deterministically replay a submission followed by decisions.

        Each decision is applied to the pending record of its approver.
        Given the same inputs, this always produces the same final state.

        Raises:
            InvalidStateError: If a decision does not match the active approver
                or arrives after the expense reached a terminal state.
        """
        outcome = self.submit_expense(expense, flow, manager_id)
        current = outcome.apply_to_expense(expense)
        ledger = ApprovalLedger.of(expense.id, outcome.apply_to_ledger(()))
        outcomes = [outcome]

        for approver_id, decision in decisions:
            active = ledger.active_record()
            record_id = active.id if active is not None else ""
            outcome = self.process_decision(
                current, flow, ledger, approver_id, decision, record_id
            )
            current = outcome.apply_to_expense(current)
            ledger = ApprovalLedger.of(expense.id, outcome.apply_to_ledger(ledger))
            outcomes.append(outcome)

        return ReplayResult(expense=current, records=list(ledger), outcomes=outcomes)

    @staticmethod
    def _check_snapshot(expense: Expense, flow: FlowDefinition) -> None:
        if flow.id != expense.flow_id:
            raise NotFoundError(
                f"Flow '{expense.flow_id}' of expense '{expense.id}' is not in the "
                f"snapshot (got flow '{flow.id}')."
            )
        if expense.status.is_terminal:
            raise InvalidStateError(
                f"Expense '{expense.id}' is already {expense.status.value}."
            )

    @staticmethod
    def _active_record(
        expense: Expense,
        ledger: ApprovalLedger,
        approver_id: str,
        record_id: str,
    ) -> ApprovalRecord:
        if ledger.expense_id != expense.id:
            raise InvalidStateError(
                f"Ledger of expense '{ledger.expense_id}' supplied for expense '{expense.id}'."
            )
        active = ledger.active_record()
        if active is None or active.id != record_id:
            raise InvalidStateError(
                f"Approval record '{record_id}' is not the active pending record "
                f"of expense '{expense.id}'."
            )
        if active.approver_id != approver_id:
            raise InvalidStateError(
                f"Approval record '{record_id}' is assigned to '{active.approver_id}', "
                f"not '{approver_id}'."
            )
        return active

    @staticmethod
    def _outcome(
        expense: Expense,
        resolved: ApprovalRecord,
        status: ExpenseStatus,
        new_record: ApprovalRecord | None = None,
        auto_approved: bool = False,
    ) -> WorkflowOutcome:
        return WorkflowOutcome(
            expense_id=expense.id,
            previous_status=expense.status,
            new_expense_status=status,
            ledger_mutation=resolved,
            new_approval_record=new_record,
            auto_approved=auto_approved,
        )
