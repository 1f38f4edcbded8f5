"""Ordered approver sequencing for approval flows."""

from __future__ import annotations

import logging

from expense_workflow.exceptions import InvalidConfigurationError
from expense_workflow.ledger import ApprovalLedger
from expense_workflow.models import FlowDefinition, StepResult

logger = logging.getLogger(__name__)


def _in_manager_phase(flow: FlowDefinition, ledger: ApprovalLedger) -> bool:
    """True while no listed step approver has decided on a manager-first flow."""
    if not flow.is_manager_approver_first:
        return False
    return not ledger.has_resolved_from(flow.approver_ids)


def next_step(
    flow: FlowDefinition,
    ledger: ApprovalLedger,
    deciding_approver_id: str,
) -> StepResult:
    """Determine who approves after ``deciding_approver_id``.

    The ledger is the snapshot read before the current decision was recorded,
    so the deciding approver's own record is still pending in it.

    Args:
        flow: The expense's approval flow.
        ledger: All approval records of the expense so far.
        deciding_approver_id: The approver whose decision is being processed.

    Returns:
        A StepResult describing the next approver, if any.
    """
    steps = flow.ordered_steps

    if not steps:
        # Only a manager-first approval (or nothing) can exist.
        return StepResult(has_next=False, is_last_step=True)

    index = next(
        (i for i, step in enumerate(steps) if step.approver_id == deciding_approver_id),
        None,
    )

    # A manager who also owns the first step covers it with the same decision.
    if _in_manager_phase(flow, ledger) and index != 0:
        logger.debug(
            "Manager-first decision by %s on expense %s; routing to step %d",
            deciding_approver_id,
            ledger.expense_id,
            steps[0].sequence_order,
        )
        return StepResult(has_next=True, is_last_step=False, next_approver_id=steps[0].approver_id)

    if index is None:
        return StepResult(has_next=True, is_last_step=False, next_approver_id=steps[0].approver_id)

    if index == len(steps) - 1:
        return StepResult(has_next=False, is_last_step=True)

    return StepResult(
        has_next=True,
        is_last_step=False,
        next_approver_id=steps[index + 1].approver_id,
    )


def first_approver(flow: FlowDefinition, manager_id: str | None = None) -> str:
    """Return the approver who receives an expense on submission.

    Raises:
        InvalidConfigurationError: If neither a manager nor a first step resolves.
    """
    steps = flow.ordered_steps
    if flow.is_manager_approver_first:
        if manager_id:
            return manager_id
        if steps:
            logger.warning(
                "Flow '%s' routes to the employee's manager first but none is assigned; "
                "falling back to step %d",
                flow.id,
                steps[0].sequence_order,
            )
            return steps[0].approver_id
        raise InvalidConfigurationError(
            f"Flow '{flow.id}' requires a manager approver but none could be resolved "
            "and it has no steps."
        )
    if steps:
        return steps[0].approver_id
    raise InvalidConfigurationError(f"Flow '{flow.id}' has no approval steps.")
