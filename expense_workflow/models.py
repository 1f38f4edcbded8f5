"""Core data models for the expense approval workflow."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from datetime import date


class RuleType(str, Enum):
    """Conditional auto-approval rule attached to a flow."""

    NONE = "None"
    PERCENTAGE = "Percentage"
    SPECIFIC_APPROVER = "SpecificApprover"
    HYBRID = "Hybrid"

    @property
    def uses_percentage(self) -> bool:
        return self in (RuleType.PERCENTAGE, RuleType.HYBRID)

    @property
    def uses_critical_approver(self) -> bool:
        return self in (RuleType.SPECIFIC_APPROVER, RuleType.HYBRID)


class ExpenseStatus(str, Enum):
    """Status of an expense."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ExpenseStatus.PENDING


class ApprovalStatus(str, Enum):
    """Status of a single approval record."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Decision(str, Enum):
    """The decisions an approver can submit."""

    APPROVED = "Approved"
    REJECTED = "Rejected"

    @property
    def approval_status(self) -> ApprovalStatus:
        return ApprovalStatus(self.value)


@dataclass(frozen=True)
class ApprovalStep:
    """One ordered position in a flow, bound to an approver."""

    sequence_order: int
    approver_id: str


@dataclass(frozen=True)
class FlowDefinition:
    """An immutable approval flow definition."""

    id: str
    steps: tuple[ApprovalStep, ...] = ()
    is_manager_approver_first: bool = False
    rule_type: RuleType = RuleType.NONE
    approval_percentage: int | None = None
    critical_approver_id: str | None = None
    name: str = ""

    @property
    def ordered_steps(self) -> list[ApprovalStep]:
        """Return the steps sorted ascending by ``sequence_order``."""
        return sorted(self.steps, key=lambda s: s.sequence_order)

    @property
    def approver_ids(self) -> set[str]:
        return {s.approver_id for s in self.steps}

    @property
    def total_steps(self) -> int:
        """Denominator for percentage rules; an empty flow counts as one step."""
        return len(self.steps) or 1


@dataclass(frozen=True)
class Expense:
    """An expense submitted for approval."""

    id: str
    employee_id: str
    amount: Decimal
    flow_id: str
    currency: str = "USD"
    category: str = ""
    description: str = ""
    expense_date: date | None = None
    status: ExpenseStatus = ExpenseStatus.PENDING


@dataclass(frozen=True)
class ApprovalRecord:
    """One entry in an expense's approval ledger."""

    id: str
    expense_id: str
    approver_id: str
    status: ApprovalStatus = ApprovalStatus.PENDING
    comments: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING

    def resolve(self, decision: Decision, comments: str | None = None) -> ApprovalRecord:
        """Return a copy of this record carrying the approver's decision."""
        return replace(
            self,
            status=decision.approval_status,
            comments=comments if comments is not None else self.comments,
        )


@dataclass(frozen=True)
class PendingDecision:
    """The decision currently being processed, not yet in the ledger."""

    approver_id: str
    decision: Decision


@dataclass(frozen=True)
class StepResult:
    """Position of a decision within the ordered approver sequence."""

    has_next: bool
    is_last_step: bool
    next_approver_id: str | None = None


@dataclass(frozen=True)
class AutoApprovalResult:
    """Outcome of evaluating a flow's conditional rule."""

    auto_approved: bool
    matched_rule: RuleType | None = None


@dataclass(frozen=True)
class WorkflowOutcome:
    """Everything a caller must persist after a workflow operation.

    ``ledger_mutation`` is the resolved active record (``None`` on
    submission), ``new_approval_record`` the record to create, if any.
    """

    expense_id: str
    previous_status: ExpenseStatus
    new_expense_status: ExpenseStatus
    ledger_mutation: ApprovalRecord | None = None
    new_approval_record: ApprovalRecord | None = None
    auto_approved: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.new_expense_status.is_terminal

    @property
    def status_changed(self) -> bool:
        return self.new_expense_status != self.previous_status

    def apply_to_expense(self, expense: Expense) -> Expense:
        """Return ``expense`` with the new status applied."""
        if expense.id != self.expense_id:
            raise ValueError(
                f"Outcome for expense '{self.expense_id}' cannot be applied to '{expense.id}'."
            )
        return replace(expense, status=self.new_expense_status)

    def apply_to_ledger(self, records: Iterable[ApprovalRecord]) -> list[ApprovalRecord]:
        """Return the ledger records with the mutation and new record applied."""
        updated: list[ApprovalRecord] = []
        for record in records:
            if self.ledger_mutation is not None and record.id == self.ledger_mutation.id:
                updated.append(self.ledger_mutation)
            else:
                updated.append(record)
        if self.new_approval_record is not None:
            updated.append(self.new_approval_record)
        return updated


@dataclass
class ReplayResult:
    """Final state reached by replaying a sequence of decisions."""

    expense: Expense
    records: list[ApprovalRecord] = field(default_factory=list)
    outcomes: list[WorkflowOutcome] = field(default_factory=list)
