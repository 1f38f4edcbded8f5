"""Read-evaluate-commit loop around the engine, and an in-memory store."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from expense_workflow.engine import ExpenseWorkflowEngine
from expense_workflow.exceptions import (
    ConcurrentModificationError,
    InvalidStateError,
    NotFoundError,
)
from expense_workflow.ledger import ApprovalLedger
from expense_workflow.models import (
    ApprovalRecord,
    Decision,
    Expense,
    FlowDefinition,
    WorkflowOutcome,
)
from expense_workflow.policy import Operation, Role, require_permission

logger = logging.getLogger(__name__)


class WorkflowStore(Protocol):
    """Persistence collaborator the service reads snapshots from and commits to.

    ``commit`` and ``create_expense`` must be conditional writes: they raise
    ConcurrentModificationError when the expense changed after
    ``expected_version`` was read.
    """

    def load_flow(self, flow_id: str) -> FlowDefinition: ...

    def load_expense(self, expense_id: str) -> Expense: ...

    def load_ledger(self, expense_id: str) -> ApprovalLedger: ...

    def resolve_manager_id(self, employee_id: str) -> str | None: ...

    def version_of(self, expense_id: str) -> int: ...

    def create_expense(self, expense: Expense, outcome: WorkflowOutcome) -> None: ...

    def commit(self, outcome: WorkflowOutcome, expected_version: int) -> None: ...

    def pending_records_for(self, approver_id: str) -> list[ApprovalRecord]: ...

    def expenses_of(self, employee_id: str) -> list[Expense]: ...

    def set_manager(self, employee_id: str, manager_id: str | None) -> None: ...


class InMemoryWorkflowStore:
    """Thread-safe store with per-expense optimistic versioning."""

    def __init__(
        self,
        flows: dict[str, FlowDefinition] | None = None,
        managers: dict[str, str] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._flows: dict[str, FlowDefinition] = dict(flows or {})
        self._managers: dict[str, str] = dict(managers or {})
        self._expenses: dict[str, Expense] = {}
        self._ledgers: dict[str, list[ApprovalRecord]] = {}
        self._versions: dict[str, int] = {}

    def add_flow(self, flow: FlowDefinition) -> None:
        with self._lock:
            self._flows[flow.id] = flow

    def set_manager(self, employee_id: str, manager_id: str | None) -> None:
        with self._lock:
            if manager_id is None:
                self._managers.pop(employee_id, None)
            else:
                self._managers[employee_id] = manager_id

    def load_flow(self, flow_id: str) -> FlowDefinition:
        with self._lock:
            try:
                return self._flows[flow_id]
            except KeyError:
                raise NotFoundError(f"Approval flow '{flow_id}' does not exist.") from None

    def load_expense(self, expense_id: str) -> Expense:
        with self._lock:
            try:
                return self._expenses[expense_id]
            except KeyError:
                raise NotFoundError(f"Expense '{expense_id}' does not exist.") from None

    def load_ledger(self, expense_id: str) -> ApprovalLedger:
        with self._lock:
            if expense_id not in self._ledgers:
                raise NotFoundError(f"Expense '{expense_id}' does not exist.")
            return ApprovalLedger.of(expense_id, self._ledgers[expense_id])

    def resolve_manager_id(self, employee_id: str) -> str | None:
        with self._lock:
            return self._managers.get(employee_id)

    def version_of(self, expense_id: str) -> int:
        with self._lock:
            return self._versions.get(expense_id, 0)

    def pending_records_for(self, approver_id: str) -> list[ApprovalRecord]:
        with self._lock:
            return [
                record
                for records in self._ledgers.values()
                for record in records
                if record.approver_id == approver_id and record.is_pending
            ]

    def expenses_of(self, employee_id: str) -> list[Expense]:
        with self._lock:
            return [e for e in self._expenses.values() if e.employee_id == employee_id]

    def create_expense(self, expense: Expense, outcome: WorkflowOutcome) -> None:
        with self._lock:
            if expense.id in self._expenses:
                raise ConcurrentModificationError(f"Expense '{expense.id}' already exists.")
            self._expenses[expense.id] = outcome.apply_to_expense(expense)
            self._ledgers[expense.id] = outcome.apply_to_ledger([])
            self._versions[expense.id] = 1

    def commit(self, outcome: WorkflowOutcome, expected_version: int) -> None:
        """Apply ``outcome`` if the expense is still at ``expected_version``.

        Raises:
            ConcurrentModificationError: On a stale version, an already
                resolved record, or a second pending record.
        """
        expense_id = outcome.expense_id
        with self._lock:
            if expense_id not in self._expenses:
                raise NotFoundError(f"Expense '{expense_id}' does not exist.")
            current = self._versions[expense_id]
            if current != expected_version:
                raise ConcurrentModificationError(
                    f"Expense '{expense_id}' is at version {current}, "
                    f"expected {expected_version}."
                )

            records = self._ledgers[expense_id]
            mutation = outcome.ledger_mutation
            if mutation is not None:
                stored = next((r for r in records if r.id == mutation.id), None)
                if stored is None or not stored.is_pending:
                    raise ConcurrentModificationError(
                        f"Approval record '{mutation.id}' is no longer pending."
                    )

            updated = outcome.apply_to_ledger(records)
            if sum(1 for r in updated if r.is_pending) > 1:
                raise ConcurrentModificationError(
                    f"Commit would leave expense '{expense_id}' with more than one "
                    "pending approval record."
                )

            self._expenses[expense_id] = outcome.apply_to_expense(self._expenses[expense_id])
            self._ledgers[expense_id] = updated
            self._versions[expense_id] = current + 1


class ExpenseWorkflowService:
    """Runs engine operations against a store with optimistic retries."""

    def __init__(
        self,
        store: WorkflowStore,
        engine: ExpenseWorkflowEngine | None = None,
        max_attempts: int = 3,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self.store = store
        self.engine = engine or ExpenseWorkflowEngine()
        self.max_attempts = max_attempts

    def submit(self, expense: Expense, actor_role: Role | None = None) -> WorkflowOutcome:
        """Store a new expense together with its first pending approval record."""
        if actor_role is not None:
            require_permission(actor_role, Operation.SUBMIT_EXPENSE)
        flow = self.store.load_flow(expense.flow_id)
        manager_id = (
            self.store.resolve_manager_id(expense.employee_id)
            if flow.is_manager_approver_first
            else None
        )
        outcome = self.engine.submit_expense(expense, flow, manager_id)
        self.store.create_expense(expense, outcome)
        return outcome

    def decide(
        self,
        expense_id: str,
        approver_id: str,
        decision: Decision,
        comments: str | None = None,
        actor_role: Role | None = None,
    ) -> WorkflowOutcome:
        """Record ``approver_id``'s decision, retrying on concurrent commits.

        Raises:
            InvalidStateError: If the approver has no pending record on the
                expense, or retries are exhausted.
        """
        if actor_role is not None:
            require_permission(actor_role, Operation.DECIDE_APPROVAL)

        attempt = 0
        while True:
            attempt += 1
            version = self.store.version_of(expense_id)
            expense = self.store.load_expense(expense_id)
            flow = self.store.load_flow(expense.flow_id)
            ledger = self.store.load_ledger(expense_id)

            active = next(
                (r for r in ledger.pending_records() if r.approver_id == approver_id),
                None,
            )
            if active is None:
                raise InvalidStateError(
                    f"Approver '{approver_id}' has no pending approval on expense '{expense_id}'."
                )

            outcome = self.engine.process_decision(
                expense, flow, ledger, approver_id, decision, active.id, comments
            )
            try:
                self.store.commit(outcome, version)
            except ConcurrentModificationError:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(
                    "Concurrent update on expense %s (attempt %d/%d); retrying",
                    expense_id,
                    attempt,
                    self.max_attempts,
                )
                continue
            logger.info(
                "Committed %s decision by %s on expense %s -> %s",
                Decision(decision).value,
                approver_id,
                expense_id,
                outcome.new_expense_status.value,
            )
            return outcome

    def pending_for(self, approver_id: str) -> list[Expense]:
        """Expenses currently waiting on ``approver_id``."""
        return [
            self.store.load_expense(record.expense_id)
            for record in self.store.pending_records_for(approver_id)
        ]

    def expenses_of(self, employee_id: str, actor_role: Role | None = None) -> list[Expense]:
        """Expenses submitted by ``employee_id``, in submission order."""
        if actor_role is not None:
            require_permission(actor_role, Operation.VIEW_OWN_EXPENSES)
        return self.store.expenses_of(employee_id)

    def assign_manager(
        self,
        employee_id: str,
        manager_id: str | None,
        actor_role: Role | None = None,
    ) -> None:
        """Set or clear the manager who approves ``employee_id``'s expenses first.

        Raises:
            ValueError: If an employee is made their own manager.
        """
        if actor_role is not None:
            require_permission(actor_role, Operation.MANAGE_USERS)
        if manager_id is not None and manager_id == employee_id:
            raise ValueError(f"Employee '{employee_id}' cannot manage themselves.")
        self.store.set_manager(employee_id, manager_id)
        logger.info("Manager of %s set to %s", employee_id, manager_id)
