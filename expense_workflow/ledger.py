"""Append-only approval history for a single expense."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from expense_workflow.exceptions import InvalidStateError
from expense_workflow.models import ApprovalRecord, ApprovalStatus


@dataclass(frozen=True)
class ApprovalLedger:
    """Immutable, creation-ordered view of an expense's approval records."""

    expense_id: str
    records: tuple[ApprovalRecord, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        foreign = [r.id for r in self.records if r.expense_id != self.expense_id]
        if foreign:
            raise InvalidStateError(
                f"Ledger for expense '{self.expense_id}' contains records of another "
                f"expense: {', '.join(foreign)}"
            )
        ids = [r.id for r in self.records]
        if len(ids) != len(set(ids)):
            raise InvalidStateError(
                f"Ledger for expense '{self.expense_id}' contains duplicate record ids."
            )

    @classmethod
    def of(cls, expense_id: str, records: Iterable[ApprovalRecord] = ()) -> ApprovalLedger:
        return cls(expense_id=expense_id, records=tuple(records))

    def __iter__(self) -> Iterator[ApprovalRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def find(self, record_id: str) -> ApprovalRecord | None:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def pending_records(self) -> list[ApprovalRecord]:
        return [r for r in self.records if r.is_pending]

    def resolved_records(self) -> list[ApprovalRecord]:
        return [r for r in self.records if not r.is_pending]

    def active_record(self) -> ApprovalRecord | None:
        """Return the single pending record, if any.

        Raises:
            InvalidStateError: If more than one record is pending.
        """
        pending = self.pending_records()
        if len(pending) > 1:
            raise InvalidStateError(
                f"Expense '{self.expense_id}' has {len(pending)} pending approval records; "
                "at most one may be active."
            )
        return pending[0] if pending else None

    def approved_count(self) -> int:
        return sum(1 for r in self.records if r.status == ApprovalStatus.APPROVED)

    def has_resolved_from(self, approver_ids: Iterable[str]) -> bool:
        """Return True if any of ``approver_ids`` has already decided."""
        wanted = set(approver_ids)
        return any(r.approver_id in wanted for r in self.resolved_records())

    def append(self, record: ApprovalRecord) -> ApprovalLedger:
        return ApprovalLedger(self.expense_id, self.records + (record,))

    def replace(self, record: ApprovalRecord) -> ApprovalLedger:
        """Return a ledger with the record sharing ``record.id`` swapped out."""
        if self.find(record.id) is None:
            raise InvalidStateError(
                f"Approval record '{record.id}' is not part of expense '{self.expense_id}'."
            )
        return ApprovalLedger(
            self.expense_id,
            tuple(record if r.id == record.id else r for r in self.records),
        )
