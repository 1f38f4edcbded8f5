"""Tests for expense_workflow.sequencer."""

from __future__ import annotations

import pytest

from expense_workflow import (
    ApprovalLedger,
    ApprovalRecord,
    ApprovalStatus,
    ApprovalStep,
    FlowDefinition,
    InvalidConfigurationError,
    StepResult,
    first_approver,
    next_step,
)


def ledger_of(*entries: tuple[str, ApprovalStatus]) -> ApprovalLedger:
    return ApprovalLedger.of(
        "e1",
        [
            ApprovalRecord(id=f"r{i}", expense_id="e1", approver_id=approver, status=status)
            for i, (approver, status) in enumerate(entries)
        ],
    )


class TestNextStep:
    def test_middle_step_advances(self, sequential_flow: FlowDefinition) -> None:
        ledger = ledger_of(("A", ApprovalStatus.APPROVED), ("B", ApprovalStatus.PENDING))
        assert next_step(sequential_flow, ledger, "B") == StepResult(
            has_next=True, is_last_step=False, next_approver_id="C"
        )

    def test_last_step(self, sequential_flow: FlowDefinition) -> None:
        ledger = ledger_of(("C", ApprovalStatus.PENDING))
        result = next_step(sequential_flow, ledger, "C")
        assert result.has_next is False
        assert result.is_last_step is True
        assert result.next_approver_id is None

    def test_steps_follow_sequence_order_not_list_order(self) -> None:
        flow = FlowDefinition(
            id="f",
            steps=(ApprovalStep(9, "late"), ApprovalStep(2, "early")),
        )
        result = next_step(flow, ledger_of(("early", ApprovalStatus.PENDING)), "early")
        assert result.next_approver_id == "late"

    def test_unknown_approver_routes_to_first_step(self, sequential_flow: FlowDefinition) -> None:
        result = next_step(sequential_flow, ledger_of(("stranger", ApprovalStatus.PENDING)), "stranger")
        assert result == StepResult(has_next=True, is_last_step=False, next_approver_id="A")

    def test_manager_first_routes_to_first_step(self, manager_first_flow: FlowDefinition) -> None:
        result = next_step(manager_first_flow, ledger_of(("mgr1", ApprovalStatus.PENDING)), "mgr1")
        assert result.next_approver_id == "admin1"
        assert result.is_last_step is False

    def test_manager_who_owns_later_step_goes_to_first_step(self) -> None:
        flow = FlowDefinition(
            id="f",
            is_manager_approver_first=True,
            steps=(ApprovalStep(1, "A"), ApprovalStep(2, "mgr")),
        )
        result = next_step(flow, ledger_of(("mgr", ApprovalStatus.PENDING)), "mgr")
        assert result.next_approver_id == "A"

        # Once a step approver has decided the manager phase is over.
        later = ledger_of(
            ("mgr", ApprovalStatus.APPROVED),
            ("A", ApprovalStatus.APPROVED),
            ("mgr", ApprovalStatus.PENDING),
        )
        assert next_step(flow, later, "mgr").is_last_step is True

    def test_manager_who_owns_first_step_covers_it(self) -> None:
        flow = FlowDefinition(
            id="f",
            is_manager_approver_first=True,
            steps=(ApprovalStep(1, "mgr"), ApprovalStep(2, "B")),
        )
        result = next_step(flow, ledger_of(("mgr", ApprovalStatus.PENDING)), "mgr")
        assert result.next_approver_id == "B"

    def test_manager_first_without_steps_is_last(self) -> None:
        flow = FlowDefinition(id="f", is_manager_approver_first=True)
        result = next_step(flow, ledger_of(("mgr", ApprovalStatus.PENDING)), "mgr")
        assert result == StepResult(has_next=False, is_last_step=True)

    def test_empty_steps_has_no_next(self) -> None:
        result = next_step(FlowDefinition(id="f"), ledger_of(), "anyone")
        assert result.has_next is False
        assert result.is_last_step is True


class TestFirstApprover:
    def test_first_step_when_not_manager_first(self, sequential_flow: FlowDefinition) -> None:
        assert first_approver(sequential_flow, manager_id="mgr1") == "A"

    def test_manager_when_manager_first(self, manager_first_flow: FlowDefinition) -> None:
        assert first_approver(manager_first_flow, manager_id="mgr1") == "mgr1"

    def test_falls_back_to_first_step_without_manager(
        self, manager_first_flow: FlowDefinition, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level("WARNING", logger="expense_workflow.sequencer"):
            assert first_approver(manager_first_flow, manager_id=None) == "admin1"
        assert "falling back" in caplog.text

    def test_unresolvable_raises(self) -> None:
        flow = FlowDefinition(id="f", is_manager_approver_first=True)
        with pytest.raises(InvalidConfigurationError, match="manager"):
            first_approver(flow, manager_id=None)

    def test_no_steps_raises(self) -> None:
        with pytest.raises(InvalidConfigurationError, match="no approval steps"):
            first_approver(FlowDefinition(id="f"))
