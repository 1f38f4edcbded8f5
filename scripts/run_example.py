#!/usr/bin/env python3
"""Example: run expenses through a manager-first hybrid approval flow."""

from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path

from expense_workflow import (
    Decision,
    Expense,
    ExpenseWorkflowEngine,
    ExpenseWorkflowService,
    InMemoryWorkflowStore,
    load_flow_file,
)

FLOW_PATH = Path(__file__).parent / "example_flow.json"


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)-7s %(name)s: %(message)s")

    # 1. Load and validate the flow definition
    flow = load_flow_file(FLOW_PATH)
    print(f"Loaded flow: {flow.name} (rule={flow.rule_type.value})")
    print(f"  Steps: {', '.join(s.approver_id for s in flow.ordered_steps)}")
    print()

    store = InMemoryWorkflowStore(flows={flow.id: flow}, managers={"alice": "bob"})
    service = ExpenseWorkflowService(store)

    # --- Scenario A: critical approver short-circuits the sequence ---
    print("=== Scenario A: CFO approval auto-approves ===")
    service.submit(Expense(id="EXP-001", employee_id="alice", amount=Decimal("500"), flow_id=flow.id))
    for approver in ("bob", "finance", "cfo"):
        outcome = service.decide("EXP-001", approver, Decision.APPROVED)
        nxt = outcome.new_approval_record.approver_id if outcome.new_approval_record else "-"
        print(f"  {approver:8s} approved -> status={outcome.new_expense_status.value}, next={nxt}")
    print()

    # --- Scenario B: rejection ends the flow ---
    print("=== Scenario B: finance rejects ===")
    service.submit(Expense(id="EXP-002", employee_id="alice", amount=Decimal("5000"), flow_id=flow.id))
    service.decide("EXP-002", "bob", Decision.APPROVED)
    outcome = service.decide("EXP-002", "finance", Decision.REJECTED, comments="Missing receipt")
    print(f"  finance rejected -> status={outcome.new_expense_status.value}")
    print()

    # --- Replay demonstration ---
    print("=== Replay: reconstruct Scenario A from its decisions ===")
    engine = ExpenseWorkflowEngine()
    replayed = engine.replay(
        Expense(id="EXP-001", employee_id="alice", amount=Decimal("500"), flow_id=flow.id),
        flow,
        [("bob", Decision.APPROVED), ("finance", Decision.APPROVED), ("cfo", Decision.APPROVED)],
        manager_id="bob",
    )
    print(f"  Replayed status: {replayed.expense.status.value}")
    assert replayed.records == list(store.load_ledger("EXP-001"))
    print("  Replay matches stored ledger!")
    print()

    print("=== Ledger (Scenario A) ===")
    for i, record in enumerate(replayed.records):
        print(f"  [{i}] {record.approver_id:8s} {record.status.value:9s} id={record.id[:8]}...")


if __name__ == "__main__":
    main()
