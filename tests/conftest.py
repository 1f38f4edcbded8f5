"""Shared fixtures for expense workflow tests."""

from __future__ import annotations

from decimal import Decimal

import pytest

from expense_workflow import (
    Expense,
    ExpenseWorkflowEngine,
    FlowDefinition,
    parse_flow,
)

SEQUENTIAL_FLOW_JSON: dict = {
    "id": "sequential",
    "name": "Three approvers, no rule",
    "steps": [
        {"sequence_order": 1, "approver_id": "A"},
        {"sequence_order": 2, "approver_id": "B"},
        {"sequence_order": 3, "approver_id": "C"},
    ],
}

MANAGER_FIRST_FLOW_JSON: dict = {
    "id": "manager_first",
    "name": "Standard Flow",
    "is_manager_approver_first": True,
    "steps": [{"sequence_order": 1, "approver_id": "admin1"}],
    "rule_type": None,
}

PERCENTAGE_FLOW_JSON: dict = {
    "id": "percentage",
    "steps": [
        {"sequence_order": 1, "approver_id": "A"},
        {"sequence_order": 2, "approver_id": "B"},
    ],
    "rule_type": "Percentage",
    "approval_percentage": 50,
}

SPECIFIC_APPROVER_FLOW_JSON: dict = {
    "id": "specific",
    "steps": [
        {"sequence_order": 1, "approver_id": "A"},
        {"sequence_order": 2, "approver_id": "B"},
        {"sequence_order": 3, "approver_id": "C"},
    ],
    "rule_type": "SpecificApprover",
    "critical_approver_id": "B",
}

HYBRID_FLOW_JSON: dict = {
    "id": "hybrid",
    "steps": [
        {"sequence_order": 1, "approver_id": "A"},
        {"sequence_order": 2, "approver_id": "B"},
        {"sequence_order": 3, "approver_id": "C"},
        {"sequence_order": 4, "approver_id": "D"},
    ],
    "rule_type": "Hybrid",
    "approval_percentage": 75,
    "critical_approver_id": "D",
}


def make_expense(flow_id: str, expense_id: str = "exp-1", employee_id: str = "emp1") -> Expense:
    return Expense(
        id=expense_id,
        employee_id=employee_id,
        amount=Decimal("120.50"),
        flow_id=flow_id,
        currency="USD",
        category="Travel",
        description="Taxi to client site",
    )


@pytest.fixture
def engine() -> ExpenseWorkflowEngine:
    return ExpenseWorkflowEngine()


@pytest.fixture
def sequential_flow() -> FlowDefinition:
    return parse_flow(SEQUENTIAL_FLOW_JSON)


@pytest.fixture
def manager_first_flow() -> FlowDefinition:
    return parse_flow(MANAGER_FIRST_FLOW_JSON)


@pytest.fixture
def percentage_flow() -> FlowDefinition:
    return parse_flow(PERCENTAGE_FLOW_JSON)


@pytest.fixture
def specific_flow() -> FlowDefinition:
    return parse_flow(SPECIFIC_APPROVER_FLOW_JSON)


@pytest.fixture
def hybrid_flow() -> FlowDefinition:
    return parse_flow(HYBRID_FLOW_JSON)
