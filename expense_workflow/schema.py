"""JSON schemas for flow, expense and approval documents, and parsing utilities."""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable

import jsonschema

from expense_workflow.exceptions import (
    DocumentValidationError,
    FlowValidationError,
    InvalidConfigurationError,
)
from expense_workflow.ledger import ApprovalLedger
from expense_workflow.models import (
    ApprovalRecord,
    ApprovalStatus,
    ApprovalStep,
    Expense,
    ExpenseStatus,
    FlowDefinition,
    RuleType,
)

STEP_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "sequence_order": {"type": "integer", "minimum": 1},
        "approver_id": {"type": "string", "minLength": 1},
        "flow_id": {"type": "string"},
    },
    "required": ["sequence_order", "approver_id"],
    "additionalProperties": False,
}

FLOW_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "name": {"type": "string"},
        "company_id": {"type": "string"},
        "is_manager_approver_first": {"type": "boolean"},
        "steps": {"type": "array", "items": STEP_SCHEMA},
        "rule_type": {
            "type": ["string", "null"],
            "enum": [t.value for t in RuleType] + [None],
        },
        "approval_percentage": {
            "type": ["integer", "null"],
            "minimum": 0,
            "maximum": 100,
        },
        "critical_approver_id": {"type": ["string", "null"]},
    },
    "required": ["id"],
    "additionalProperties": False,
}

EXPENSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "employee_id": {"type": "string", "minLength": 1},
        "amount": {"type": ["number", "string"], "minimum": 0},
        "currency": {"type": "string", "minLength": 3, "maxLength": 3},
        "category": {"type": "string"},
        "description": {"type": "string"},
        "expense_date": {"type": ["string", "null"], "format": "date"},
        "flow_id": {"type": "string", "minLength": 1},
        "status": {"type": "string", "enum": [s.value for s in ExpenseStatus]},
    },
    "required": ["id", "employee_id", "amount", "flow_id"],
}

APPROVAL_RECORD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "expense_id": {"type": "string", "minLength": 1},
        "approver_id": {"type": "string", "minLength": 1},
        "status": {"type": "string", "enum": [s.value for s in ApprovalStatus]},
        "comments": {"type": ["string", "null"]},
    },
    "required": ["id", "expense_id", "approver_id", "status"],
}


def _schema_errors(schema: dict[str, Any], data: Any) -> list[str]:
    validator = jsonschema.Draft7Validator(
        schema, format_checker=jsonschema.Draft7Validator.FORMAT_CHECKER
    )
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    return [f"  - {e.json_path}: {e.message}" for e in errors]


def validate_schema(data: dict[str, Any]) -> None:
    """Validate a raw flow document against the flow JSON schema.

    Raises:
        FlowValidationError: If the data does not conform to the schema.
    """
    messages = _schema_errors(FLOW_SCHEMA, data)
    if messages:
        raise FlowValidationError(
            f"Flow schema validation failed with {len(messages)} error(s):\n"
            + "\n".join(messages),
            errors=messages,
        )


def validate_flow(flow: FlowDefinition) -> None:
    """Validate the configuration invariants of a parsed flow.

    Checks:
    - Percentage and Hybrid rules carry an approval percentage in 0..100.
    - SpecificApprover and Hybrid rules carry a critical approver.
    - Sequence orders are positive and unique.
    - Each approver owns at most one step.
    - Steps are present unless the manager approves first.

    Raises:
        InvalidConfigurationError: Listing every violated invariant.
    """
    errors: list[str] = []
    rule = flow.rule_type

    if rule.uses_percentage and flow.approval_percentage is None:
        errors.append(f"Rule type {rule.value} requires an approval percentage.")
    if flow.approval_percentage is not None and not 0 <= flow.approval_percentage <= 100:
        errors.append(
            f"Approval percentage must be between 0 and 100; got {flow.approval_percentage}."
        )
    if rule.uses_critical_approver and not flow.critical_approver_id:
        errors.append(f"Rule type {rule.value} requires a critical approver.")

    orders = [s.sequence_order for s in flow.steps]
    duplicates = sorted({o for o in orders if orders.count(o) > 1})
    if duplicates:
        errors.append(
            "Duplicate sequence_order values: " + ", ".join(str(o) for o in duplicates)
        )
    approvers = [s.approver_id for s in flow.steps]
    repeated = sorted({a for a in approvers if a and approvers.count(a) > 1})
    if repeated:
        errors.append("Approvers listed in more than one step: " + ", ".join(repeated))
    for step in flow.steps:
        if step.sequence_order < 1:
            errors.append(
                f"Step for approver '{step.approver_id}' has non-positive "
                f"sequence_order {step.sequence_order}."
            )
        if not step.approver_id:
            errors.append(f"Step {step.sequence_order} has no approver.")

    if not flow.steps and not flow.is_manager_approver_first:
        errors.append("Flow must have at least one step unless the manager approves first.")

    if errors:
        raise InvalidConfigurationError(
            f"Flow '{flow.id}' configuration is invalid:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def parse_flow(data: dict[str, Any]) -> FlowDefinition:
    """Parse and validate a raw flow document into a FlowDefinition.

    This is the primary entry point for loading flows.

    Raises:
        FlowValidationError: If JSON schema validation fails.
        InvalidConfigurationError: If configuration invariants fail.
    """
    validate_schema(data)

    steps = tuple(
        ApprovalStep(sequence_order=s["sequence_order"], approver_id=s["approver_id"])
        for s in data.get("steps", [])
    )
    flow = FlowDefinition(
        id=data["id"],
        name=data.get("name", ""),
        steps=steps,
        is_manager_approver_first=data.get("is_manager_approver_first", False),
        rule_type=RuleType(data.get("rule_type") or RuleType.NONE.value),
        approval_percentage=data.get("approval_percentage"),
        critical_approver_id=data.get("critical_approver_id") or None,
    )

    validate_flow(flow)
    return flow


def load_flow_file(path: str | Path) -> FlowDefinition:
    """Read a JSON flow document from disk and parse it."""
    with open(path, encoding="utf-8") as f:
        return parse_flow(json.load(f))


def parse_expense(data: dict[str, Any]) -> Expense:
    """Parse a raw expense document.

    Raises:
        DocumentValidationError: If the document does not conform to the schema.
    """
    messages = _schema_errors(EXPENSE_SCHEMA, data)
    if messages:
        raise DocumentValidationError(
            "Expense document is invalid:\n" + "\n".join(messages), errors=messages
        )

    try:
        amount = Decimal(str(data["amount"]))
    except InvalidOperation:
        amount = Decimal("NaN")
    if not amount.is_finite() or amount < 0:
        raise DocumentValidationError(
            f"Expense amount must be a non-negative number; got {data['amount']!r}.",
            errors=[f"  - $.amount: {data['amount']!r}"],
        )

    raw_date = data.get("expense_date")
    return Expense(
        id=data["id"],
        employee_id=data["employee_id"],
        amount=amount,
        flow_id=data["flow_id"],
        currency=data.get("currency", "USD"),
        category=data.get("category", ""),
        description=data.get("description", ""),
        expense_date=date.fromisoformat(raw_date) if raw_date else None,
        status=ExpenseStatus(data.get("status", ExpenseStatus.PENDING.value)),
    )


def parse_approval_record(data: dict[str, Any]) -> ApprovalRecord:
    """Parse a raw approval record document.

    Raises:
        DocumentValidationError: If the document does not conform to the schema.
    """
    messages = _schema_errors(APPROVAL_RECORD_SCHEMA, data)
    if messages:
        raise DocumentValidationError(
            "Approval record document is invalid:\n" + "\n".join(messages), errors=messages
        )
    return ApprovalRecord(
        id=data["id"],
        expense_id=data["expense_id"],
        approver_id=data["approver_id"],
        status=ApprovalStatus(data["status"]),
        comments=data.get("comments"),
    )


def parse_ledger(expense_id: str, documents: Iterable[dict[str, Any]]) -> ApprovalLedger:
    """Parse creation-ordered approval record documents into a ledger."""
    return ApprovalLedger.of(expense_id, (parse_approval_record(d) for d in documents))


def flow_to_document(flow: FlowDefinition) -> dict[str, Any]:
    return {
        "id": flow.id,
        "name": flow.name,
        "is_manager_approver_first": flow.is_manager_approver_first,
        "steps": [
            {"sequence_order": s.sequence_order, "approver_id": s.approver_id}
            for s in flow.ordered_steps
        ],
        "rule_type": None if flow.rule_type == RuleType.NONE else flow.rule_type.value,
        "approval_percentage": flow.approval_percentage,
        "critical_approver_id": flow.critical_approver_id,
    }


def expense_to_document(expense: Expense) -> dict[str, Any]:
    return {
        "id": expense.id,
        "employee_id": expense.employee_id,
        "amount": str(expense.amount),
        "currency": expense.currency,
        "category": expense.category,
        "description": expense.description,
        "expense_date": expense.expense_date.isoformat() if expense.expense_date else None,
        "flow_id": expense.flow_id,
        "status": expense.status.value,
    }


def record_to_document(record: ApprovalRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "expense_id": record.expense_id,
        "approver_id": record.approver_id,
        "status": record.status.value,
        "comments": record.comments,
    }
