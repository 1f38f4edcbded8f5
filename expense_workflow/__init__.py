"""expense_workflow — Expense approval flows with conditional auto-approval."""

import logging

from expense_workflow.auto_approval import evaluate
from expense_workflow.engine import ExpenseWorkflowEngine, derive_record_id
from expense_workflow.exceptions import (
    ConcurrentModificationError,
    DocumentValidationError,
    ExpenseWorkflowError,
    FlowValidationError,
    InvalidConfigurationError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from expense_workflow.ledger import ApprovalLedger
from expense_workflow.models import (
    ApprovalRecord,
    ApprovalStatus,
    ApprovalStep,
    AutoApprovalResult,
    Decision,
    Expense,
    ExpenseStatus,
    FlowDefinition,
    PendingDecision,
    ReplayResult,
    RuleType,
    StepResult,
    WorkflowOutcome,
)
from expense_workflow.policy import Operation, Role, can_access_route, can_perform
from expense_workflow.schema import (
    load_flow_file,
    parse_approval_record,
    parse_expense,
    parse_flow,
    parse_ledger,
    validate_flow,
    validate_schema,
)
from expense_workflow.sequencer import first_approver, next_step
from expense_workflow.service import (
    ExpenseWorkflowService,
    InMemoryWorkflowStore,
    WorkflowStore,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Engine
    "ExpenseWorkflowEngine",
    "derive_record_id",
    "evaluate",
    "first_approver",
    "next_step",
    # Models
    "ApprovalLedger",
    "ApprovalRecord",
    "ApprovalStatus",
    "ApprovalStep",
    "AutoApprovalResult",
    "Decision",
    "Expense",
    "ExpenseStatus",
    "FlowDefinition",
    "PendingDecision",
    "ReplayResult",
    "RuleType",
    "StepResult",
    "WorkflowOutcome",
    # Schema
    "load_flow_file",
    "parse_approval_record",
    "parse_expense",
    "parse_flow",
    "parse_ledger",
    "validate_flow",
    "validate_schema",
    # Service
    "ExpenseWorkflowService",
    "InMemoryWorkflowStore",
    "WorkflowStore",
    # Policy
    "Operation",
    "Role",
    "can_access_route",
    "can_perform",
    # Exceptions
    "ConcurrentModificationError",
    "DocumentValidationError",
    "ExpenseWorkflowError",
    "FlowValidationError",
    "InvalidConfigurationError",
    "InvalidStateError",
    "NotFoundError",
    "PermissionDeniedError",
    # Version
    "__version__",
]
