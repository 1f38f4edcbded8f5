"""Role-based authorization, kept apart from the approval state machine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from expense_workflow.exceptions import PermissionDeniedError


class Role(str, Enum):
    """User roles."""

    ADMIN = "Admin"
    MANAGER = "Manager"
    EMPLOYEE = "Employee"


class Operation(str, Enum):
    """Operations a role may be allowed to perform."""

    SUBMIT_EXPENSE = "submit_expense"
    VIEW_OWN_EXPENSES = "view_own_expenses"
    DECIDE_APPROVAL = "decide_approval"
    MANAGE_USERS = "manage_users"
    MANAGE_FLOWS = "manage_flows"


ROLE_PERMISSIONS: dict[Role, frozenset[Operation]] = {
    Role.ADMIN: frozenset(Operation),
    Role.MANAGER: frozenset(
        {Operation.SUBMIT_EXPENSE, Operation.VIEW_OWN_EXPENSES, Operation.DECIDE_APPROVAL}
    ),
    Role.EMPLOYEE: frozenset({Operation.SUBMIT_EXPENSE, Operation.VIEW_OWN_EXPENSES}),
}

# Maps application routes to the operation that guards them.
ROUTE_OPERATIONS: dict[str, Operation] = {
    "/": Operation.VIEW_OWN_EXPENSES,
    "/dashboard": Operation.VIEW_OWN_EXPENSES,
    "/expenses/new": Operation.SUBMIT_EXPENSE,
    "/manager/dashboard": Operation.DECIDE_APPROVAL,
    "/admin/users": Operation.MANAGE_USERS,
    "/admin/flows": Operation.MANAGE_FLOWS,
}

DEFAULT_ROUTES: dict[Role, str] = {
    Role.ADMIN: "/admin/users",
    Role.MANAGER: "/manager/dashboard",
    Role.EMPLOYEE: "/dashboard",
}


@dataclass(frozen=True)
class NavigationItem:
    href: str
    label: str


NAVIGATION: tuple[NavigationItem, ...] = (
    NavigationItem("/", "Home"),
    NavigationItem("/dashboard", "My Expenses"),
    NavigationItem("/expenses/new", "New Expense"),
    NavigationItem("/manager/dashboard", "Manager Dashboard"),
    NavigationItem("/admin/users", "Manage Users"),
    NavigationItem("/admin/flows", "Approval Flows"),
)


def can_perform(role: Role | str, operation: Operation) -> bool:
    """Return True if ``role`` may perform ``operation``."""
    return operation in ROLE_PERMISSIONS.get(Role(role), frozenset())


def require_permission(role: Role | str, operation: Operation) -> None:
    """Raise PermissionDeniedError unless ``role`` may perform ``operation``."""
    if not can_perform(role, operation):
        raise PermissionDeniedError(
            f"Role '{Role(role).value}' may not perform '{operation.value}'."
        )


def can_access_route(role: Role | str, route: str) -> bool:
    """Unknown routes are closed to every role."""
    operation = ROUTE_OPERATIONS.get(route)
    return operation is not None and can_perform(role, operation)


def default_route(role: Role | str) -> str:
    return DEFAULT_ROUTES.get(Role(role), "/dashboard")


def navigation_items(role: Role | str) -> list[NavigationItem]:
    return [item for item in NAVIGATION if can_access_route(role, item.href)]
