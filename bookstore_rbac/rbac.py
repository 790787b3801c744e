"""
Role-Based Access Control: resolving staff identity and evaluating requests
against the policy matrix.
"""

from typing import Iterable, Mapping, Optional, Union

from sqlalchemy import select

from bookstore_rbac.database import (
    IMMUTABLE_COLUMNS, RESOURCES, RESTRICTED_COLUMNS, resource_columns, staff_users,
)
from bookstore_rbac.errors import (
    AccessDenied, ColumnAccessDenied, ImmutableFieldViolation, OperationDenied,
    ResourceAccessDenied,
)
from bookstore_rbac.models import AccessContext, Allowed, Decision, Denied, Operation, Role
from bookstore_rbac.policy import PolicyMatrix


def load_access_context(engine, api_key: str) -> AccessContext:
    """Look up a staff member by API key and return their AccessContext."""
    sql = (
        select(staff_users.c.id, staff_users.c.display_name, staff_users.c.role)
        .where(staff_users.c.api_key == api_key, staff_users.c.is_active)
        .limit(1)
    )
    with engine.connect() as conn:
        row = conn.execute(sql).mappings().first()

    if not row:
        raise ValueError("Invalid key or user inactive (no match in staff_users).")

    try:
        role = Role(str(row["role"]).strip().lower())
    except ValueError:
        raise ValueError(f"Unsupported role '{row['role']}' in staff_users.") from None

    return AccessContext(
        user_id=int(row["id"]),
        display_name=str(row["display_name"]),
        role=role,
    )


def parse_role(role: Union[Role, str]) -> Optional[Role]:
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).strip().lower())
    except ValueError:
        return None


def parse_operation(operation: Union[Operation, str]) -> Operation:
    if isinstance(operation, Operation):
        return operation
    try:
        return Operation(str(operation).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown operation '{operation}'.") from None


# ── Evaluator ────────────────────────────────────────────────────────

def _project(resource: str, columns: Iterable[str]) -> tuple:
    wanted = set(columns)
    return tuple(c for c in resource_columns(resource) if c in wanted)


def _check_admin(resource: str, operation: Operation, requested: set) -> None:
    """Admin skips the matrix but not the data-model invariants."""
    role = Role.ADMIN
    if operation is Operation.DELETE:
        raise OperationDenied(role, resource, operation)
    unknown = requested - set(resource_columns(resource))
    if unknown:
        raise ColumnAccessDenied(role, resource, operation, unknown)
    if operation is Operation.READ:
        hidden = requested & RESTRICTED_COLUMNS[resource]
        if hidden:
            raise ColumnAccessDenied(role, resource, operation, hidden)
    if operation is Operation.UPDATE:
        frozen = requested & IMMUTABLE_COLUMNS[resource]
        if frozen:
            raise ImmutableFieldViolation(role, resource, operation, frozen)


def _default_columns(matrix: PolicyMatrix, role: Role, resource: str) -> set:
    if role is Role.ADMIN:
        return set(resource_columns(resource)) - RESTRICTED_COLUMNS[resource]
    return set(matrix.columns(role, resource, Operation.READ))


def check(matrix: PolicyMatrix, role: Union[Role, str], resource: str,
          operation: Union[Operation, str], columns: Optional[Iterable[str]] = None) -> Allowed:
    """
    Evaluate one request and return the Allowed projection, or raise.

    Resolution order: resource grant, then operation grant, then columns.
    An empty column set on read means the role's whole projection.
    """
    operation = parse_operation(operation)
    parsed = parse_role(role)
    requested = set(columns or ())

    if parsed is None or resource not in RESOURCES:
        raise ResourceAccessDenied(role, resource, operation)

    if parsed is not Role.ADMIN:
        if not matrix.operations(parsed, resource):
            raise ResourceAccessDenied(parsed, resource, operation)
        if not matrix.has_grant(parsed, resource, operation):
            raise OperationDenied(parsed, resource, operation)

    if not requested:
        if operation is not Operation.READ:
            raise ValueError(f"No columns given for {operation.value} on {resource}.")
        requested = _default_columns(matrix, parsed, resource)

    if parsed is Role.ADMIN:
        _check_admin(resource, operation, requested)
        return Allowed(parsed, resource, operation, _project(resource, requested))

    denied = requested - matrix.columns(parsed, resource, operation)
    if denied:
        if operation is Operation.UPDATE:
            never_writable = IMMUTABLE_COLUMNS[resource] | (
                set(resource_columns(resource)) - matrix.writable_by_anyone(resource)
            )
            frozen = denied & never_writable
            if frozen:
                raise ImmutableFieldViolation(parsed, resource, operation, frozen)
        raise ColumnAccessDenied(parsed, resource, operation, denied)

    return Allowed(parsed, resource, operation, _project(resource, requested))


def authorize(matrix: PolicyMatrix, role: Union[Role, str], resource: str,
              operation: Union[Operation, str],
              columns: Optional[Iterable[str]] = None) -> Decision:
    """Non-raising form of :func:`check`: Allowed or Denied(reason)."""
    try:
        return check(matrix, role, resource, operation, columns)
    except AccessDenied as e:
        return Denied(e)


def check_predicate(matrix: PolicyMatrix, role: Union[Role, str], resource: str,
                    predicate: Optional[Mapping]) -> None:
    """Filter columns must be readable, so hidden values cannot be probed."""
    if predicate:
        check(matrix, role, resource, Operation.READ, predicate.keys())
