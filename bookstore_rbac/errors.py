"""
Authorization and store error taxonomy.

Every authorization error is a ``ValueError`` so that callers which treat
validation failures uniformly (the CLI, the REST routes) keep working.
Messages name the failed check, the resource and the column names involved,
never any stored value.
"""

from typing import Iterable, Tuple


class AccessDenied(ValueError):
    """Base class for a terminal authorization denial."""

    check = "access"

    def __init__(self, role: str, resource: str, operation: str,
                 columns: Iterable[str] = ()):
        self.role = getattr(role, "value", role)
        self.resource = resource
        self.operation = getattr(operation, "value", operation)
        self.columns: Tuple[str, ...] = tuple(sorted(columns))
        super().__init__(self._describe())

    def _describe(self) -> str:
        msg = f"RBAC block ({self.check}): role '{self.role}' may not {self.operation} {self.resource}"
        if self.columns:
            msg += f" column(s) {', '.join(self.columns)}"
        return msg + "."

    def to_dict(self) -> dict:
        return {
            "check": self.check,
            "resource": self.resource,
            "operation": self.operation,
            "columns": list(self.columns),
        }


class ResourceAccessDenied(AccessDenied):
    """The role holds no grant of any kind on the resource."""
    check = "resource"


class OperationDenied(AccessDenied):
    """The role may access the resource, but not through this operation."""
    check = "operation"


class ColumnAccessDenied(AccessDenied):
    """One or more requested columns fall outside the granted set."""
    check = "column"


class ImmutableFieldViolation(AccessDenied):
    """An update touched a column that no role may ever write."""
    check = "immutable"


class ReferentialViolation(ValueError):
    """The store rejected a write that references a missing parent row."""

    def __init__(self, resource: str, detail: str = ""):
        self.resource = resource
        msg = f"Referential integrity violation writing {resource}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class PolicyConfigError(ValueError):
    """The policy matrix file is malformed or breaks a data-model invariant."""
