"""
Domain dataclasses used across the application.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from bookstore_rbac.errors import AccessDenied


class Role(str, Enum):
    SALES_REP = "sales_rep"
    CUSTOMER_SERVICE = "customer_service"
    INVENTORY_MANAGER = "inventory_manager"
    ADMIN = "admin"                # superuser bypass, never listed in the matrix


class Operation(str, Enum):
    READ = "read"
    UPDATE = "update"
    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class AccessContext:
    """Represents the authenticated staff member and their resolved role."""
    user_id: int
    display_name: str
    role: Role


@dataclass(frozen=True)
class Allowed:
    """A granted request: the projection the caller may read or write."""
    role: Role
    resource: str
    operation: Operation
    columns: Tuple[str, ...]

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    """A refused request, carrying the denial that explains which check failed."""
    reason: AccessDenied

    @property
    def allowed(self) -> bool:
        return False

    @property
    def check(self) -> Optional[str]:
        return self.reason.check


Decision = Union[Allowed, Denied]
