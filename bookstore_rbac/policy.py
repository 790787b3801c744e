"""
The policy matrix: (role, resource, operation) -> permitted column set.

Loaded once from a declarative JSON file and handed to whoever needs it.
The loaded matrix is read-only.
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Tuple, Union

from bookstore_rbac.database import (
    IMMUTABLE_COLUMNS, RESOURCES, RESTRICTED_COLUMNS, resource_columns,
)
from bookstore_rbac.errors import PolicyConfigError
from bookstore_rbac.models import Operation, Role

GrantKey = Tuple[Role, str, Operation]


class PolicyMatrix:
    """Immutable grant table keyed by (role, resource, operation)."""

    def __init__(self, grants: Mapping[GrantKey, Iterable[str]]):
        frozen: Dict[GrantKey, FrozenSet[str]] = {
            key: frozenset(cols) for key, cols in grants.items()
        }
        self._grants = MappingProxyType(frozen)
        writable: Dict[str, set] = {r: set() for r in RESOURCES}
        for (_role, resource, op), cols in frozen.items():
            if op is Operation.UPDATE:
                writable[resource].update(cols)
        self._writable = MappingProxyType({r: frozenset(c) for r, c in writable.items()})

    @property
    def grants(self) -> Mapping[GrantKey, FrozenSet[str]]:
        return self._grants

    def columns(self, role: Role, resource: str, operation: Operation) -> FrozenSet[str]:
        """Granted columns, or an empty set when no such grant exists."""
        return self._grants.get((role, resource, operation), frozenset())

    def has_grant(self, role: Role, resource: str, operation: Operation) -> bool:
        return (role, resource, operation) in self._grants

    def operations(self, role: Role, resource: str) -> FrozenSet[Operation]:
        """Every operation the role holds on the resource."""
        return frozenset(op for (r, res, op) in self._grants if r is role and res == resource)

    def writable_by_anyone(self, resource: str) -> FrozenSet[str]:
        """Columns of *resource* that at least one role may update."""
        return self._writable.get(resource, frozenset())

    def __eq__(self, other):
        return isinstance(other, PolicyMatrix) and dict(self._grants) == dict(other._grants)

    def __repr__(self):
        return f"PolicyMatrix({len(self._grants)} grants)"


# ── Loading / validation ─────────────────────────────────────────────

def _parse_enum(enum_cls, raw: str, what: str):
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        raise PolicyConfigError(f"Unknown {what} '{raw}' in policy file.") from None


def _validate_grant(role: Role, resource: str, op: Operation, cols: Iterable[str]) -> None:
    known = set(resource_columns(resource))
    unknown = sorted(set(cols) - known)
    if unknown:
        raise PolicyConfigError(
            f"Grant {role.value}/{resource}/{op.value} names unknown column(s): {', '.join(unknown)}."
        )
    if op is Operation.DELETE:
        raise PolicyConfigError(f"Delete grants are not supported ({role.value}/{resource}).")
    if op is Operation.INSERT and resource != "book":
        raise PolicyConfigError(f"Insert may only be granted on book, not {resource}.")
    if op is Operation.READ:
        leaked = sorted(set(cols) & RESTRICTED_COLUMNS[resource])
        if leaked:
            raise PolicyConfigError(
                f"Column(s) {', '.join(leaked)} on {resource} may not be granted for read."
            )
    if op is Operation.UPDATE:
        frozen = sorted(set(cols) & IMMUTABLE_COLUMNS[resource])
        if frozen:
            raise PolicyConfigError(
                f"Column(s) {', '.join(frozen)} on {resource} are immutable and may not be granted for update."
            )


def parse_policy(doc: Mapping) -> PolicyMatrix:
    """Build a PolicyMatrix from the decoded JSON document."""
    roles = doc.get("roles") if isinstance(doc, Mapping) else None
    if not isinstance(roles, Mapping):
        raise PolicyConfigError("Policy file must contain a 'roles' object.")

    grants: Dict[GrantKey, FrozenSet[str]] = {}
    for raw_role, resources in roles.items():
        role = _parse_enum(Role, raw_role, "role")
        if role is Role.ADMIN:
            raise PolicyConfigError("The admin role bypasses the matrix and may not be listed.")
        for resource, ops in (resources or {}).items():
            if resource not in RESOURCES:
                raise PolicyConfigError(f"Unknown resource '{resource}' in policy file.")
            for raw_op, cols in (ops or {}).items():
                op = _parse_enum(Operation, raw_op, "operation")
                if not isinstance(cols, list) or not all(isinstance(c, str) for c in cols):
                    raise PolicyConfigError(
                        f"Grant {role.value}/{resource}/{op.value} must be a list of column names."
                    )
                _validate_grant(role, resource, op, cols)
                grants[(role, resource, op)] = frozenset(cols)

    return PolicyMatrix(grants)


def load_policy_matrix(path: Union[str, Path]) -> PolicyMatrix:
    """Read and validate the policy file at *path*."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as fh:
            doc = json.load(fh)
    except FileNotFoundError:
        raise PolicyConfigError(f"Policy file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise PolicyConfigError(f"Policy file {path} is not valid JSON: {e}") from e

    matrix = parse_policy(doc)
    print(f"[init] Loaded {len(matrix.grants)} grants from {path}")
    return matrix


# ── Presentation ─────────────────────────────────────────────────────

def describe_grants(matrix: PolicyMatrix, role: Role) -> str:
    """Human-readable summary of what *role* may see and change."""
    if role is Role.ADMIN:
        return (
            "Admin rule: full access to all resources and operations except delete.\n"
            "Restricted columns stay hidden and immutable columns stay read-only."
        )

    lines = []
    for resource in RESOURCES:
        ops = matrix.operations(role, resource)
        if not ops:
            continue
        order = resource_columns(resource)
        for op in Operation:
            if op not in ops:
                continue
            cols = [c for c in order if c in matrix.columns(role, resource, op)]
            lines.append(f"{resource}: {op.value} ({', '.join(cols)})")
    if not lines:
        return f"(role '{role.value}' holds no grants)"
    return "\n".join(lines)
