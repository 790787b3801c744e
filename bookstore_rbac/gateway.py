"""
Authorization-checked access to the store.

Every function evaluates the request against the policy matrix first and
only touches the database once the whole request is allowed.
"""

import sys
from datetime import date
from typing import Any, Dict, Iterable, Mapping, Optional

import pandas as pd
from sqlalchemy import Date

from bookstore_rbac import store
from bookstore_rbac.database import get_table
from bookstore_rbac.errors import AccessDenied
from bookstore_rbac.models import Operation, Role
from bookstore_rbac.policy import PolicyMatrix
from bookstore_rbac.rbac import check, check_predicate


def _log_denial(e: AccessDenied) -> None:
    cols = f" columns={','.join(e.columns)}" if e.columns else ""
    print(f"[rbac] DENY role={e.role} {e.operation} {e.resource} check={e.check}{cols}",
          file=sys.stderr)


def _coerce(resource: str, values: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Convert string inputs (query strings, CLI tokens) to the column's type."""
    table = get_table(resource)
    out = {}
    for col, val in (values or {}).items():
        if isinstance(val, str):
            col_type = table.c[col].type
            try:
                if isinstance(col_type, Date):
                    val = date.fromisoformat(val)
                elif col_type.python_type in (int, float):
                    val = col_type.python_type(val)
            except ValueError:
                raise ValueError(f"Invalid value for {resource}.{col}.") from None
        out[col] = val
    return out


def read(engine, matrix: PolicyMatrix, role: Role, resource: str,
         columns: Optional[Iterable[str]] = None,
         predicate: Optional[Mapping[str, Any]] = None,
         limit: Optional[int] = None) -> pd.DataFrame:
    """Return the role's projection of *resource* as a DataFrame."""
    if limit is not None and limit < 0:
        raise ValueError("limit must be a non-negative integer.")
    try:
        allowed = check(matrix, role, resource, Operation.READ, columns)
        check_predicate(matrix, role, resource, predicate)
    except AccessDenied as e:
        _log_denial(e)
        raise
    return store.query(engine, resource, allowed.columns, _coerce(resource, predicate), limit=limit)


def apply_update(engine, matrix: PolicyMatrix, role: Role, resource: str,
                 values: Mapping[str, Any],
                 predicate: Optional[Mapping[str, Any]] = None) -> int:
    """
    Update *values* on rows matching *predicate*.

    The request is rejected as a whole if any column falls outside the
    role's update whitelist; nothing is written in that case.
    """
    if not values:
        raise ValueError(f"No columns given for update on {resource}.")
    try:
        check(matrix, role, resource, Operation.UPDATE, values.keys())
        check_predicate(matrix, role, resource, predicate)
    except AccessDenied as e:
        _log_denial(e)
        raise
    affected = store.update(engine, resource, _coerce(resource, values),
                            _coerce(resource, predicate))
    print(f"[rbac] {getattr(role, 'value', role)} updated {affected} {resource} row(s): "
          f"{', '.join(sorted(values))}")
    return affected


def insert_row(engine, matrix: PolicyMatrix, role: Role, resource: str,
               values: Mapping[str, Any]) -> int:
    """Insert one row and return its id."""
    if not values:
        raise ValueError(f"No columns given for insert on {resource}.")
    try:
        check(matrix, role, resource, Operation.INSERT, values.keys())
    except AccessDenied as e:
        _log_denial(e)
        raise
    new_id = store.insert(engine, resource, _coerce(resource, values))
    print(f"[rbac] {getattr(role, 'value', role)} inserted {resource} id={new_id}")
    return new_id
