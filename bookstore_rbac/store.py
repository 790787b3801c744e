"""
Data store primitives: plain reads and writes against the bookstore tables.

No authorization happens here; callers go through ``bookstore_rbac.gateway``.
Each write runs in its own transaction, so concurrent updates rely on the
database's isolation level.
"""

from typing import Any, Iterable, Mapping, Optional

import pandas as pd
from sqlalchemy import and_, insert as sa_insert, select, update as sa_update
from sqlalchemy.exc import IntegrityError

from bookstore_rbac.database import get_table
from bookstore_rbac.errors import ReferentialViolation


def _where(table, predicate: Optional[Mapping[str, Any]]):
    if not predicate:
        return None
    return and_(*(table.c[col] == val for col, val in predicate.items()))


def _is_foreign_key_error(err: IntegrityError) -> bool:
    return "foreign key" in str(err.orig).lower()


def query(engine, resource: str, columns: Iterable[str],
          predicate: Optional[Mapping[str, Any]] = None,
          limit: Optional[int] = None) -> pd.DataFrame:
    """Select *columns* from *resource*, filtered by equality *predicate*."""
    table = get_table(resource)
    stmt = select(*(table.c[col] for col in columns))
    clause = _where(table, predicate)
    if clause is not None:
        stmt = stmt.where(clause)
    stmt = stmt.order_by(table.c.id)
    if limit is not None:
        stmt = stmt.limit(limit)

    with engine.connect() as conn:
        return pd.read_sql_query(stmt, conn)


def update(engine, resource: str, values: Mapping[str, Any],
           predicate: Optional[Mapping[str, Any]] = None) -> int:
    """Apply *values* to every row matching *predicate*; return the row count."""
    table = get_table(resource)
    stmt = sa_update(table).values(dict(values))
    clause = _where(table, predicate)
    if clause is not None:
        stmt = stmt.where(clause)

    try:
        with engine.begin() as conn:
            result = conn.execute(stmt)
    except IntegrityError as e:
        if _is_foreign_key_error(e):
            raise ReferentialViolation(resource, "referenced row does not exist") from e
        raise
    return result.rowcount


def insert(engine, resource: str, values: Mapping[str, Any]) -> int:
    """Insert one row into *resource* and return its new id."""
    table = get_table(resource)
    try:
        with engine.begin() as conn:
            result = conn.execute(sa_insert(table).values(dict(values)))
    except IntegrityError as e:
        if _is_foreign_key_error(e):
            raise ReferentialViolation(resource, "referenced row does not exist") from e
        raise
    return int(result.inserted_primary_key[0])
