"""
Database engine initialisation, the bookstore schema, and column metadata.
"""

import sys
from typing import Dict, FrozenSet

from sqlalchemy import (
    Boolean, Column, Date, ForeignKey, Integer, MetaData, Numeric, String, Table,
    create_engine, event, text,
)
from sqlalchemy.engine import Engine

from bookstore_rbac.config import get_env, DEFAULT_DB_URI

metadata = MetaData()

# ── Bookstore tables ─────────────────────────────────────────────────

book = Table(
    "book", metadata,
    Column("id", Integer, primary_key=True),
    Column("title", String(255), nullable=False),
    Column("author", String(255), nullable=False),
    Column("price", Numeric(10, 2, asdecimal=False), nullable=False),
    Column("cost_price", Numeric(10, 2, asdecimal=False), nullable=False),
    Column("stock", Integer, nullable=False, default=0),
)

customer = Table(
    "customer", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("phone", String(32)),
    Column("credit_card", String(64)),
)

orders = Table(
    "orders", metadata,
    Column("id", Integer, primary_key=True),
    Column("customer_id", Integer, ForeignKey("customer.id"), nullable=False),
    Column("order_date", Date, nullable=False),
    Column("status", String(32), nullable=False, default="Pending"),
)

order_item = Table(
    "order_item", metadata,
    Column("id", Integer, primary_key=True),
    Column("order_id", Integer, ForeignKey("orders.id"), nullable=False),
    Column("book_id", Integer, ForeignKey("book.id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("price_at_order", Numeric(10, 2, asdecimal=False), nullable=False),
)

# Identity lookup only; not an RBAC resource.
staff_users = Table(
    "staff_users", metadata,
    Column("id", Integer, primary_key=True),
    Column("display_name", String(255), nullable=False),
    Column("role", String(32), nullable=False),
    Column("api_key", String(128), nullable=False, unique=True),
    Column("is_active", Boolean, nullable=False, default=True),
)

# Resource name -> physical table ("order" is reserved in SQL).
RESOURCES: Dict[str, Table] = {
    "book": book,
    "customer": customer,
    "order": orders,
    "order_item": order_item,
}

# ── Column classes ───────────────────────────────────────────────────

# Never writable after insert, by any role (Admin included).
IMMUTABLE_COLUMNS: Dict[str, FrozenSet[str]] = {
    "book": frozenset({"id"}),
    "customer": frozenset({"id"}),
    "order": frozenset({"id", "customer_id", "order_date"}),
    "order_item": frozenset({"id", "order_id", "book_id", "quantity", "price_at_order"}),
}

# Stored but never readable by any role (Admin included).
RESTRICTED_COLUMNS: Dict[str, FrozenSet[str]] = {
    "book": frozenset(),
    "customer": frozenset({"credit_card"}),
    "order": frozenset(),
    "order_item": frozenset(),
}


def resource_columns(resource: str) -> tuple:
    """Column names of *resource* in schema order."""
    return tuple(c.name for c in RESOURCES[resource].columns)


def get_table(resource: str) -> Table:
    try:
        return RESOURCES[resource]
    except KeyError:
        raise KeyError(f"Unknown resource '{resource}'") from None


# ── Engine ───────────────────────────────────────────────────────────

def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ignores FOREIGN KEY clauses unless asked per connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def make_engine(db_uri: str, **kwargs) -> Engine:
    """Create an engine for *db_uri* with referential integrity switched on."""
    engine = create_engine(db_uri, echo=False, future=True, **kwargs)
    _enable_sqlite_foreign_keys(engine)
    return engine


def init_engine() -> Engine:
    """Create a SQLAlchemy engine from DB_URI and verify the connection."""
    db_uri = get_env("DB_URI", DEFAULT_DB_URI)
    engine = make_engine(db_uri)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


def create_schema(engine: Engine) -> None:
    """Create any missing bookstore tables."""
    metadata.create_all(engine)
