"""
Integration tests for authorization-checked reads and writes against SQLite.
"""

import pytest
from sqlalchemy import select

from bookstore_rbac.database import book, order_item, orders
from bookstore_rbac.errors import (
    ColumnAccessDenied, ImmutableFieldViolation, OperationDenied, ReferentialViolation,
    ResourceAccessDenied,
)
from bookstore_rbac.gateway import apply_update, insert_row, read
from bookstore_rbac.models import Role
from bookstore_rbac import store

from conftest import CARD_NUMBER


def _book(engine, book_id):
    with engine.connect() as conn:
        return conn.execute(select(book).where(book.c.id == book_id)).mappings().first()


# ── Tests: read ──────────────────────────────────────────────────────

def test_sales_rep_reads_customer_without_credit_card(engine, matrix):
    df = read(engine, matrix, Role.SALES_REP, "customer", ["name", "email", "phone"])
    assert df.columns.tolist() == ["name", "email", "phone"]
    assert df.iloc[0]["phone"] == "555-0100"
    assert CARD_NUMBER not in df.to_string()


def test_credit_card_request_denied_without_echoing_value(engine, matrix, capsys):
    with pytest.raises(ColumnAccessDenied) as e:
        read(engine, matrix, Role.SALES_REP, "customer", ["name", "credit_card"])
    assert "credit_card" in str(e.value)
    assert CARD_NUMBER not in str(e.value)
    assert "check=column" in capsys.readouterr().err


def test_read_defaults_to_role_projection(engine, matrix):
    df = read(engine, matrix, Role.CUSTOMER_SERVICE, "customer")
    assert df.columns.tolist() == ["id", "name", "email"]


def test_read_with_predicate_and_limit(engine, matrix):
    df = read(engine, matrix, Role.SALES_REP, "book", ["title"], {"author": "Jane Austen"})
    assert df["title"].tolist() == ["Emma"]

    df = read(engine, matrix, Role.SALES_REP, "book", ["id"], {"id": "1"})
    assert df["id"].tolist() == [1]

    df = read(engine, matrix, Role.SALES_REP, "book", ["id"], limit=1)
    assert len(df) == 1


def test_read_predicate_on_hidden_column_denied(engine, matrix):
    with pytest.raises(ColumnAccessDenied):
        read(engine, matrix, Role.SALES_REP, "book", ["title"], {"cost_price": 4.5})


def test_inventory_cannot_read_orders(engine, matrix):
    with pytest.raises(ResourceAccessDenied):
        read(engine, matrix, Role.INVENTORY_MANAGER, "order", ["status"])


def test_admin_reads_phone_but_not_card(engine, matrix):
    df = read(engine, matrix, Role.ADMIN, "customer")
    assert "phone" in df.columns
    assert "credit_card" not in df.columns


# ── Tests: apply_update ──────────────────────────────────────────────

def test_sales_rep_updates_stock(engine, matrix):
    n = apply_update(engine, matrix, Role.SALES_REP, "book", {"stock": 7}, {"id": 1})
    assert n == 1
    assert _book(engine, 1)["stock"] == 7


def test_sales_rep_mixed_update_writes_nothing(engine, matrix):
    with pytest.raises(ColumnAccessDenied):
        apply_update(engine, matrix, Role.SALES_REP, "book",
                     {"stock": 0, "price": 1.0}, {"id": 1})
    row = _book(engine, 1)
    assert row["stock"] == 10
    assert row["price"] == pytest.approx(9.99)


def test_customer_service_updates_order_status(engine, matrix):
    n = apply_update(engine, matrix, Role.CUSTOMER_SERVICE, "order",
                     {"status": "Shipped"}, {"id": 1})
    assert n == 1
    df = store.query(engine, "order", ["status"], {"id": 1})
    assert df["status"].tolist() == ["Shipped"]


def test_customer_service_cannot_touch_books(engine, matrix):
    with pytest.raises(OperationDenied):
        apply_update(engine, matrix, Role.CUSTOMER_SERVICE, "book", {"stock": 1}, {"id": 1})


def test_price_at_order_survives_book_price_change(engine, matrix):
    apply_update(engine, matrix, Role.INVENTORY_MANAGER, "book", {"price": 12.5}, {"id": 1})
    with pytest.raises(ImmutableFieldViolation):
        apply_update(engine, matrix, Role.ADMIN, "order_item", {"price_at_order": 12.5}, {"id": 1})
    with engine.connect() as conn:
        price = conn.execute(select(order_item.c.price_at_order)).scalar_one()
    assert price == pytest.approx(9.99)


def test_update_without_values_is_rejected(engine, matrix):
    with pytest.raises(ValueError, match="No columns"):
        apply_update(engine, matrix, Role.SALES_REP, "book", {}, {"id": 1})


def test_update_with_bad_value_type(engine, matrix):
    with pytest.raises(ValueError, match="Invalid value"):
        apply_update(engine, matrix, Role.SALES_REP, "book", {"stock": "many"}, {"id": 1})


def test_admin_update_to_missing_customer_is_referential_violation(engine, matrix):
    # customer_id is immutable, so go through the store directly
    with pytest.raises(ReferentialViolation):
        store.update(engine, "order", {"customer_id": 99}, {"id": 1})


# ── Tests: insert_row ────────────────────────────────────────────────

def test_inventory_inserts_book(engine, matrix):
    new_id = insert_row(engine, matrix, Role.INVENTORY_MANAGER, "book", {
        "title": "Ulysses", "author": "James Joyce",
        "price": "15.00", "cost_price": "6.25", "stock": "4",
    })
    row = _book(engine, new_id)
    assert row["title"] == "Ulysses"
    assert row["stock"] == 4


def test_sales_rep_cannot_insert_book(engine, matrix):
    with pytest.raises(OperationDenied):
        insert_row(engine, matrix, Role.SALES_REP, "book", {"title": "X"})


def test_admin_insert_order_for_missing_customer(engine, matrix):
    with pytest.raises(ReferentialViolation):
        insert_row(engine, matrix, Role.ADMIN, "order", {
            "customer_id": 42, "order_date": "2024-02-01", "status": "Pending",
        })
    with engine.connect() as conn:
        assert conn.execute(select(orders.c.id)).scalars().all() == [1]


def test_admin_insert_order_item_keeps_price_snapshot(engine, matrix):
    new_id = insert_row(engine, matrix, Role.ADMIN, "order_item", {
        "order_id": 1, "book_id": 2, "quantity": 1, "price_at_order": 7.5,
    })
    df = read(engine, matrix, Role.CUSTOMER_SERVICE, "order_item",
              ["price_at_order"], {"id": new_id})
    assert df["price_at_order"].tolist() == [pytest.approx(7.5)]


def test_negative_limit_is_rejected(engine, matrix):
    with pytest.raises(ValueError, match="limit"):
        read(engine, matrix, Role.SALES_REP, "book", ["id"], limit=-1)
