"""
Shared fixtures: an in-memory bookstore and the bundled policy matrix.
"""

from datetime import date

import pytest
from sqlalchemy import insert
from sqlalchemy.pool import StaticPool

from bookstore_rbac.config import DEFAULT_POLICY_PATH
from bookstore_rbac.database import (
    book, create_schema, customer, make_engine, order_item, orders, staff_users,
)
from bookstore_rbac.policy import load_policy_matrix

CARD_NUMBER = "4111111111111111"

API_KEYS = {
    "sales_rep": "bks_sales",
    "customer_service": "bks_support",
    "inventory_manager": "bks_stock",
    "admin": "bks_admin",
}


@pytest.fixture(scope="session")
def matrix():
    return load_policy_matrix(DEFAULT_POLICY_PATH)


@pytest.fixture
def engine():
    eng = make_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_schema(eng)
    with eng.begin() as conn:
        conn.execute(insert(book), [
            {"id": 1, "title": "Dune", "author": "Frank Herbert",
             "price": 9.99, "cost_price": 4.5, "stock": 10},
            {"id": 2, "title": "Emma", "author": "Jane Austen",
             "price": 7.5, "cost_price": 3.0, "stock": 3},
        ])
        conn.execute(insert(customer), [
            {"id": 1, "name": "Ada Byron", "email": "ada@example.com",
             "phone": "555-0100", "credit_card": CARD_NUMBER},
        ])
        conn.execute(insert(orders), [
            {"id": 1, "customer_id": 1, "order_date": date(2024, 1, 5), "status": "Pending"},
        ])
        conn.execute(insert(order_item), [
            {"id": 1, "order_id": 1, "book_id": 1, "quantity": 2, "price_at_order": 9.99},
        ])
        conn.execute(insert(staff_users), [
            {"display_name": "Sam Sales", "role": "sales_rep",
             "api_key": API_KEYS["sales_rep"], "is_active": True},
            {"display_name": "Casey Support", "role": "customer_service",
             "api_key": API_KEYS["customer_service"], "is_active": True},
            {"display_name": "Ivy Stockroom", "role": "inventory_manager",
             "api_key": API_KEYS["inventory_manager"], "is_active": True},
            {"display_name": "Store Admin", "role": "admin",
             "api_key": API_KEYS["admin"], "is_active": True},
            {"display_name": "Former Clerk", "role": "sales_rep",
             "api_key": "bks_gone", "is_active": False},
        ])
    yield eng
    eng.dispose()
