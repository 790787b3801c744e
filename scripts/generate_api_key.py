#!/usr/bin/env python3
"""
Generate API keys for bookstore staff.
Creates secure random API keys that can be inserted into the staff_users table.
"""

import secrets
import string

ROLES = {
    "sales_rep": "Sam Sales",
    "customer_service": "Casey Support",
    "inventory_manager": "Ivy Stockroom",
    "admin": "Store Admin",
}


def generate_api_key(prefix="bks", length=32):
    """Generate a secure random API key."""
    chars = string.ascii_letters + string.digits
    random_part = ''.join(secrets.choice(chars) for _ in range(length))
    return f"{prefix}_{random_part}"


def insert_statement(display_name, role, api_key):
    return (
        "INSERT INTO staff_users (display_name, role, api_key, is_active)\n"
        f"VALUES ('{display_name}', '{role}', '{api_key}', 1);"
    )


if __name__ == "__main__":
    print("=" * 70)
    print("Bookstore Staff API Key Generator")
    print("=" * 70)
    print()

    for role, name in ROLES.items():
        print(f"-- For a {role}:")
        print(insert_statement(name, role, generate_api_key()))
        print()

    print("=" * 70)
    print("Note: Run these SQL statements in your database to create staff users.")
    print("=" * 70)
