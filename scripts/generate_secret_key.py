#!/usr/bin/env python3
"""
Generate the JWT signing secret for the bookstore API.
Paste the printed line into .env.
"""

import secrets

if __name__ == "__main__":
    print("=" * 60)
    print("Bookstore RBAC – JWT Secret")
    print("=" * 60)

    print(f"\nJWT_SECRET_KEY={secrets.token_hex(32)}")
    print("\n" + "=" * 60)
