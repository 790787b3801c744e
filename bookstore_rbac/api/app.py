"""
Flask application factory and server entry-point.
"""

import os
import sys
import traceback

from flask import Flask
from flask_cors import CORS

from bookstore_rbac.config import TOKEN_EXPIRY_HOURS, RBAC_POLICY_PATH
from bookstore_rbac.database import init_engine, create_schema
from bookstore_rbac.policy import load_policy_matrix
from bookstore_rbac.api.routes import register_routes


def create_app(engine=None, matrix=None):
    """Build and return a fully configured Flask application.

    *engine* and *matrix* may be injected (tests do); otherwise they are
    built from the environment once, here.
    """
    app = Flask(__name__)
    CORS(app)

    # ── Initialise shared resources ──────────────────────────────────
    try:
        if engine is None:
            print("[init] Initializing database connection...")
            engine = init_engine()
            create_schema(engine)

        if matrix is None:
            print("[init] Loading policy matrix...")
            matrix = load_policy_matrix(RBAC_POLICY_PATH)

        print("[init] ✓ API server ready")
    except Exception as e:
        print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, engine, matrix)

    return app


def main():
    """Run the development server."""
    print("=" * 60)
    print("Bookstore RBAC – REST API Server")
    print("=" * 60)

    app = create_app()

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    debug = os.getenv("FLASK_ENV") == "development"

    print(f"\n[server] Starting Flask API on {host}:{port}")
    print(f"[server] Debug mode: {debug}")
    print(f"[server] CORS enabled: True")
    print(f"[server] Session expiry: {TOKEN_EXPIRY_HOURS} hours")
    print("\nAPI Endpoints:")
    print(f"  - POST  http://{host}:{port}/api/auth/login")
    print(f"  - GET   http://{host}:{port}/api/resources/<resource>")
    print(f"  - PATCH http://{host}:{port}/api/resources/<resource>")
    print(f"  - POST  http://{host}:{port}/api/resources/<resource>")
    print(f"  - GET   http://{host}:{port}/api/schema")
    print(f"  - GET   http://{host}:{port}/api/user/profile")
    print(f"  - POST  http://{host}:{port}/api/auth/logout")
    print(f"  - GET   http://{host}:{port}/health")
    print("\n" + "=" * 60)

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
