"""
Flask route handlers for the REST API.
"""

import sys
import traceback

from flask import request, jsonify

from bookstore_rbac.config import MAX_RESULTS_RETURN
from bookstore_rbac.errors import AccessDenied, ReferentialViolation
from bookstore_rbac.gateway import read, apply_update, insert_row
from bookstore_rbac.policy import describe_grants
from bookstore_rbac.rbac import load_access_context
from bookstore_rbac.api.auth import (
    sessions,
    issue_session,
    end_session,
    token_required,
    cleanup_expired_sessions,
)


def _denied(e: AccessDenied):
    body = {"success": False, "error": str(e)}
    body.update(e.to_dict())
    return jsonify(body), 403


def _records(df):
    """DataFrame -> JSON-safe list of dicts (NaN becomes null)."""
    return df.astype(object).where(df.notna(), None).to_dict(orient="records")


def register_routes(app, engine, matrix):
    """Register all API routes on the Flask *app*."""

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "Bookstore RBAC API",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "auth": "/api/auth/login",
                "resources": "/api/resources/<resource>",
                "schema": "/api/schema",
                "logout": "/api/auth/logout",
                "health": "/health",
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        from sqlalchemy import text as sa_text

        checks = {"database": False, "policy": False}
        try:
            if engine:
                with engine.connect() as conn:
                    conn.execute(sa_text("SELECT 1"))
                checks["database"] = True
        except Exception as e:
            print(f"[health] Database check failed: {e}", file=sys.stderr)

        checks["policy"] = matrix is not None
        all_healthy = all(checks.values())

        return jsonify({
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
            "active_sessions": len(sessions),
        }), 200 if all_healthy else 503

    # ── Auth ─────────────────────────────────────────────────────────

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400

        data = request.json
        api_key = str(data.get("api_key", "")).strip()
        if not api_key:
            return jsonify({"error": "api_key is required"}), 400

        cleanup_expired_sessions()

        try:
            ctx = load_access_context(engine, api_key)
            token, expires_at = issue_session(ctx)
            print(f"[auth] Login: {ctx.display_name} (role={ctx.role.value})")

            return jsonify({
                "success": True,
                "token": token,
                "user": {
                    "id": ctx.user_id,
                    "display_name": ctx.display_name,
                    "role": ctx.role.value,
                },
                "expires_at": expires_at.isoformat(),
            }), 200

        except ValueError as e:
            return jsonify({"error": f"Authentication failed: {str(e)}"}), 401
        except Exception as e:
            print(f"[ERROR] Login error: {e}", file=sys.stderr)
            traceback.print_exc()
            return jsonify({"error": "Internal server error during login"}), 500

    @app.route("/api/auth/logout", methods=["POST"])
    @token_required
    def logout():
        end_session(request.session_id)
        return jsonify({"success": True, "message": "Logged out successfully"}), 200

    # ── Resources ────────────────────────────────────────────────────

    @app.route("/api/resources/<resource>", methods=["GET"])
    @token_required
    def read_resource(resource):
        ctx = request.session_data["ctx"]

        raw_cols = request.args.get("columns", "")
        columns = [c.strip() for c in raw_cols.split(",") if c.strip()]
        predicate = {k: v for k, v in request.args.items() if k not in ("columns", "limit")}
        try:
            max_rows = int(request.args.get("limit", MAX_RESULTS_RETURN))
        except ValueError:
            max_rows = -1
        if max_rows < 0:
            return jsonify({"error": "limit must be a non-negative integer"}), 400
        max_rows = min(max_rows, MAX_RESULTS_RETURN)

        try:
            df = read(engine, matrix, ctx.role, resource, columns, predicate, limit=max_rows)
        except AccessDenied as e:
            return _denied(e)
        except ValueError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        except Exception as e:
            print(f"[ERROR] Read error on {resource}: {e}", file=sys.stderr)
            traceback.print_exc()
            return jsonify({"success": False, "error": "Read failed"}), 500

        return jsonify({
            "success": True,
            "resource": resource,
            "columns": df.columns.tolist(),
            "row_count": len(df),
            "data": _records(df),
        }), 200

    @app.route("/api/resources/<resource>", methods=["PATCH"])
    @token_required
    def update_resource(resource):
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400

        ctx = request.session_data["ctx"]

        data = request.json
        values = data.get("values") or {}
        predicate = data.get("where") or {}
        if not isinstance(values, dict) or not isinstance(predicate, dict):
            return jsonify({"error": "values and where must be JSON objects"}), 400

        try:
            affected = apply_update(engine, matrix, ctx.role, resource, values, predicate)
        except AccessDenied as e:
            return _denied(e)
        except ReferentialViolation as e:
            return jsonify({"success": False, "error": str(e)}), 409
        except ValueError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        except Exception as e:
            print(f"[ERROR] Update error on {resource}: {e}", file=sys.stderr)
            traceback.print_exc()
            return jsonify({"success": False, "error": "Update failed"}), 500

        return jsonify({"success": True, "resource": resource, "updated": affected}), 200

    @app.route("/api/resources/<resource>", methods=["POST"])
    @token_required
    def insert_resource(resource):
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400

        ctx = request.session_data["ctx"]

        values = request.json.get("values") or {}
        if not isinstance(values, dict):
            return jsonify({"error": "values must be a JSON object"}), 400

        try:
            new_id = insert_row(engine, matrix, ctx.role, resource, values)
        except AccessDenied as e:
            return _denied(e)
        except ReferentialViolation as e:
            return jsonify({"success": False, "error": str(e)}), 409
        except ValueError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        except Exception as e:
            print(f"[ERROR] Insert error on {resource}: {e}", file=sys.stderr)
            traceback.print_exc()
            return jsonify({"success": False, "error": "Insert failed"}), 500

        return jsonify({"success": True, "resource": resource, "id": new_id}), 201

    # ── Schema / profile ─────────────────────────────────────────────

    @app.route("/api/schema", methods=["GET"])
    @token_required
    def get_schema():
        ctx = request.session_data["ctx"]
        return jsonify({
            "success": True,
            "role": ctx.role.value,
            "schema": describe_grants(matrix, ctx.role),
        }), 200

    @app.route("/api/user/profile", methods=["GET"])
    @token_required
    def get_profile():
        session_data = request.session_data
        ctx = session_data["ctx"]
        return jsonify({
            "success": True,
            "user": {
                "id": ctx.user_id,
                "display_name": ctx.display_name,
                "role": ctx.role.value,
            },
            "session": {
                "created_at": session_data["created_at"].isoformat(),
                "last_activity": session_data["last_activity"].isoformat(),
            },
        }), 200

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": str(e)}), 405

    @app.errorhandler(500)
    def internal_error(e):
        return jsonify({"error": "Internal server error", "message": str(e)}), 500
