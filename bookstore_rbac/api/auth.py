"""
Staff sessions for the REST API.

A login issues a signed JWT whose ``jti`` names a server-side session. The
token alone is not enough: the session must still exist, and the role baked
into the token must match the role resolved at login.
"""

import secrets
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional, Tuple

import jwt
from flask import request, jsonify

from bookstore_rbac.config import SECRET_KEY, TOKEN_EXPIRY_HOURS
from bookstore_rbac.models import AccessContext

ALGORITHM = "HS256"

# Keyed by session id (the token's jti); in-memory, per process.
sessions: Dict[str, Dict[str, Any]] = {}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def issue_session(ctx: AccessContext) -> Tuple[str, datetime]:
    """Open a session for *ctx*; return (token, expires_at)."""
    session_id = secrets.token_urlsafe(16)
    issued = utcnow()
    expires_at = issued + timedelta(hours=TOKEN_EXPIRY_HOURS)
    token = jwt.encode(
        {
            "sub": str(ctx.user_id),
            "role": ctx.role.value,
            "jti": session_id,
            "iat": issued,
            "exp": expires_at,
        },
        SECRET_KEY,
        algorithm=ALGORITHM,
    )
    sessions[session_id] = {"ctx": ctx, "created_at": issued, "last_activity": issued}
    return token, expires_at


def end_session(session_id: str) -> bool:
    return sessions.pop(session_id, None) is not None


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Claims of a valid, unexpired token, else None."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        return None


def _bearer_token() -> Optional[str]:
    scheme, _, value = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def token_required(f):
    """Resolve the caller's session or answer 401."""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Bearer token is missing"}), 401

        claims = decode_token(token)
        if not claims:
            return jsonify({"error": "Invalid or expired token"}), 401

        session = sessions.get(claims.get("jti", ""))
        if session is None or session["ctx"].role.value != claims.get("role"):
            return jsonify({"error": "Session not found. Please login again."}), 401

        session["last_activity"] = utcnow()
        request.session_data = session
        request.session_id = claims["jti"]
        return f(*args, **kwargs)

    return decorated


def cleanup_expired_sessions(now: Optional[datetime] = None) -> int:
    """Drop sessions idle for longer than TOKEN_EXPIRY_HOURS."""
    now = now or utcnow()
    idle_limit = timedelta(hours=TOKEN_EXPIRY_HOURS)
    expired = [sid for sid, s in sessions.items() if now - s["last_activity"] > idle_limit]
    for sid in expired:
        del sessions[sid]
    if expired:
        print(f"[cleanup] Removed {len(expired)} expired sessions")
    return len(expired)
