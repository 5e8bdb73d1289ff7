"""
JWT authentication helpers and the session resolver for the Flask API.
"""

import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from smartclinic.config import SECRET_KEY, TOKEN_ALGORITHM, TOKEN_EXPIRY_HOURS
from smartclinic.models import AuthUser, utcnow
from smartclinic.rbac import load_user_by_id


def generate_token(user: AuthUser, expiry_hours: int = TOKEN_EXPIRY_HOURS) -> str:
    """Generate a JWT token for an authenticated user."""
    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user.id,
        "role": user.role,
        "name": user.name,
        "iat": now,
        "exp": now + timedelta(hours=expiry_hours),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=TOKEN_ALGORITHM)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a JWT token and return the decoded payload (or None)."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


class SessionStore:
    """
    In-process session registry keyed by token (use Redis in production).
    Each entry: {"user_id", "created_at", "last_activity"}.
    """

    def __init__(self, expiry_hours: int = TOKEN_EXPIRY_HOURS):
        self.expiry = timedelta(hours=expiry_hours)
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def add(self, token: str, user: AuthUser) -> dict:
        now = utcnow()
        self._sessions[token] = {"user_id": user.id, "created_at": now, "last_activity": now}
        return self._sessions[token]

    def get(self, token: str) -> Optional[dict]:
        """Return a live session and mark it active; expired sessions are dropped."""
        session = self._sessions.get(token)
        if session is None:
            return None
        now = utcnow()
        if now - session["last_activity"] > self.expiry:
            self._sessions.pop(token, None)
            return None
        session["last_activity"] = now
        return session

    def remove(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    def cleanup_expired(self) -> int:
        """Remove sessions that have been inactive beyond the expiry window."""
        now = utcnow()
        expired = [
            tok for tok, data in self._sessions.items()
            if now - data["last_activity"] > self.expiry
        ]
        for tok in expired:
            del self._sessions[tok]
        if expired:
            print(f"[cleanup] Removed {len(expired)} expired sessions")
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, token: str) -> bool:
        return token in self._sessions


def extract_token(request) -> Optional[str]:
    """Bearer token from the Authorization header, falling back to ?token=."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header:
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
        return None
    return request.args.get("token") or None


def resolve_user(engine, sessions: SessionStore, request) -> Optional[AuthUser]:
    """
    Map an inbound request to the user behind its session, or None.

    Missing, malformed, expired and revoked sessions are all a normal "no user"
    outcome; the gate decides whether that matters for the procedure called.
    """
    token = extract_token(request)
    if not token:
        return None

    payload = verify_token(token)
    if not payload:
        return None

    if sessions.get(token) is None:
        return None

    user = load_user_by_id(engine, payload.get("user_id"))
    if user is None:
        print(f"[auth] Session for user {payload.get('user_id')} no longer valid", file=sys.stderr)
        sessions.remove(token)
    return user
