"""
Role-Based Access Control – the role/permission table and loading user identity.
"""

import sys
from typing import Dict, FrozenSet, Optional

from sqlalchemy import select

from smartclinic.models import AuthUser
from smartclinic.schema import users

ROLES = ("admin", "doctor", "nurse", "member")
ACTIONS = ("create", "read", "update", "delete")
RESOURCES = (
    "task", "patients", "appointments", "records",
    "prescriptions", "staff", "payments",
)

_ALL = frozenset(ACTIONS)


def _grant(**resources) -> Dict[str, FrozenSet[str]]:
    return {name: frozenset(actions) for name, actions in resources.items()}


# ── Permission grants ────────────────────────────────────────────────
# role -> {resource -> allowed actions}. A resource missing from a role's
# grant means no actions on it.
PERMISSION_GRANTS: Dict[str, Dict[str, FrozenSet[str]]] = {
    "admin": {resource: _ALL for resource in RESOURCES},
    "doctor": _grant(
        patients=["read", "update"],
        appointments=["read", "update"],
        records=["create", "read", "update"],
        prescriptions=["create", "read", "update"],
        staff=["read"],
        payments=["read"],
    ),
    "nurse": _grant(
        patients=["create", "read", "update"],
        appointments=["create", "read", "update"],
        records=["read"],
        prescriptions=["read"],
        staff=["read"],
        payments=["create", "read"],
    ),
    "member": _grant(
        patients=["read", "update"],
        appointments=["create", "read", "update"],
        records=["read"],
        prescriptions=["read"],
        staff=[],
        payments=["create", "read"],
    ),
}


def permits(role: str, resource: str, action: str) -> bool:
    """True when *role* may perform *action* on *resource*."""
    if role == "admin":
        return True
    return action in PERMISSION_GRANTS.get(role, {}).get(resource, frozenset())


def allowed_actions(role: str) -> Dict[str, list]:
    """The role's grant as a JSON-friendly mapping, sorted for stable output."""
    grant = PERMISSION_GRANTS.get(role, {})
    return {
        resource: [a for a in ACTIONS if a in grant.get(resource, frozenset())]
        for resource in RESOURCES
    }


# ── Loading users ────────────────────────────────────────────────────

def _row_to_user(row) -> AuthUser:
    role = str(row["role"]).strip().lower()
    if role not in ROLES:
        raise ValueError(f"Unsupported role '{row['role']}' for user {row['id']}.")
    return AuthUser(
        id=str(row["id"]),
        name=str(row["name"]),
        email=str(row["email"]),
        role=role,
        gender=row["gender"],
        banned=bool(row["banned"]),
    )


def load_user_by_api_key(engine, api_key: str) -> AuthUser:
    """Look up an active user by API key; raises ValueError when login must fail."""
    stmt = select(users).where(users.c.api_key == api_key, users.c.is_active.is_(True))
    with engine.connect() as conn:
        row = conn.execute(stmt).mappings().first()

    if not row:
        raise ValueError("Invalid key or user inactive.")
    if row["banned"]:
        raise ValueError("User is banned.")
    return _row_to_user(row)


def load_user_by_id(engine, user_id: str) -> Optional[AuthUser]:
    """Return the user if it still exists and may hold a session, else None."""
    stmt = select(users).where(users.c.id == str(user_id))
    with engine.connect() as conn:
        row = conn.execute(stmt).mappings().first()

    if not row or not row["is_active"] or row["banned"]:
        return None
    try:
        return _row_to_user(row)
    except ValueError as e:
        print(f"[auth] Ignoring session for user {user_id}: {e}", file=sys.stderr)
        return None
