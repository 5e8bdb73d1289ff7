"""
Procedure gate – the checks every RPC call passes before its handler runs.

Layer A is a coarse role tier declared per procedure and evaluated as a flat,
ordered list of predicates (first failure wins). Layer B is the ownership
check for doctor-owned records, applied inside the handlers once the target
record has been loaded.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select

from smartclinic.errors import Forbidden, NotFound, Unauthenticated
from smartclinic.models import CallContext
from smartclinic.rbac import ROLES

# tier -> roles allowed through; None means no session is needed.
# "member" admits every signed-in role, the same reach as "protected"; no
# registered procedure declares it today.
TIERS: Dict[str, Optional[Tuple[str, ...]]] = {
    "public": None,
    "protected": ROLES,
    "member": ROLES,
    "staff": ("admin", "doctor", "nurse"),
    "doctor": ("admin", "doctor"),
    "admin": ("admin",),
}

Check = Callable[[CallContext, Any], None]


# ── Layer A: role tiers ──────────────────────────────────────────────

def require_session(ctx: CallContext, procedure) -> None:
    if ctx.user is None:
        raise Unauthenticated()


def require_role(ctx: CallContext, procedure) -> None:
    allowed = TIERS[procedure.tier]
    if ctx.user.role not in allowed:
        raise Forbidden(role=ctx.user.role, required=allowed)


def policy_for(tier: str) -> Tuple[Check, ...]:
    """The ordered checks a procedure of *tier* must pass."""
    if tier not in TIERS:
        raise ValueError(f"Unknown procedure tier '{tier}'")
    if TIERS[tier] is None:
        return ()
    return (require_session, require_role)


def authorize(ctx: CallContext, procedure) -> None:
    """Run the procedure's checks in order; the first failing one raises."""
    for check in procedure.policy:
        check(ctx, procedure)


# ── Layer B: ownership ───────────────────────────────────────────────

def load_or_404(conn, table, record_id: str, label: str) -> Mapping:
    """Fetch a row by id or raise NotFound."""
    row = conn.execute(select(table).where(table.c.id == record_id)).mappings().first()
    if row is None:
        raise NotFound(f"{label} not found")
    return row


def ensure_owner(ctx: CallContext, record: Mapping, owner_field: str, message: str) -> None:
    """Doctors may only act on records they own; other roles pass unchecked."""
    if ctx.is_doctor and record[owner_field] != ctx.user.id:
        raise Forbidden(message)


def load_owned(conn, ctx: CallContext, table, record_id: str, label: str,
               owner_field: str, message: str = "Access denied") -> Mapping:
    """Load then ownership-check, so a missing id is NotFound rather than Forbidden."""
    record = load_or_404(conn, table, record_id, label)
    ensure_owner(ctx, record, owner_field, message)
    return record


def caller_scope(ctx: CallContext, owner_column) -> List:
    """Extra WHERE clauses that narrow a doctor's reads to their own records."""
    if ctx.is_doctor:
        return [owner_column == ctx.user.id]
    return []
