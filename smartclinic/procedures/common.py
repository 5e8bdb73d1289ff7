"""
Query helpers shared by the resource procedures.
"""

import math
import uuid
from typing import Callable, Dict, List, Mapping, Optional

from sqlalchemy import delete, func, insert, select, update

from smartclinic.errors import ValidationError
from smartclinic.gate import load_or_404
from smartclinic.models import utcnow


def as_dict(row: Mapping) -> dict:
    return dict(row)


# ── Joined selects ───────────────────────────────────────────────────

def labelled(*tables) -> list:
    """All columns of *tables*, labelled ``<table>__<column>`` so names never collide."""
    return [c.label(f"{t.name}__{c.name}") for t in tables for c in t.c]


def splitter(parts: Dict[str, object]) -> Callable[[Mapping], dict]:
    """Build a row shaper that regroups labelled columns per table.

    A table that came back empty from an outer join maps to None.
    """
    def shape(row: Mapping) -> dict:
        out = {}
        for key, table in parts.items():
            values = {c.name: row[f"{table.name}__{c.name}"] for c in table.c}
            out[key] = values if values["id"] is not None else None
        return out
    return shape


# ── Reads ────────────────────────────────────────────────────────────

def paginate(conn, stmt, table, conditions: List, page, shape: Callable = as_dict) -> dict:
    """Run *stmt* for one page and count the matching *table* rows."""
    if conditions:
        stmt = stmt.where(*conditions)
    rows = conn.execute(stmt.limit(page.limit).offset(page.offset)).mappings().all()

    count_stmt = select(func.count()).select_from(table)
    if conditions:
        count_stmt = count_stmt.where(*conditions)
    total = conn.execute(count_stmt).scalar_one()

    return {
        "data": [shape(r) for r in rows],
        "pagination": {
            "page": page.page,
            "limit": page.limit,
            "total": total,
            "pages": math.ceil(total / page.limit),
        },
    }


def fetch_all(conn, stmt, shape: Callable = as_dict) -> list:
    return [shape(r) for r in conn.execute(stmt).mappings().all()]


def require_reference(conn, table, record_id: Optional[str], label: str) -> None:
    """Referenced ids that do not exist are an input error, not a missing target."""
    if record_id is None:
        return
    found = conn.execute(select(table.c.id).where(table.c.id == record_id)).first()
    if found is None:
        raise ValidationError(f"{label} '{record_id}' does not exist")


# ── Writes ───────────────────────────────────────────────────────────

def insert_record(conn, table, values: dict) -> dict:
    record_id = str(uuid.uuid4())
    conn.execute(insert(table).values(id=record_id, **values))
    return as_dict(load_or_404(conn, table, record_id, table.name))


def update_record(conn, table, record_id: str, changes: dict) -> dict:
    """Merge *changes* into the row and stamp ``updated_at``; last write wins."""
    conn.execute(
        update(table)
        .where(table.c.id == record_id)
        .values(**changes, updated_at=utcnow())
    )
    return as_dict(load_or_404(conn, table, record_id, table.name))


def delete_record(conn, table, record: Mapping) -> dict:
    """Delete the row and return its prior state."""
    conn.execute(delete(table).where(table.c.id == record["id"]))
    return as_dict(record)
