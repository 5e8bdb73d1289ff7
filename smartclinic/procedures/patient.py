"""
Patient procedures – registration, search and pediatric summaries.
"""

from sqlalchemy import desc, or_, select

from smartclinic.config import GROWTH_STATS_NOTE_LIMIT
from smartclinic.errors import ValidationError
from smartclinic.gate import caller_scope, load_or_404
from smartclinic.procedures.common import (
    as_dict,
    delete_record,
    fetch_all,
    insert_record,
    paginate,
    update_record,
)
from smartclinic.reports import growth_points
from smartclinic.router import Router
from smartclinic.schema import clinical_notes, medical_history, patient_allergies, patients
from smartclinic.validation import ById, PatientCreate, PatientList, PatientRef, PatientUpdate

router = Router("patient")


def _ensure_unique_mrn(conn, mrn: str, exclude_id: str = None) -> None:
    stmt = select(patients.c.id).where(patients.c.medical_record_number == mrn)
    if exclude_id is not None:
        stmt = stmt.where(patients.c.id != exclude_id)
    if conn.execute(stmt).first() is not None:
        raise ValidationError(f"Medical record number {mrn} is already in use")


@router.mutation("create", tier="doctor", schema=PatientCreate)
def create(ctx, data):
    with ctx.engine.begin() as conn:
        _ensure_unique_mrn(conn, data.medical_record_number)
        return insert_record(conn, patients, {**data.model_dump(), "created_by": ctx.user.id})


@router.query("list", tier="protected", schema=PatientList)
def list_patients(ctx, data):
    conditions = []
    if data.search:
        term = f"%{data.search}%"
        conditions.append(or_(
            patients.c.first_name.like(term),
            patients.c.last_name.like(term),
            patients.c.medical_record_number.like(term),
            patients.c.phone.like(term),
        ))
    if data.is_active is not None:
        conditions.append(patients.c.is_active == data.is_active)

    stmt = select(patients).order_by(desc(patients.c.created_at))
    with ctx.engine.connect() as conn:
        return paginate(conn, stmt, patients, conditions, data)


@router.query("getById", tier="protected", schema=ById)
def get_by_id(ctx, data):
    with ctx.engine.connect() as conn:
        return as_dict(load_or_404(conn, patients, data.id, "Patient"))


@router.mutation("update", tier="doctor", schema=PatientUpdate)
def update(ctx, data):
    changes = data.changes()
    with ctx.engine.begin() as conn:
        load_or_404(conn, patients, data.id, "Patient")
        if "medical_record_number" in changes:
            _ensure_unique_mrn(conn, changes["medical_record_number"], exclude_id=data.id)
        return update_record(conn, patients, data.id, {**changes, "updated_by": ctx.user.id})


@router.mutation("delete", tier="admin", schema=ById)
def delete(ctx, data):
    with ctx.engine.begin() as conn:
        record = load_or_404(conn, patients, data.id, "Patient")
        return delete_record(conn, patients, record)


# ── Pediatric summaries ──────────────────────────────────────────────

@router.query("getMedicalHistory", tier="doctor", schema=PatientRef)
def get_medical_history(ctx, data):
    stmt = (
        select(medical_history)
        .where(medical_history.c.patient_id == data.patient_id)
        .order_by(desc(medical_history.c.diagnosis_date))
    )
    with ctx.engine.connect() as conn:
        return fetch_all(conn, stmt)


@router.query("getAllergies", tier="doctor", schema=PatientRef)
def get_allergies(ctx, data):
    stmt = select(patient_allergies).where(
        patient_allergies.c.patient_id == data.patient_id,
        patient_allergies.c.is_active.is_(True),
    )
    with ctx.engine.connect() as conn:
        return fetch_all(conn, stmt)


@router.query("getPediatricStats", tier="doctor", schema=PatientRef)
def get_pediatric_stats(ctx, data):
    stmt = (
        select(clinical_notes.c.vital_signs, clinical_notes.c.created_at)
        .where(
            clinical_notes.c.patient_id == data.patient_id,
            *caller_scope(ctx, clinical_notes.c.author_id),
        )
        .order_by(desc(clinical_notes.c.created_at))
        .limit(GROWTH_STATS_NOTE_LIMIT)
    )
    with ctx.engine.connect() as conn:
        notes = fetch_all(conn, stmt)

    return {
        "growth_data": growth_points(notes),
        "latest_vitals": notes[0]["vital_signs"] if notes else None,
    }
