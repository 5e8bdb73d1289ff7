"""
Clinical note procedures – SOAP notes with vital signs.

Notes belong to their author. A doctor lists only the notes they wrote and is
refused direct access to anyone else's.
"""

from sqlalchemy import desc, select

from smartclinic.errors import NotFound
from smartclinic.gate import caller_scope, ensure_owner, load_owned
from smartclinic.procedures.common import (
    delete_record,
    fetch_all,
    insert_record,
    labelled,
    paginate,
    require_reference,
    splitter,
    update_record,
)
from smartclinic.reports import growth_points
from smartclinic.router import Router
from smartclinic.schema import appointments, clinical_notes, patients
from smartclinic.validation import (
    ById,
    ClinicalNoteCreate,
    ClinicalNoteList,
    ClinicalNoteUpdate,
    PatientRef,
)

router = Router("clinicalNote")

_with_context = (
    select(*labelled(clinical_notes, patients, appointments))
    .select_from(
        clinical_notes
        .join(patients, clinical_notes.c.patient_id == patients.c.id)
        .outerjoin(appointments, clinical_notes.c.appointment_id == appointments.c.id)
    )
)
_shape = splitter({"note": clinical_notes, "patient": patients, "appointment": appointments})


def _note_values(data, values: dict) -> dict:
    """Store vital signs without the measurements that were not taken."""
    if values.get("vital_signs") is not None:
        values["vital_signs"] = data.vital_signs.model_dump(exclude_none=True)
    return values


def _check_references(conn, values: dict) -> None:
    require_reference(conn, patients, values.get("patient_id"), "Patient")
    require_reference(conn, appointments, values.get("appointment_id"), "Appointment")


@router.mutation("create", tier="doctor", schema=ClinicalNoteCreate)
def create(ctx, data):
    values = _note_values(data, data.model_dump())
    with ctx.engine.begin() as conn:
        _check_references(conn, values)
        return insert_record(conn, clinical_notes, {**values, "author_id": ctx.user.id})


@router.query("list", tier="doctor", schema=ClinicalNoteList)
def list_notes(ctx, data):
    conditions = []
    if data.patient_id is not None:
        conditions.append(clinical_notes.c.patient_id == data.patient_id)
    conditions.extend(caller_scope(ctx, clinical_notes.c.author_id))

    stmt = _with_context.order_by(desc(clinical_notes.c.created_at))
    with ctx.engine.connect() as conn:
        return paginate(conn, stmt, clinical_notes, conditions, data, shape=_shape)


@router.query("getById", tier="doctor", schema=ById)
def get_by_id(ctx, data):
    with ctx.engine.connect() as conn:
        row = conn.execute(_with_context.where(clinical_notes.c.id == data.id)).mappings().first()
    if row is None:
        raise NotFound("Clinical note not found")

    result = _shape(row)
    ensure_owner(ctx, result["note"], "author_id", "Access denied")
    return result


@router.mutation("update", tier="doctor", schema=ClinicalNoteUpdate)
def update(ctx, data):
    changes = _note_values(data, data.changes())
    with ctx.engine.begin() as conn:
        load_owned(conn, ctx, clinical_notes, data.id, "Clinical note",
                   "author_id", "Can only update your own notes")
        _check_references(conn, changes)
        return update_record(conn, clinical_notes, data.id, changes)


@router.mutation("delete", tier="doctor", schema=ById)
def delete(ctx, data):
    with ctx.engine.begin() as conn:
        existing = load_owned(conn, ctx, clinical_notes, data.id, "Clinical note",
                              "author_id", "Can only delete your own notes")
        return delete_record(conn, clinical_notes, existing)


@router.query("getGrowthChartData", tier="doctor", schema=PatientRef)
def get_growth_chart_data(ctx, data):
    stmt = (
        select(clinical_notes.c.vital_signs, clinical_notes.c.created_at)
        .where(
            clinical_notes.c.patient_id == data.patient_id,
            *caller_scope(ctx, clinical_notes.c.author_id),
        )
        .order_by(clinical_notes.c.created_at)
    )
    with ctx.engine.connect() as conn:
        return growth_points(fetch_all(conn, stmt))
