"""
Appointment procedures.

Appointments belong to the doctor in ``doctor_id``. Doctors only ever read
their own appointments: list-style queries are narrowed to the caller, while
direct access by id to someone else's appointment is refused.
"""

from datetime import datetime, time, timedelta

from sqlalchemy import desc, select

from smartclinic.errors import Forbidden, NotFound, ValidationError
from smartclinic.gate import caller_scope, ensure_owner, load_owned
from smartclinic.models import utcnow
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
from smartclinic.router import Router
from smartclinic.schema import appointments, patients, users
from smartclinic.validation import (
    AppointmentCreate,
    AppointmentList,
    AppointmentUpdate,
    ById,
    UpcomingVaccinations,
)

router = Router("appointment")

_with_patient = (
    select(*labelled(appointments, patients))
    .select_from(appointments.join(patients, appointments.c.patient_id == patients.c.id))
)
_shape = splitter({"appointment": appointments, "patient": patients})


def _require_doctor(conn, doctor_id: str) -> None:
    stmt = select(users.c.id).where(users.c.id == doctor_id, users.c.role == "doctor")
    if conn.execute(stmt).first() is None:
        raise ValidationError(f"Doctor '{doctor_id}' does not exist")


@router.mutation("create", tier="staff", schema=AppointmentCreate)
def create(ctx, data):
    values = data.model_dump()
    if ctx.is_doctor:
        if values["doctor_id"] not in (None, ctx.user.id):
            raise Forbidden("Doctors can only schedule their own appointments")
        values["doctor_id"] = ctx.user.id
    elif values["doctor_id"] is None:
        raise ValidationError("doctor_id is required")

    with ctx.engine.begin() as conn:
        require_reference(conn, patients, values["patient_id"], "Patient")
        _require_doctor(conn, values["doctor_id"])
        return insert_record(conn, appointments, {**values, "created_by": ctx.user.id})


@router.query("list", tier="protected", schema=AppointmentList)
def list_appointments(ctx, data):
    conditions = []
    if data.date is not None:
        start = datetime.combine(data.date, time.min)
        conditions.append(appointments.c.date.between(start, start + timedelta(days=1, microseconds=-1)))
    if data.status is not None:
        conditions.append(appointments.c.status == data.status)
    if data.doctor_id is not None:
        conditions.append(appointments.c.doctor_id == data.doctor_id)
    conditions.extend(caller_scope(ctx, appointments.c.doctor_id))

    stmt = _with_patient.order_by(desc(appointments.c.date))
    with ctx.engine.connect() as conn:
        return paginate(conn, stmt, appointments, conditions, data, shape=_shape)


@router.query("getById", tier="protected", schema=ById)
def get_by_id(ctx, data):
    with ctx.engine.connect() as conn:
        row = conn.execute(_with_patient.where(appointments.c.id == data.id)).mappings().first()
    if row is None:
        raise NotFound("Appointment not found")

    result = _shape(row)
    ensure_owner(ctx, result["appointment"], "doctor_id", "Access denied")
    return result


@router.mutation("update", tier="staff", schema=AppointmentUpdate)
def update(ctx, data):
    changes = data.changes()
    with ctx.engine.begin() as conn:
        existing = load_owned(conn, ctx, appointments, data.id, "Appointment",
                              "doctor_id", "Can only update your own appointments")
        if "doctor_id" in changes and changes["doctor_id"] != existing["doctor_id"]:
            if not ctx.is_admin:
                raise Forbidden("Only admins can reassign an appointment")
            _require_doctor(conn, changes["doctor_id"])
        require_reference(conn, patients, changes.get("patient_id"), "Patient")
        return update_record(conn, appointments, data.id, changes)


@router.mutation("delete", tier="staff", schema=ById)
def delete(ctx, data):
    with ctx.engine.begin() as conn:
        existing = load_owned(conn, ctx, appointments, data.id, "Appointment",
                              "doctor_id", "Can only delete your own appointments")
        return delete_record(conn, appointments, existing)


# ── Pediatric scheduling ─────────────────────────────────────────────

@router.query("getToday", tier="protected")
def get_today(ctx, data):
    today = datetime.combine(utcnow().date(), time.min)
    stmt = (
        _with_patient
        .where(
            appointments.c.date >= today,
            appointments.c.date < today + timedelta(days=1),
            *caller_scope(ctx, appointments.c.doctor_id),
        )
        .order_by(appointments.c.date)
    )
    with ctx.engine.connect() as conn:
        return fetch_all(conn, stmt, _shape)


@router.query("getUpcomingVaccinations", tier="doctor", schema=UpcomingVaccinations)
def get_upcoming_vaccinations(ctx, data):
    now = utcnow()
    stmt = (
        _with_patient
        .where(
            appointments.c.date.between(now, now + timedelta(days=data.days)),
            appointments.c.type == "vaccination",
            *caller_scope(ctx, appointments.c.doctor_id),
        )
        .order_by(appointments.c.date)
    )
    with ctx.engine.connect() as conn:
        return fetch_all(conn, stmt, _shape)
