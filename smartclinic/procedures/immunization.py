"""
Immunization procedures – vaccine records, schedules and coverage.
"""

from sqlalchemy import desc, func, select

from smartclinic.errors import NotFound, ValidationError
from smartclinic.gate import load_or_404
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
from smartclinic.schema import immunizations, patients
from smartclinic.validation import (
    ById,
    ImmunizationCreate,
    ImmunizationList,
    ImmunizationUpdate,
    OverdueVaccinations,
    PatientRef,
    VaccineCoverage,
)

router = Router("immunization")

_with_patient = (
    select(*labelled(immunizations, patients))
    .select_from(immunizations.join(patients, immunizations.c.patient_id == patients.c.id))
)
_shape = splitter({"immunization": immunizations, "patient": patients})


def _check_due_date(administration_date, next_due_date) -> None:
    if next_due_date is not None and next_due_date <= administration_date:
        raise ValidationError("Next due date must be after the administration date")


@router.mutation("create", tier="doctor", schema=ImmunizationCreate)
def create(ctx, data):
    _check_due_date(data.administration_date, data.next_due_date)
    with ctx.engine.begin() as conn:
        require_reference(conn, patients, data.patient_id, "Patient")
        return insert_record(conn, immunizations, {**data.model_dump(), "administered_by": ctx.user.id})


@router.query("list", tier="doctor", schema=ImmunizationList)
def list_immunizations(ctx, data):
    conditions = []
    if data.patient_id is not None:
        conditions.append(immunizations.c.patient_id == data.patient_id)
    if data.status is not None:
        conditions.append(immunizations.c.status == data.status)

    stmt = _with_patient.order_by(desc(immunizations.c.administration_date))
    with ctx.engine.connect() as conn:
        return paginate(conn, stmt, immunizations, conditions, data, shape=_shape)


@router.query("getById", tier="doctor", schema=ById)
def get_by_id(ctx, data):
    with ctx.engine.connect() as conn:
        row = conn.execute(_with_patient.where(immunizations.c.id == data.id)).mappings().first()
    if row is None:
        raise NotFound("Immunization record not found")
    return _shape(row)


@router.mutation("update", tier="doctor", schema=ImmunizationUpdate)
def update(ctx, data):
    changes = data.changes()
    with ctx.engine.begin() as conn:
        existing = load_or_404(conn, immunizations, data.id, "Immunization record")
        merged = {**existing, **changes}
        _check_due_date(merged["administration_date"], merged["next_due_date"])
        require_reference(conn, patients, changes.get("patient_id"), "Patient")
        return update_record(conn, immunizations, data.id, changes)


@router.mutation("delete", tier="doctor", schema=ById)
def delete(ctx, data):
    with ctx.engine.begin() as conn:
        existing = load_or_404(conn, immunizations, data.id, "Immunization record")
        return delete_record(conn, immunizations, existing)


# ── Pediatric vaccination tracking ───────────────────────────────────

@router.query("getVaccinationSchedule", tier="doctor", schema=PatientRef)
def get_vaccination_schedule(ctx, data):
    stmt = (
        select(immunizations)
        .where(immunizations.c.patient_id == data.patient_id)
        .order_by(immunizations.c.administration_date)
    )
    with ctx.engine.connect() as conn:
        return fetch_all(conn, stmt)


@router.query("getOverdueVaccinations", tier="doctor", schema=OverdueVaccinations)
def get_overdue_vaccinations(ctx, data):
    conditions = [
        immunizations.c.next_due_date <= utcnow(),
        immunizations.c.status == "scheduled",
    ]
    if data.patient_id is not None:
        conditions.append(immunizations.c.patient_id == data.patient_id)

    stmt = _with_patient.where(*conditions).order_by(immunizations.c.next_due_date)
    with ctx.engine.connect() as conn:
        return fetch_all(conn, stmt, _shape)


@router.query("getVaccineCoverage", tier="doctor", schema=VaccineCoverage)
def get_vaccine_coverage(ctx, data):
    conditions = [immunizations.c.status == "administered"]
    if data.vaccine_name:
        conditions.append(immunizations.c.vaccine_name == data.vaccine_name)

    stmt = (
        select(immunizations.c.vaccine_name, func.count().label("count"))
        .where(*conditions)
        .group_by(immunizations.c.vaccine_name)
        .order_by(immunizations.c.vaccine_name)
    )
    with ctx.engine.connect() as conn:
        return fetch_all(conn, stmt)
