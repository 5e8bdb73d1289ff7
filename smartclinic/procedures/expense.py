"""
Expense procedures – income and outflow transactions, plus the financial summary.
"""

import pandas as pd
from sqlalchemy import desc, select

from smartclinic.errors import NotFound
from smartclinic.gate import load_or_404
from smartclinic.procedures.common import (
    delete_record,
    insert_record,
    labelled,
    paginate,
    require_reference,
    splitter,
    update_record,
)
from smartclinic.reports import summarize_transactions
from smartclinic.router import Router
from smartclinic.schema import appointments, expenses, patients
from smartclinic.validation import ById, DateRange, ExpenseCreate, ExpenseList, ExpenseUpdate

router = Router("expense")

_with_patient = (
    select(*labelled(expenses, patients))
    .select_from(expenses.outerjoin(patients, expenses.c.patient_id == patients.c.id))
)
_shape = splitter({"expense": expenses, "patient": patients})


def _check_references(conn, values: dict) -> None:
    require_reference(conn, patients, values.get("patient_id"), "Patient")
    require_reference(conn, appointments, values.get("appointment_id"), "Appointment")


@router.mutation("create", tier="staff", schema=ExpenseCreate)
def create(ctx, data):
    values = data.model_dump()
    with ctx.engine.begin() as conn:
        _check_references(conn, values)
        return insert_record(conn, expenses, {**values, "created_by": ctx.user.id})


@router.query("list", tier="protected", schema=ExpenseList)
def list_expenses(ctx, data):
    conditions = []
    if data.start_date is not None and data.end_date is not None:
        conditions.append(expenses.c.transaction_date.between(data.start_date, data.end_date))
    if data.type is not None:
        conditions.append(expenses.c.type == data.type)
    if data.category is not None:
        conditions.append(expenses.c.category == data.category)

    stmt = _with_patient.order_by(desc(expenses.c.transaction_date))
    with ctx.engine.connect() as conn:
        return paginate(conn, stmt, expenses, conditions, data, shape=_shape)


@router.query("getById", tier="protected", schema=ById)
def get_by_id(ctx, data):
    with ctx.engine.connect() as conn:
        row = conn.execute(_with_patient.where(expenses.c.id == data.id)).mappings().first()
    if row is None:
        raise NotFound("Expense not found")
    return _shape(row)


@router.mutation("update", tier="staff", schema=ExpenseUpdate)
def update(ctx, data):
    changes = data.changes()
    with ctx.engine.begin() as conn:
        load_or_404(conn, expenses, data.id, "Expense")
        _check_references(conn, changes)
        return update_record(conn, expenses, data.id, changes)


@router.mutation("delete", tier="admin", schema=ById)
def delete(ctx, data):
    with ctx.engine.begin() as conn:
        existing = load_or_404(conn, expenses, data.id, "Expense")
        return delete_record(conn, expenses, existing)


# ── Reports ──────────────────────────────────────────────────────────

@router.query("getFinancialSummary", tier="admin", schema=DateRange)
def get_financial_summary(ctx, data):
    stmt = select(expenses.c.type, expenses.c.category, expenses.c.amount).where(
        expenses.c.transaction_date.between(data.start_date, data.end_date),
        expenses.c.status == "completed",
    )
    with ctx.engine.connect() as conn:
        df = pd.read_sql_query(stmt, conn)
    return summarize_transactions(df)
