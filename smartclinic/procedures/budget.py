"""
Budget procedures – yearly allocations per expense category.
"""

import pandas as pd
from sqlalchemy import desc, select

from smartclinic.errors import ValidationError
from smartclinic.gate import load_or_404
from smartclinic.procedures.common import (
    as_dict,
    delete_record,
    fetch_all,
    insert_record,
    paginate,
    update_record,
)
from smartclinic.reports import budget_utilization
from smartclinic.router import Router
from smartclinic.schema import budgets
from smartclinic.validation import BudgetCreate, BudgetList, BudgetUpdate, ById, FiscalYearInput

router = Router("budget")


def _ensure_unique(conn, category: str, fiscal_year: int, exclude_id: str = None) -> None:
    stmt = select(budgets.c.id).where(
        budgets.c.category == category,
        budgets.c.fiscal_year == fiscal_year,
    )
    if exclude_id is not None:
        stmt = stmt.where(budgets.c.id != exclude_id)
    if conn.execute(stmt).first() is not None:
        raise ValidationError(f"A {category} budget for {fiscal_year} already exists")


@router.mutation("create", tier="admin", schema=BudgetCreate)
def create(ctx, data):
    with ctx.engine.begin() as conn:
        _ensure_unique(conn, data.category, data.fiscal_year)
        return insert_record(conn, budgets, {**data.model_dump(), "created_by": ctx.user.id})


@router.query("list", tier="protected", schema=BudgetList)
def list_budgets(ctx, data):
    conditions = []
    if data.fiscal_year is not None:
        conditions.append(budgets.c.fiscal_year == data.fiscal_year)

    stmt = select(budgets).order_by(desc(budgets.c.fiscal_year), desc(budgets.c.category))
    with ctx.engine.connect() as conn:
        return paginate(conn, stmt, budgets, conditions, data)


@router.query("getById", tier="protected", schema=ById)
def get_by_id(ctx, data):
    with ctx.engine.connect() as conn:
        return as_dict(load_or_404(conn, budgets, data.id, "Budget"))


@router.mutation("update", tier="admin", schema=BudgetUpdate)
def update(ctx, data):
    changes = data.changes()
    with ctx.engine.begin() as conn:
        existing = load_or_404(conn, budgets, data.id, "Budget")
        if "category" in changes or "fiscal_year" in changes:
            _ensure_unique(
                conn,
                changes.get("category", existing["category"]),
                changes.get("fiscal_year", existing["fiscal_year"]),
                exclude_id=data.id,
            )
        return update_record(conn, budgets, data.id, changes)


@router.mutation("delete", tier="admin", schema=ById)
def delete(ctx, data):
    with ctx.engine.begin() as conn:
        existing = load_or_404(conn, budgets, data.id, "Budget")
        return delete_record(conn, budgets, existing)


@router.query("getByFiscalYear", tier="protected", schema=FiscalYearInput)
def get_by_fiscal_year(ctx, data):
    stmt = (
        select(budgets)
        .where(budgets.c.fiscal_year == data.fiscal_year)
        .order_by(budgets.c.category)
    )
    with ctx.engine.connect() as conn:
        return fetch_all(conn, stmt)


@router.query("getBudgetUtilization", tier="admin", schema=FiscalYearInput)
def get_budget_utilization(ctx, data):
    stmt = select(budgets.c.category, budgets.c.allocated_amount, budgets.c.spent_amount).where(
        budgets.c.fiscal_year == data.fiscal_year
    )
    with ctx.engine.connect() as conn:
        df = pd.read_sql_query(stmt, conn)
    return budget_utilization(df)
