"""
Clinic reporting – financial summaries, budget utilisation and growth series.
"""

from typing import Dict, Iterable, List, Mapping

import pandas as pd


def _money(value) -> float:
    return round(float(value), 2)


def _sums_by(df: pd.DataFrame, key: str, value: str) -> Dict[str, float]:
    if df.empty:
        return {}
    grouped = df.groupby(key)[value].sum()
    return {str(k): _money(v) for k, v in grouped.items()}


# ── Finance ──────────────────────────────────────────────────────────

def summarize_transactions(df: pd.DataFrame) -> dict:
    """
    Totals for a frame of transactions with ``type``, ``category`` and ``amount``.
    Anything that is not income counts as an expense.
    """
    if df.empty:
        return {
            "total_income": 0.0,
            "total_expenses": 0.0,
            "net": 0.0,
            "income_by_category": {},
            "expenses_by_category": {},
        }

    df = df.assign(amount=df["amount"].astype(float))
    income = df[df["type"] == "income"]
    outflow = df[df["type"] != "income"]

    total_income = _money(income["amount"].sum())
    total_expenses = _money(outflow["amount"].sum())
    return {
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net": _money(total_income - total_expenses),
        "income_by_category": _sums_by(income, "category", "amount"),
        "expenses_by_category": _sums_by(outflow, "category", "amount"),
    }


def _rate(spent: float, allocated: float) -> float:
    return round(spent / allocated * 100, 2) if allocated > 0 else 0.0


def budget_utilization(df: pd.DataFrame) -> dict:
    """
    Allocation vs. spend for a frame of budgets with ``category``,
    ``allocated_amount`` and ``spent_amount``.
    """
    if df.empty:
        return {
            "total_allocated": 0.0,
            "total_spent": 0.0,
            "remaining": 0.0,
            "utilization_rate": 0.0,
            "by_category": [],
        }

    df = df.assign(
        allocated_amount=df["allocated_amount"].astype(float),
        spent_amount=df["spent_amount"].fillna(0).astype(float),
    )
    total_allocated = _money(df["allocated_amount"].sum())
    total_spent = _money(df["spent_amount"].sum())

    by_category = [
        {
            "category": row.category,
            "allocated": _money(row.allocated_amount),
            "spent": _money(row.spent_amount),
            "remaining": _money(row.allocated_amount - row.spent_amount),
            "utilization_rate": _rate(row.spent_amount, row.allocated_amount),
        }
        for row in df.itertuples(index=False)
    ]

    return {
        "total_allocated": total_allocated,
        "total_spent": total_spent,
        "remaining": _money(total_allocated - total_spent),
        "utilization_rate": _rate(total_spent, total_allocated),
        "by_category": by_category,
    }


# ── Growth ───────────────────────────────────────────────────────────

def growth_points(notes: Iterable[Mapping]) -> List[dict]:
    """Height/weight/BMI points from notes that recorded at least one of height or weight."""
    points = []
    for note in notes:
        vitals = note.get("vital_signs") or {}
        if vitals.get("height") is None and vitals.get("weight") is None:
            continue
        points.append({
            "date": note["created_at"],
            "height": vitals.get("height"),
            "weight": vitals.get("weight"),
            "bmi": vitals.get("bmi"),
        })
    return points
