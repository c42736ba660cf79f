"""
ledger/reporting.py

Derived views over a set of projects:
- summarize(): portfolio totals for the dashboard.
- partition(): upcoming/ongoing vs completed, newest start date first.

Both are pure functions of their inputs; they are recomputed in full from
the current project set on every render.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .utils import to_decimal


class PartitionMode(str, enum.Enum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"

    @property
    def title(self) -> str:
        if self is PartitionMode.COMPLETED:
            return "Completed Projects"
        return "Upcoming & Ongoing Projects"


@dataclass(frozen=True)
class FinancialSummary:
    total_budget: Decimal = Decimal("0")
    total_advance: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    total_balance: Decimal = Decimal("0")

    def to_dict(self) -> dict[str, float]:
        return {
            "totalBudget": float(self.total_budget),
            "totalAdvance": float(self.total_advance),
            "totalExpense": float(self.total_expense),
            "totalBalance": float(self.total_balance),
        }

    def chart_series(self) -> dict[str, list[dict]]:
        """Data for the dashboard charts: four totals, and advance vs expense."""
        return {
            "totals": [
                {"name": "Budget", "amount": self.total_budget},
                {"name": "Advance", "amount": self.total_advance},
                {"name": "Expense", "amount": self.total_expense},
                {"name": "Balance", "amount": self.total_balance},
            ],
            "utilisation": [
                {"name": "Advance", "value": self.total_advance},
                {"name": "Expense", "value": self.total_expense},
            ],
        }


def summarize(projects: Iterable) -> FinancialSummary:
    """Sum budget/advance/expense/balance over every project. Empty input sums to zero."""
    budget = advance = expense = balance = Decimal("0")
    for project in projects:
        budget += to_decimal(project.budget_amount)
        advance += to_decimal(project.advance_amount)
        expense += to_decimal(project.expense_amount)
        balance += to_decimal(project.balance_amount)
    return FinancialSummary(
        total_budget=budget,
        total_advance=advance,
        total_expense=expense,
        total_balance=balance,
    )


def as_of_date(as_of: Optional[date | datetime] = None) -> date:
    """Evaluation day: today by default; time of day is discarded."""
    if as_of is None:
        return date.today()
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of


def is_completed(project, as_of: Optional[date | datetime] = None) -> bool:
    """A project is completed once its end date is strictly before the evaluation day."""
    return project.end_date < as_of_date(as_of)


def partition(projects: Sequence, mode: PartitionMode | str, as_of: Optional[date | datetime] = None) -> list:
    """
    Projects of one bucket, sorted by start date descending.

    Projects ending on the evaluation day are still upcoming/ongoing.
    Sorting is stable, so equal start dates keep their input order.
    """
    mode = PartitionMode(mode)
    day = as_of_date(as_of)
    want_completed = mode is PartitionMode.COMPLETED
    selected = [p for p in projects if is_completed(p, day) == want_completed]
    return sorted(selected, key=lambda p: p.start_date, reverse=True)
