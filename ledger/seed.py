"""
ledger/seed.py

Sample projects for demos and local development.

Rules:
- Safe to run multiple times (idempotent): a project is skipped when one
  with the same name already exists.
- Goes through ProjectGateway so balances and audit entries are produced
  exactly as for user-entered projects.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select

from .extensions import db
from .gateway import ProjectGateway
from .models import Project
from .records import ProjectInput


DEMO_PROJECTS = [
    # name, start, end, budget, advance, expense, bill submitted, SOP/ROI email
    ("Site A Groundwork", date(2024, 1, 1), date(2024, 1, 31), "100000", "40000", "15000", date(2024, 2, 5), None),
    ("Q4, \"Phase 2\" Campaign", date(2024, 10, 1), date(2024, 12, 31), "250000", "120000", "98000", None, None),
    ("Warehouse Retrofit", date(2025, 3, 1), date(2030, 6, 30), "1800000", "600000", "215500", None, None),
]


def seed_demo_projects() -> int:
    """Insert missing demo projects; returns how many were created."""
    gateway = ProjectGateway(db.session)
    existing = set(db.session.execute(select(Project.name)).scalars().all())

    created = 0
    for name, start, end, budget, advance, expense, bill_date, sop_date in DEMO_PROJECTS:
        if name in existing:
            continue
        gateway.create_project(
            ProjectInput(
                name=name,
                start_date=start,
                end_date=end,
                budget_amount=Decimal(budget),
                advance_amount=Decimal(advance),
                expense_amount=Decimal(expense),
                bill_submission_date=bill_date,
                sop_roi_email_submission_date=sop_date,
            )
        )
        created += 1
    return created
