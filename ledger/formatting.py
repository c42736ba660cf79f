"""
ledger/formatting.py

Presentation rules shared by the list pages, the CSV export and the audit
report, so the three never disagree about a project's numbers:

- money: zero decimals, half-up, thousands grouping, fixed currency code
  ("BDT 100,000");
- dates: "5 Mar 2024", independent of the server locale;
- missing optional dates: a placeholder ("N/A") in exports and reports.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable, Optional

from .records import ATTACHMENT_FIELDS
from .reporting import PartitionMode, is_completed, as_of_date
from .security import can_edit
from .utils import parse_iso_date, to_decimal

DEFAULT_CURRENCY = "BDT"
MISSING_DATE = "N/A"

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

ATTACHMENT_LABELS = {
    "bill_top_sheet_image": "Bill Top Sheet",
    "budget_copy_attachment": "Budget Copy Attachment",
}


# ---------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------
def _whole(value) -> Decimal:
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def format_amount(value) -> str:
    """Rounded whole amount without symbol or grouping (export cells)."""
    return str(int(_whole(value)))


def format_currency(value, currency: str = DEFAULT_CURRENCY) -> str:
    whole = int(_whole(value))
    sign = "-" if whole < 0 else ""
    return f"{sign}{currency} {abs(whole):,}"


def format_date(value, missing: Optional[str] = None) -> str:
    """'5 Mar 2024'. Empty values give `missing` (or an empty string)."""
    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    else:
        day = parse_iso_date(value)
    if day is None:
        return missing or ""
    return f"{day.day} {_MONTHS[day.month - 1]} {day.year}"


# ---------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------
def export_headers(currency: str = DEFAULT_CURRENCY) -> list[str]:
    return [
        "Project ID",
        "Project Name",
        "Start Date",
        "End Date",
        f"Budget Amount ({currency})",
        f"Advance Amount ({currency})",
        f"Expense Amount ({currency})",
        f"Balance Amount ({currency})",
        "Bill Submission Date",
        "SOP ROI Submission Date",
    ]


def export_row(project, missing: str = MISSING_DATE) -> list[str]:
    return [
        project.id,
        project.name,
        format_date(project.start_date, missing),
        format_date(project.end_date, missing),
        format_amount(project.budget_amount),
        format_amount(project.advance_amount),
        format_amount(project.expense_amount),
        format_amount(project.balance_amount),
        format_date(project.bill_submission_date, missing),
        format_date(project.sop_roi_email_submission_date, missing),
    ]


def export_csv(
    projects: Iterable,
    *,
    currency: str = DEFAULT_CURRENCY,
    missing: str = MISSING_DATE,
) -> bytes:
    """
    Whole CSV document as UTF-8 bytes, starting with a byte-order mark
    so spreadsheet tools detect the encoding.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(export_headers(currency))
    for project in projects:
        writer.writerow(export_row(project, missing))
    return buffer.getvalue().encode("utf-8-sig")


def export_filename(org_name: str, mode: PartitionMode | str, on: date) -> str:
    """<org>_Ledger_Export_<mode>_<YYYY-MM-DD>.csv"""
    return f"{org_name}_Ledger_Export_{PartitionMode(mode).value}_{on.isoformat()}.csv"


# ---------------------------------------------------------------------
# Audit report
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class AuditField:
    label: str
    value: str


@dataclass(frozen=True)
class AttachmentLink:
    kind: str
    label: str
    name: str
    mime_type: str
    url: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")


@dataclass(frozen=True)
class AuditView:
    project_id: str
    title: str
    status: str
    details: tuple[AuditField, ...]
    financials: tuple[AuditField, ...]
    attachments: tuple[AttachmentLink, ...]
    prepared_for: str
    generated_on: str
    # Only set for principals that can edit; viewers get no edit action at all.
    edit_url: Optional[str] = None

    @property
    def can_edit(self) -> bool:
        return self.edit_url is not None


def build_audit_view(
    project,
    principal,
    *,
    as_of: Optional[date | datetime] = None,
    currency: str = DEFAULT_CURRENCY,
    missing: str = MISSING_DATE,
    edit_url: Optional[str] = None,
    attachment_url: Optional[Callable[[str], str]] = None,
) -> AuditView:
    day = as_of_date(as_of)
    status = "Completed" if is_completed(project, day) else "Upcoming / Ongoing"

    details = (
        AuditField("Project ID", project.id),
        AuditField("Project Name", project.name),
        AuditField("Start Date", format_date(project.start_date, missing)),
        AuditField("End Date", format_date(project.end_date, missing)),
        AuditField("Bill Submission Date", format_date(project.bill_submission_date, missing)),
        AuditField("SOP ROI Submission Date", format_date(project.sop_roi_email_submission_date, missing)),
    )
    financials = (
        AuditField("Budget Amount", format_currency(project.budget_amount, currency)),
        AuditField("Advance Amount", format_currency(project.advance_amount, currency)),
        AuditField("Expense Amount", format_currency(project.expense_amount, currency)),
        AuditField("Balance Amount", format_currency(project.balance_amount, currency)),
    )

    attachments = []
    for kind in ATTACHMENT_FIELDS:
        document = getattr(project, kind, None)
        if document is None:
            continue
        attachments.append(
            AttachmentLink(
                kind=kind,
                label=ATTACHMENT_LABELS[kind],
                name=document.name,
                mime_type=document.mime_type,
                url=attachment_url(kind) if attachment_url else None,
            )
        )

    return AuditView(
        project_id=project.id,
        title=project.name,
        status=status,
        details=details,
        financials=financials,
        attachments=tuple(attachments),
        prepared_for=getattr(principal, "username", ""),
        generated_on=format_date(day),
        edit_url=edit_url if can_edit(principal) else None,
    )
