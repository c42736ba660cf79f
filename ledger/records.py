"""
ledger/records.py

Project record model: the values that cross the persistence boundary.

- Attachment: an inline document (name, MIME type, raw bytes).
- ProjectInput: a full editable project as submitted (create or full replace).
- ProjectRecord: an immutable stored project, as returned by the gateway.

IMPORTANT:
- balance_amount is never taken from the client. It is always
  advance_amount - expense_amount (see compute_balance).
- Dates are date-only values; the wire form is ISO YYYY-MM-DD.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from .errors import ValidationFailure
from .utils import parse_decimal, parse_iso_date, to_decimal

ATTACHMENT_FIELDS = ("bill_top_sheet_image", "budget_copy_attachment")

MANDATORY_FIELDS = {
    "name": "Project Name",
    "start_date": "Start Date",
    "end_date": "End Date",
}


def compute_balance(advance_amount, expense_amount) -> Decimal:
    """Balance = advance - expense. Negative results are allowed."""
    return to_decimal(advance_amount) - to_decimal(expense_amount)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _plain_amount(value) -> str:
    """Amount as typed into a form field (no grouping, no symbol)."""
    amount = to_decimal(value)
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal("1")))
    return str(amount.normalize())


# ---------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class Attachment:
    name: str
    mime_type: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)

    def to_dict(self) -> dict[str, str]:
        """Wire form: {name, mimeType, content(base64)}."""
        return {
            "name": self.name,
            "mimeType": self.mime_type,
            "content": base64.b64encode(self.content).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["Attachment"]:
        """
        Build from the wire form.

        Also accepts data URLs ("data:image/png;base64,....") in the content
        field, and the short keys "type"/"data" used by older payloads.
        """
        if not data:
            return None
        raw = data.get("content") or data.get("data") or ""
        mime_type = data.get("mimeType") or data.get("type") or "application/octet-stream"
        if raw.startswith("data:") and "," in raw:
            header, raw = raw.split(",", 1)
            declared = header[5:].split(";", 1)[0]
            if declared:
                mime_type = declared
        try:
            content = base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValidationFailure("Attachment content is not valid base64.") from exc
        return cls(name=data.get("name") or "attachment", mime_type=mime_type, content=content)

    @classmethod
    def from_upload(cls, storage) -> Optional["Attachment"]:
        """Build from a werkzeug FileStorage; None when no file was chosen."""
        if storage is None or not getattr(storage, "filename", None):
            return None
        content = storage.read()
        if not content:
            return None
        return cls(
            name=storage.filename,
            mime_type=storage.mimetype or "application/octet-stream",
            content=content,
        )


# ---------------------------------------------------------------------
# Submitted project (create / full replace)
# ---------------------------------------------------------------------
@dataclass
class ProjectInput:
    """Every editable project field. Updates resend all of them."""

    name: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget_amount: Decimal = Decimal("0")
    advance_amount: Decimal = Decimal("0")
    expense_amount: Decimal = Decimal("0")
    bill_submission_date: Optional[date] = None
    sop_roi_email_submission_date: Optional[date] = None
    bill_top_sheet_image: Optional[Attachment] = None
    budget_copy_attachment: Optional[Attachment] = None
    is_settled: Optional[bool] = None

    @property
    def balance_amount(self) -> Decimal:
        return compute_balance(self.advance_amount, self.expense_amount)

    def missing_fields(self) -> list[str]:
        missing = []
        if not (self.name or "").strip():
            missing.append("name")
        if self.start_date is None:
            missing.append("start_date")
        if self.end_date is None:
            missing.append("end_date")
        return missing

    def validate(self) -> None:
        """Mandatory-field check. End/start ordering and signs are not checked."""
        missing = self.missing_fields()
        if missing:
            labels = ", ".join(MANDATORY_FIELDS[f] for f in missing)
            raise ValidationFailure(f"Please fill in all mandatory fields: {labels}.", fields=missing)

    def to_form_values(self) -> dict[str, str]:
        return {
            "name": self.name or "",
            "start_date": _iso(self.start_date) or "",
            "end_date": _iso(self.end_date) or "",
            "budget_amount": _plain_amount(self.budget_amount),
            "advance_amount": _plain_amount(self.advance_amount),
            "expense_amount": _plain_amount(self.expense_amount),
            "bill_submission_date": _iso(self.bill_submission_date) or "",
            "sop_roi_email_submission_date": _iso(self.sop_roi_email_submission_date) or "",
        }

    @classmethod
    def from_form(cls, form: Mapping[str, str], files=None, existing: "ProjectRecord | None" = None) -> "ProjectInput":
        """
        Parse a submitted HTML form.

        Unparseable amounts count as 0. On edit, an attachment input left
        blank keeps the stored document unless its remove_<field> box is ticked.
        """
        attachments: dict[str, Optional[Attachment]] = {}
        for name in ATTACHMENT_FIELDS:
            uploaded = Attachment.from_upload(files.get(name)) if files is not None else None
            if uploaded is not None:
                attachments[name] = uploaded
            elif form.get(f"remove_{name}"):
                attachments[name] = None
            else:
                attachments[name] = getattr(existing, name, None) if existing else None

        return cls(
            name=(form.get("name") or "").strip(),
            start_date=parse_iso_date(form.get("start_date")),
            end_date=parse_iso_date(form.get("end_date")),
            budget_amount=parse_decimal(form.get("budget_amount")) or Decimal("0"),
            advance_amount=parse_decimal(form.get("advance_amount")) or Decimal("0"),
            expense_amount=parse_decimal(form.get("expense_amount")) or Decimal("0"),
            bill_submission_date=parse_iso_date(form.get("bill_submission_date")),
            sop_roi_email_submission_date=parse_iso_date(form.get("sop_roi_email_submission_date")),
            is_settled=bool(form.get("is_settled")) if "is_settled" in form else (existing.is_settled if existing else None),
            **attachments,
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProjectInput":
        """Parse the camelCase wire form. balanceAmount, id and createdAt are ignored."""
        return cls(
            name=(payload.get("name") or "").strip(),
            start_date=parse_iso_date(payload.get("startDate")),
            end_date=parse_iso_date(payload.get("endDate")),
            budget_amount=parse_decimal(payload.get("budgetAmount")) or Decimal("0"),
            advance_amount=parse_decimal(payload.get("advanceAmount")) or Decimal("0"),
            expense_amount=parse_decimal(payload.get("expenseAmount")) or Decimal("0"),
            bill_submission_date=parse_iso_date(payload.get("billSubmissionDate")),
            sop_roi_email_submission_date=parse_iso_date(payload.get("sopRoiEmailSubmissionDate")),
            bill_top_sheet_image=Attachment.from_dict(payload.get("billTopSheetImage")),
            budget_copy_attachment=Attachment.from_dict(payload.get("budgetCopyAttachment")),
            is_settled=payload.get("isSettled"),
        )


# ---------------------------------------------------------------------
# Stored project (read model)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ProjectRecord:
    id: str
    name: str
    start_date: date
    end_date: date
    budget_amount: Decimal
    advance_amount: Decimal
    expense_amount: Decimal
    balance_amount: Decimal
    bill_submission_date: Optional[date] = None
    sop_roi_email_submission_date: Optional[date] = None
    bill_top_sheet_image: Optional[Attachment] = None
    budget_copy_attachment: Optional[Attachment] = None
    created_at: Optional[datetime] = None
    is_settled: Optional[bool] = None

    def attachment(self, kind: str) -> Optional[Attachment]:
        if kind not in ATTACHMENT_FIELDS:
            return None
        return getattr(self, kind)

    def to_form_values(self) -> dict[str, str]:
        return ProjectInput(
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            budget_amount=self.budget_amount,
            advance_amount=self.advance_amount,
            expense_amount=self.expense_amount,
            bill_submission_date=self.bill_submission_date,
            sop_roi_email_submission_date=self.sop_roi_email_submission_date,
        ).to_form_values()

    def to_dict(self) -> dict[str, Any]:
        """Boundary representation: ISO dates, numeric amounts, base64 attachments."""
        return {
            "id": self.id,
            "name": self.name,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "budgetAmount": float(self.budget_amount),
            "advanceAmount": float(self.advance_amount),
            "expenseAmount": float(self.expense_amount),
            "balanceAmount": float(self.balance_amount),
            "billSubmissionDate": _iso(self.bill_submission_date),
            "sopRoiEmailSubmissionDate": _iso(self.sop_roi_email_submission_date),
            "billTopSheetImage": self.bill_top_sheet_image.to_dict() if self.bill_top_sheet_image else None,
            "budgetCopyAttachment": self.budget_copy_attachment.to_dict() if self.budget_copy_attachment else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "isSettled": self.is_settled,
        }
