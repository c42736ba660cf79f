"""
Project Ledger – Domain Models

- User: login identity with a fixed role (ADMIN / VIEWER).
- Project: ledger entry with budget / advance / expense figures and two
  optional inline attachments.
- AuditLog: who changed which project, with before/after snapshots.

IMPORTANT:
- Amounts are rounded half-up to cents before balance_amount is derived,
  so advance - expense == balance holds for the stored row.
- balance_amount is derived. Project.apply() recomputes it on every create
  and update; it is never assigned from user input.
- Role is set at registration and there is no route or method that changes it.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db
from .records import Attachment, ProjectInput, ProjectRecord, compute_balance
from .utils import to_decimal


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo anyway)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid.uuid4())


# Amount columns are Numeric(18, 2).
CENTS = Decimal("0.01")


def _to_cents(value) -> Decimal:
    """Round to the column scale so the derived balance matches what is stored."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def _attachment_to_column(attachment: Attachment | None):
    return attachment.to_dict() if attachment else None


class Role(str, enum.Enum):
    """Closed set of roles."""

    ADMIN = "ADMIN"
    VIEWER = "VIEWER"


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.Enum(Role, native_enum=False, length=10), nullable=False, default=Role.VIEWER, index=True)

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def __repr__(self):
        return f"<User {self.username} ({self.role.value})>"


# ---------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------
class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)

    name = db.Column(db.String(255), nullable=False)

    start_date = db.Column(db.Date, nullable=False, index=True)
    end_date = db.Column(db.Date, nullable=False, index=True)

    budget_amount = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    advance_amount = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    expense_amount = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    balance_amount = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))

    bill_submission_date = db.Column(db.Date, nullable=True)
    sop_roi_email_submission_date = db.Column(db.Date, nullable=True)

    # {name, mimeType, content(base64)}
    bill_top_sheet_image = db.Column(db.JSON, nullable=True)
    budget_copy_attachment = db.Column(db.JSON, nullable=True)

    # Reserved: stored and returned, no workflow reads or sets it.
    is_settled = db.Column(db.Boolean, nullable=True)

    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def recalc_balance(self) -> None:
        """Re-derive balance_amount from advance and expense."""
        self.balance_amount = compute_balance(self.advance_amount, self.expense_amount)

    def apply(self, data: ProjectInput) -> None:
        """Full replace of every editable field, then re-derive the balance."""
        self.name = data.name.strip()
        self.start_date = data.start_date
        self.end_date = data.end_date
        self.budget_amount = _to_cents(data.budget_amount)
        self.advance_amount = _to_cents(data.advance_amount)
        self.expense_amount = _to_cents(data.expense_amount)
        self.bill_submission_date = data.bill_submission_date
        self.sop_roi_email_submission_date = data.sop_roi_email_submission_date
        self.bill_top_sheet_image = _attachment_to_column(data.bill_top_sheet_image)
        self.budget_copy_attachment = _attachment_to_column(data.budget_copy_attachment)
        self.is_settled = data.is_settled
        self.recalc_balance()

    def to_record(self) -> ProjectRecord:
        return ProjectRecord(
            id=self.id,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            budget_amount=to_decimal(self.budget_amount),
            advance_amount=to_decimal(self.advance_amount),
            expense_amount=to_decimal(self.expense_amount),
            balance_amount=to_decimal(self.balance_amount),
            bill_submission_date=self.bill_submission_date,
            sop_roi_email_submission_date=self.sop_roi_email_submission_date,
            bill_top_sheet_image=Attachment.from_dict(self.bill_top_sheet_image),
            budget_copy_attachment=Attachment.from_dict(self.budget_copy_attachment),
            created_at=self.created_at,
            is_settled=self.is_settled,
        )

    def __repr__(self):
        return f"<Project {self.id} {self.name}>"


class AuditLog(db.Model):
    """Audit trail of project mutations."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.String(36), nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)
