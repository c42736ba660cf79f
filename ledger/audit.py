"""
ledger/audit.py

Audit logging helpers.

Goals:
- Capture WHO did WHAT to WHICH project, with BEFORE/AFTER snapshots.
- Store a username snapshot so the trail survives user changes.
- Store the IP address when running inside a request.

IMPORTANT:
- log_action ADDS an AuditLog entry to the given session.
  The caller controls the transaction (commit/rollback), so the audit row
  is written atomically with the change it describes.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request

from .models import AuditLog

# JSON columns holding inline documents; only the file name goes to the trail.
_ATTACHMENT_COLUMNS = {"bill_top_sheet_image", "budget_copy_attachment"}


def _safe_str(value: Any) -> Optional[str]:
    """Stable string for JSON/DB storage (Decimal, date, datetime, ...)."""
    if value is None:
        return None
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """
    Snapshot of a model's scalar columns as strings.

    Attachment columns are reduced to their file name.
    """
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        value = getattr(instance, column.name)
        if column.name in _ATTACHMENT_COLUMNS:
            value = value.get("name") if value else None
        data[column.name] = _safe_str(value)
    return data


def log_action(
    session,
    entity: Any,
    action: str,
    *,
    actor: Any = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the session.

    Parameters:
        session: SQLAlchemy session the change is being made in
        entity: model instance with .id (flushed)
        action: CREATE / UPDATE / DELETE
        actor: Principal (or anything with .username); None for system jobs
        before / after: snapshots from serialize_model()
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    entry = AuditLog(
        username_snapshot=getattr(actor, "username", None),
        entity_type=entity.__class__.__name__,
        entity_id=str(entity_id),
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    session.add(entry)
    return entry
