"""
Utility functions shared across the app. This includes:
- parse_decimal / parse_iso_date: lenient parsing of submitted form values.
- safe_next_url: keep post-login redirects on this site.
- project_row_class: CSS class for a project row based on its end date.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from urllib.parse import urlparse


def to_decimal(value) -> Decimal:
    """Convert Numeric/int/float/None to Decimal safely."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def parse_decimal(value) -> Decimal | None:
    """
    Parse an amount from user input.

    Accepts grouping separators ("100,000") and surrounding whitespace.
    Returns None for empty or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return to_decimal(value)
    raw = str(value).strip().replace(",", "").replace("_", "").replace(" ", "")
    if raw == "":
        return None
    try:
        parsed = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def parse_iso_date(value) -> date | None:
    """Parse YYYY-MM-DD (or a full ISO timestamp) into a date; None if blank/invalid."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def safe_next_url(raw_next: str | None) -> str | None:
    """
    Return raw_next only if it is a local absolute path.

    External redirects (scheme/netloc) and protocol-relative paths are rejected.
    """
    if not raw_next:
        return None
    try:
        parsed = urlparse(raw_next)
    except ValueError:
        return None
    if parsed.scheme or parsed.netloc:
        return None
    if not raw_next.startswith("/") or raw_next.startswith("//"):
        return None
    return raw_next


def project_row_class(project, as_of: date) -> str:
    """Completed rows are greyed out; everything else is shown as active."""
    if project.end_date < as_of:
        return "row-complete"
    if project.start_date > as_of:
        return "row-scheduled"
    return "row-active"
