"""
ledger/security.py

Access control helpers for the Project Ledger.

Key rules:
- UI is never trusted; all permission checks are server-side.
- Admin: create / edit / delete projects.
- Viewer: read-only (no mutating requests), except signing out.

can_edit() is the single capability check. List views, the audit view,
the project form guard, the route decorator and the global read-only
guard all go through it.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Optional, Tuple

from flask import render_template, request
from flask_login import current_user

from .models import Role

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# Mutating endpoints a viewer may still call.
VIEWER_ALLOWED_ENDPOINTS = {"auth.logout"}


def can_edit(principal: Any) -> bool:
    """True if the principal (Principal or User) may create or edit projects."""
    if principal is None:
        return False
    if getattr(principal, "is_authenticated", True) is False:
        return False
    return getattr(principal, "role", None) == Role.ADMIN


def _forbidden() -> Tuple[str, int]:
    """Render a consistent 403 page."""
    return render_template("errors/403.html"), 403


def viewer_readonly_guard() -> Optional[Tuple[str, int]]:
    """
    Global guard: viewers cannot mutate data.

    Wired via app.before_request. Each route still enforces its own permissions.
    """
    if request.method not in MUTATING_METHODS:
        return None

    if not current_user.is_authenticated:
        return None

    if can_edit(current_user):
        return None

    endpoint = (request.endpoint or "").strip()
    if endpoint in VIEWER_ALLOWED_ENDPOINTS:
        return None

    return _forbidden()


def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: admin-only."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not can_edit(current_user):
            return _forbidden()
        return view_func(*args, **kwargs)

    return wrapper
