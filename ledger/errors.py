"""
ledger/errors.py

Error kinds raised at the gateway boundaries.

Every error carries a user-facing message. The view controller catches
LedgerError and turns it into a notification; routes never see raw
SQLAlchemy exceptions.
"""

from __future__ import annotations

from typing import Iterable


class LedgerError(Exception):
    """Base class for all ledger errors."""

    default_message = "The request could not be completed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateIdentity(LedgerError):
    default_message = "User already exists in corporate ledger."


class InvalidCredentials(LedgerError):
    # Same message for unknown username and wrong password.
    default_message = "Invalid corporate credentials."


class NotFound(LedgerError):
    default_message = "Project not found."


class ValidationFailure(LedgerError):
    default_message = "Please fill in all mandatory fields."

    def __init__(self, message: str | None = None, fields: Iterable[str] = ()):
        self.fields = list(fields)
        super().__init__(message)


class GatewayUnavailable(LedgerError):
    default_message = "Database connection failed."


class AccessDenied(LedgerError):
    default_message = "You do not have permission to do that."
