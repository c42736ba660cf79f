"""
ledger/identity.py

Identity gateway: registration, authentication and the session principal.

Rules:
- Passwords are stored only as werkzeug salted hashes.
- The session cookie carries the user id (Flask-Login); never the password.
- Sessions are permanent with PERMANENT_SESSION_LIFETIME (24h by default).
- Unknown username and wrong password both raise InvalidCredentials.
- Role is chosen once, at registration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from flask import session as http_session
from flask_login import current_user, login_user, logout_user
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import DuplicateIdentity, GatewayUnavailable, InvalidCredentials, ValidationFailure
from .extensions import db
from .models import Role, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """An authenticated identity plus its role."""

    username: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_user(cls, user) -> "Principal | None":
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        return cls(username=user.username, role=Role(user.role))


@dataclass(frozen=True)
class RegistrationRequest:
    username: str
    password: str
    role: Role = Role.VIEWER

    def validate(self) -> None:
        missing = []
        if not (self.username or "").strip():
            missing.append("username")
        if not self.password:
            missing.append("password")
        if missing:
            raise ValidationFailure("Username and password are required.", fields=missing)
        if not isinstance(self.role, Role):
            raise ValidationFailure("Unknown role.", fields=["role"])

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "RegistrationRequest":
        raw_role = (form.get("role") or Role.VIEWER.value).strip().upper()
        try:
            role = Role(raw_role)
        except ValueError as exc:
            raise ValidationFailure("Unknown role.", fields=["role"]) from exc
        return cls(
            username=(form.get("username") or "").strip(),
            password=form.get("password") or "",
            role=role,
        )


class IdentityGateway:
    """register / authenticate / end_session / current_session."""

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def _find_user(self, username: str) -> User | None:
        return self.session.execute(select(User).filter_by(username=username)).scalar_one_or_none()

    def register(self, request: RegistrationRequest) -> None:
        """Store a new user. No auto-login."""
        request.validate()
        username = request.username.strip()
        try:
            if self._find_user(username) is not None:
                raise DuplicateIdentity()

            user = User(username=username, role=request.role)
            user.set_password(request.password)
            self.session.add(user)
            self.session.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration of the same name.
            self.session.rollback()
            raise DuplicateIdentity() from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Registration failed for %s", username)
            raise GatewayUnavailable() from exc

        logger.info("Registered user %s with role %s", username, request.role.value)

    def authenticate(self, username: str, password: str) -> Principal:
        """Verify credentials and open a session. Requires a request context."""
        username = (username or "").strip()
        try:
            user = self._find_user(username) if username else None
        except SQLAlchemyError as exc:
            logger.exception("Login lookup failed")
            raise GatewayUnavailable("Auth system offline.") from exc

        if user is None or not user.check_password(password or ""):
            logger.info("Rejected login for %r", username)
            raise InvalidCredentials()

        login_user(user)
        http_session.permanent = True
        logger.info("User %s signed in", user.username)
        return Principal.from_user(user)

    def end_session(self) -> None:
        """Drop the session. Calling it without a session is a no-op."""
        principal = self.current_session()
        logout_user()
        if principal is not None:
            logger.info("User %s signed out", principal.username)

    def current_session(self) -> Principal | None:
        """Active principal, or None when the cookie is missing, expired or malformed."""
        try:
            return Principal.from_user(current_user)
        except (ValueError, AttributeError, SQLAlchemyError):
            return None
