"""
ledger/gateway.py

Persistence gateway for projects.

- list_projects(): newest first (created_at descending).
- create_project() / update_project(): validate, apply, re-derive balance,
  audit, commit. Update is a full replace.
- delete_project(): permanent, no soft delete.

Every mutation is all-or-nothing: any failure rolls the session back.
Storage errors surface as GatewayUnavailable; routes never see SQLAlchemy
exceptions.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .audit import log_action, serialize_model
from .errors import GatewayUnavailable, LedgerError, NotFound
from .extensions import db
from .models import AuditLog, Project
from .records import ProjectInput, ProjectRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityEntry:
    """One row of the audit trail, as shown on the history page."""

    action: str
    entity_id: str
    project_name: Optional[str]
    username: Optional[str]
    created_at: Optional[datetime]


class ProjectGateway:
    def __init__(self, session=None, actor=None):
        self.session = session if session is not None else db.session
        self.actor = actor

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------
    @contextmanager
    def _transaction(self, failure_message: str) -> Iterator[None]:
        """Commit on success; roll back and translate on failure."""
        try:
            yield
            self.session.commit()
        except LedgerError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(failure_message)
            raise GatewayUnavailable(failure_message) from exc

    def _load(self, project_id: str) -> Project:
        project = self.session.get(Project, project_id) if project_id else None
        if project is None:
            raise NotFound(f"Project {project_id} not found.")
        return project

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------
    def list_projects(self) -> list[ProjectRecord]:
        try:
            rows = self.session.execute(
                select(Project).order_by(Project.created_at.desc())
            ).scalars().all()
        except SQLAlchemyError as exc:
            logger.exception("Failed to fetch projects")
            raise GatewayUnavailable("Failed to fetch projects.") from exc
        return [row.to_record() for row in rows]

    def get_project(self, project_id: str) -> ProjectRecord:
        try:
            return self._load(project_id).to_record()
        except SQLAlchemyError as exc:
            logger.exception("Failed to fetch project %s", project_id)
            raise GatewayUnavailable("Failed to fetch project.") from exc

    def recent_activity(self, limit: int = 20) -> list[ActivityEntry]:
        """Latest audit entries, newest first."""
        try:
            rows = self.session.execute(
                select(AuditLog)
                .where(AuditLog.entity_type == Project.__name__)
                .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
                .limit(limit)
            ).scalars().all()
        except SQLAlchemyError as exc:
            logger.exception("Failed to fetch audit trail")
            raise GatewayUnavailable("Failed to fetch audit trail.") from exc

        entries = []
        for row in rows:
            snapshot = json.loads(row.after_data or row.before_data or "{}")
            entries.append(
                ActivityEntry(
                    action=row.action,
                    entity_id=row.entity_id,
                    project_name=snapshot.get("name"),
                    username=row.username_snapshot,
                    created_at=row.created_at,
                )
            )
        return entries

    # -----------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------
    def create_project(self, data: ProjectInput) -> ProjectRecord:
        data.validate()
        project = Project()
        with self._transaction("Failed to create project."):
            project.apply(data)
            self.session.add(project)
            self.session.flush()
            log_action(self.session, project, "CREATE", actor=self.actor, after=serialize_model(project))
        logger.info("Project %s created by %s", project.id, getattr(self.actor, "username", "system"))
        return project.to_record()

    def update_project(self, project_id: str, data: ProjectInput) -> ProjectRecord:
        data.validate()
        with self._transaction("Failed to update project."):
            project = self._load(project_id)
            before = serialize_model(project)
            project.apply(data)
            self.session.flush()
            log_action(
                self.session,
                project,
                "UPDATE",
                actor=self.actor,
                before=before,
                after=serialize_model(project),
            )
        logger.info("Project %s updated by %s", project_id, getattr(self.actor, "username", "system"))
        return project.to_record()

    def delete_project(self, project_id: str) -> None:
        with self._transaction("Deletion failed."):
            project = self._load(project_id)
            log_action(self.session, project, "DELETE", actor=self.actor, before=serialize_model(project))
            self.session.delete(project)
        logger.info("Project %s deleted by %s", project_id, getattr(self.actor, "username", "system"))
