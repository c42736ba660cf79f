"""
ledger/controller.py

View controller: which screen is active and what each user intent does.

States: DASHBOARD, NEW_PROJECT, UPCOMING, COMPLETED, HISTORY.
UNAUTHENTICATED overrides all of them while no principal is held.

Rules:
- The controller owns the principal and a read-through copy of the
  project set. After every successful mutation the whole set is reloaded.
- Gateway errors never escape an intent; they become notifications and the
  held project set is left as it was. The one exception is NotFound for an
  unknown project id, which propagates so the web layer can answer 404.
- A failed submit stays on NEW_PROJECT with the entered form data kept.
- Editing is gated by can_edit() before any gateway call.

One controller serves one principal. The web layer builds a fresh one per
request (see blueprints/projects/routes.py); nothing is module-global.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Mapping, Optional

from .errors import AccessDenied, LedgerError, NotFound
from .formatting import AuditView, build_audit_view, export_csv, export_filename
from .gateway import ActivityEntry
from .identity import Principal, RegistrationRequest
from .records import ProjectInput, ProjectRecord
from .reporting import FinancialSummary, PartitionMode, is_completed, partition, summarize
from .security import can_edit

logger = logging.getLogger(__name__)


class View(str, enum.Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    DASHBOARD = "DASHBOARD"
    NEW_PROJECT = "NEW_PROJECT"
    UPCOMING = "UPCOMING"
    COMPLETED = "COMPLETED"
    HISTORY = "HISTORY"


# Free navigation targets once signed in.
BROWSABLE_VIEWS = {View.DASHBOARD, View.UPCOMING, View.COMPLETED, View.HISTORY}


@dataclass(frozen=True)
class Notification:
    category: str  # flash category: success / danger / warning / info
    message: str


@dataclass(frozen=True)
class DashboardBundle:
    principal: Principal
    summary: FinancialSummary
    project_count: int
    upcoming_count: int
    completed_count: int


@dataclass(frozen=True)
class ListBundle:
    principal: Principal
    mode: PartitionMode
    as_of: date
    projects: list
    can_edit: bool


@dataclass(frozen=True)
class HistoryRow:
    project: ProjectRecord
    completed: bool


@dataclass(frozen=True)
class HistoryBundle:
    principal: Principal
    rows: list
    activity: list
    summary: FinancialSummary


@dataclass(frozen=True)
class ExportDocument:
    filename: str
    content: bytes
    mimetype: str = "text/csv; charset=utf-8"


@dataclass
class LedgerController:
    projects_gateway: object
    identity: object
    clock: Callable[[], date] = date.today
    org_name: str = "Akij"
    currency: str = "BDT"
    missing_date: str = "N/A"

    principal: Optional[Principal] = None
    projects: list = field(default_factory=list)
    editing: Optional[ProjectRecord] = None
    form_data: Optional[dict] = None
    notifications: list = field(default_factory=list)
    _view: View = View.DASHBOARD

    # -----------------------------------------------------------------
    # State
    # -----------------------------------------------------------------
    @property
    def view(self) -> View:
        if self.principal is None:
            return View.UNAUTHENTICATED
        return self._view

    @property
    def can_edit(self) -> bool:
        return can_edit(self.principal)

    def notify(self, category: str, message: str) -> None:
        self.notifications.append(Notification(category, message))

    def drain_notifications(self) -> list:
        pending, self.notifications = self.notifications, []
        return pending

    def _require_principal(self) -> Principal:
        if self.principal is None:
            raise AccessDenied("Please sign in.")
        return self.principal

    def _find(self, project_id: str) -> ProjectRecord:
        for project in self.projects:
            if project.id == project_id:
                return project
        return self.projects_gateway.get_project(project_id)

    def _lookup(self, project_id: str) -> Optional[ProjectRecord]:
        """_find() with gateway failures turned into a notification (None). NotFound propagates."""
        try:
            return self._find(project_id)
        except NotFound:
            raise
        except LedgerError as exc:
            self.notify("danger", exc.message)
            return None

    # -----------------------------------------------------------------
    # Session intents
    # -----------------------------------------------------------------
    def resume(self) -> Optional[Principal]:
        """Pick up an existing session (cookie) and load the ledger."""
        self.principal = self.identity.current_session()
        if self.principal is not None:
            self.reload()
        return self.principal

    def login(self, username: str, password: str) -> bool:
        try:
            principal = self.identity.authenticate(username, password)
        except LedgerError as exc:
            self.notify("danger", exc.message)
            return False

        self.principal = principal
        self._view = View.DASHBOARD
        self.reload()
        self.notify("success", f"Welcome back, {principal.username}!")
        return True

    def logout(self) -> None:
        self.identity.end_session()
        self.principal = None
        self.projects = []
        self.editing = None
        self.form_data = None
        self._view = View.DASHBOARD
        self.notify("info", "Logged out successfully.")

    def register(self, request: RegistrationRequest) -> bool:
        try:
            self.identity.register(request)
        except LedgerError as exc:
            self.notify("danger", exc.message)
            return False
        self.notify("success", "Account registered successfully! Please sign in.")
        return True

    # -----------------------------------------------------------------
    # Navigation
    # -----------------------------------------------------------------
    def reload(self) -> bool:
        """Replace the held project set with a fresh read. Keeps the old set on failure."""
        try:
            self.projects = self.projects_gateway.list_projects()
        except LedgerError:
            self.notify("danger", "Failed to load projects.")
            return False
        return True

    def navigate(self, view: View | str) -> bool:
        if self.principal is None:
            return False
        view = View(view)
        if view is View.NEW_PROJECT:
            return self.request_new_project()
        if view not in BROWSABLE_VIEWS:
            return False
        self.editing = None
        self.form_data = None
        self._view = view
        return True

    def request_new_project(self) -> bool:
        if not self.can_edit:
            self.notify("danger", AccessDenied.default_message)
            return False
        self.editing = None
        self.form_data = {}
        self._view = View.NEW_PROJECT
        return True

    def request_edit(self, project_id: str) -> bool:
        """Bind the form to a project. Raises NotFound for unknown ids."""
        if not self.can_edit:
            self.notify("danger", AccessDenied.default_message)
            return False
        project = self._lookup(project_id)
        if project is None:
            return False
        self.editing = project
        self.form_data = project.to_form_values()
        self._view = View.NEW_PROJECT
        return True

    # -----------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------
    def submit(self, data: ProjectInput, raw_form: Optional[Mapping[str, str]] = None) -> Optional[ProjectRecord]:
        """
        Create (no binding) or update (edit binding) from the form.

        On success: reload, clear the binding, go to DASHBOARD.
        On failure: stay on NEW_PROJECT, keep the form data, notify.
        """
        if self.view is not View.NEW_PROJECT or not self.can_edit:
            self.notify("danger", AccessDenied.default_message)
            return None

        self.form_data = dict(raw_form) if raw_form is not None else data.to_form_values()
        try:
            data.validate()
            if self.editing is not None:
                record = self.projects_gateway.update_project(self.editing.id, data)
                message = "Project updated successfully!"
            else:
                record = self.projects_gateway.create_project(data)
                message = "Project created successfully!"
        except LedgerError as exc:
            self.notify("danger", exc.message)
            return None

        self.notify("success", message)
        self.editing = None
        self.form_data = None
        self._view = View.DASHBOARD
        self.reload()
        return record

    def delete(self, project_id: str) -> bool:
        if not self.can_edit:
            self.notify("danger", AccessDenied.default_message)
            return False
        try:
            self.projects_gateway.delete_project(project_id)
        except LedgerError as exc:
            self.notify("danger", exc.message)
            return False
        self.notify("success", "Project deleted.")
        self.reload()
        return True

    # -----------------------------------------------------------------
    # View bundles
    # -----------------------------------------------------------------
    def dashboard(self) -> DashboardBundle:
        principal = self._require_principal()
        today = self.clock()
        completed = sum(1 for p in self.projects if is_completed(p, today))
        return DashboardBundle(
            principal=principal,
            summary=summarize(self.projects),
            project_count=len(self.projects),
            upcoming_count=len(self.projects) - completed,
            completed_count=completed,
        )

    def project_list(self, mode: PartitionMode | str, as_of: Optional[date] = None) -> ListBundle:
        principal = self._require_principal()
        day = as_of or self.clock()
        mode = PartitionMode(mode)
        return ListBundle(
            principal=principal,
            mode=mode,
            as_of=day,
            projects=partition(self.projects, mode, day),
            can_edit=can_edit(principal),
        )

    def history(self, activity_limit: int = 20) -> HistoryBundle:
        principal = self._require_principal()
        today = self.clock()
        try:
            activity: list[ActivityEntry] = self.projects_gateway.recent_activity(activity_limit)
        except LedgerError as exc:
            self.notify("warning", exc.message)
            activity = []
        return HistoryBundle(
            principal=principal,
            rows=[HistoryRow(project=p, completed=is_completed(p, today)) for p in self.projects],
            activity=activity,
            summary=summarize(self.projects),
        )

    def audit_view(
        self,
        project_id: str,
        *,
        edit_url: Optional[str] = None,
        attachment_url: Optional[Callable[[str], str]] = None,
    ) -> Optional[AuditView]:
        """
        Audit report for one project.

        Raises NotFound for unknown ids and AccessDenied without a principal.
        Returns None (with a notification) when the project cannot be read.
        """
        principal = self._require_principal()
        project = self._lookup(project_id)
        if project is None:
            return None
        return build_audit_view(
            project,
            principal,
            as_of=self.clock(),
            currency=self.currency,
            missing=self.missing_date,
            edit_url=edit_url,
            attachment_url=attachment_url,
        )

    def attachment(self, project_id: str, kind: str):
        """Same error contract as audit_view(); a missing document is NotFound too."""
        self._require_principal()
        project = self._lookup(project_id)
        if project is None:
            return None
        document = project.attachment(kind)
        if document is None:
            raise NotFound("Attachment not found.")
        return document

    def export(self, mode: PartitionMode | str, as_of: Optional[date] = None) -> ExportDocument:
        bundle = self.project_list(mode, as_of)
        logger.info(
            "Export of %d %s projects by %s", len(bundle.projects), bundle.mode.value, bundle.principal.username
        )
        return ExportDocument(
            filename=export_filename(self.org_name, bundle.mode, self.clock()),
            content=export_csv(bundle.projects, currency=self.currency, missing=self.missing_date),
        )
