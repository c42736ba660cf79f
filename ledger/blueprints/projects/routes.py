"""
ledger/blueprints/projects/routes.py

Project routes

Includes:
- Dashboard (portfolio totals)
- Upcoming & ongoing / Completed lists with CSV export
- History (whole ledger + recent audit trail)
- Audit report per project, attachment downloads
- Create / edit / delete (admin only)
- JSON listing in the gateway wire form

IMPORTANT:
- UI is never trusted. Access control and validations are server-side.
- Every request builds its own controller and reloads the ledger.
"""

from __future__ import annotations

import io

from flask import Blueprint, Response, abort, jsonify, redirect, render_template, request, send_file, url_for
from flask_login import login_required

from .. import build_controller, flash_notifications
from ...controller import View
from ...errors import NotFound
from ...records import ATTACHMENT_FIELDS, ProjectInput
from ...reporting import PartitionMode
from ...security import admin_required
from ...utils import project_row_class

projects_bp = Blueprint("projects", __name__, url_prefix="/projects")


def _render_form(controller, status: int = 200):
    flash_notifications(controller)
    return render_template(
        "projects/form.html",
        project=controller.editing,
        form=controller.form_data or {},
        attachment_fields=ATTACHMENT_FIELDS,
    ), status


def _submit(controller):
    """Shared POST handling for create and edit."""
    data = ProjectInput.from_form(request.form, request.files, existing=controller.editing)
    controller.submit(data, raw_form=request.form.to_dict())
    if controller.view is View.DASHBOARD:
        flash_notifications(controller)
        return redirect(url_for("projects.dashboard"))
    # Stay on the form with the entered values.
    return _render_form(controller, status=400)


def _list_page(mode: PartitionMode):
    controller = build_controller()
    controller.navigate(View.COMPLETED if mode is PartitionMode.COMPLETED else View.UPCOMING)
    bundle = controller.project_list(mode)
    flash_notifications(controller)
    return render_template(
        "projects/list.html",
        bundle=bundle,
        page_title=mode.title,
        row_class=lambda p: project_row_class(p, bundle.as_of),
    )


# ---------------------------------------------------------------------
# Dashboard & lists
# ---------------------------------------------------------------------
@projects_bp.route("/")
@login_required
def dashboard():
    controller = build_controller()
    bundle = controller.dashboard()
    flash_notifications(controller)
    return render_template(
        "projects/dashboard.html",
        bundle=bundle,
        chart=bundle.summary.chart_series(),
    )


@projects_bp.route("/upcoming")
@login_required
def upcoming_projects():
    return _list_page(PartitionMode.UPCOMING)


@projects_bp.route("/completed")
@login_required
def completed_projects():
    return _list_page(PartitionMode.COMPLETED)


@projects_bp.route("/history")
@login_required
def history():
    controller = build_controller()
    controller.navigate(View.HISTORY)
    bundle = controller.history()
    flash_notifications(controller)
    return render_template("projects/history.html", bundle=bundle)


@projects_bp.route("/<any(upcoming, completed):mode>/export.csv")
@login_required
def export_projects(mode: str):
    controller = build_controller()
    document = controller.export(PartitionMode(mode))
    return Response(
        document.content,
        mimetype=document.mimetype,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )


@projects_bp.route("/api/projects")
@login_required
def api_projects():
    """Whole ledger in the wire form (ISO dates, base64 attachments)."""
    controller = build_controller()
    return jsonify([project.to_dict() for project in controller.projects])


# ---------------------------------------------------------------------
# Audit report & attachments
# ---------------------------------------------------------------------
@projects_bp.route("/<project_id>/audit")
@login_required
def audit_report(project_id: str):
    controller = build_controller()
    try:
        view = controller.audit_view(
            project_id,
            edit_url=url_for("projects.edit_project", project_id=project_id),
            attachment_url=lambda kind: url_for("projects.download_attachment", project_id=project_id, kind=kind),
        )
    except NotFound:
        abort(404)
    flash_notifications(controller)
    if view is None:
        return redirect(url_for("projects.dashboard"))
    return render_template("projects/audit.html", view=view)


@projects_bp.route("/<project_id>/attachments/<kind>")
@login_required
def download_attachment(project_id: str, kind: str):
    controller = build_controller()
    try:
        document = controller.attachment(project_id, kind)
    except NotFound:
        abort(404)
    if document is None:
        flash_notifications(controller)
        return redirect(url_for("projects.dashboard"))
    return send_file(
        io.BytesIO(document.content),
        mimetype=document.mime_type,
        download_name=document.name,
        as_attachment=request.args.get("download") == "1",
    )


# ---------------------------------------------------------------------
# Create / edit / delete
# ---------------------------------------------------------------------
@projects_bp.route("/new", methods=["GET", "POST"])
@login_required
@admin_required
def create_project():
    controller = build_controller()
    if not controller.request_new_project():
        abort(403)
    if request.method == "POST":
        return _submit(controller)
    return _render_form(controller)


@projects_bp.route("/<project_id>/edit", methods=["GET", "POST"])
@login_required
@admin_required
def edit_project(project_id: str):
    controller = build_controller()
    try:
        bound = controller.request_edit(project_id)
    except NotFound:
        abort(404)
    if not bound:
        flash_notifications(controller)
        return redirect(url_for("projects.dashboard"))
    if request.method == "POST":
        return _submit(controller)
    return _render_form(controller)


@projects_bp.route("/<project_id>/delete", methods=["POST"])
@login_required
@admin_required
def delete_project(project_id: str):
    controller = build_controller()
    controller.delete(project_id)
    flash_notifications(controller)
    return redirect(url_for("projects.dashboard"))
