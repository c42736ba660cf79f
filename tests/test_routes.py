"""
HTTP tests: role gating, the project form, exports and the CLI.
"""

import csv
import io
from datetime import date, timedelta

import pytest

from ledger.errors import GatewayUnavailable
from ledger.extensions import db
from ledger.gateway import ProjectGateway
from ledger.models import Project, User
from sqlalchemy import select

from .conftest import login


def _create(app, make_input, **overrides):
    with app.app_context():
        return ProjectGateway(db.session).create_project(make_input(**overrides))


def _form(**overrides):
    data = {
        "name": "Bridge Works",
        "start_date": "2024-01-01",
        "end_date": "2024-03-31",
        "budget_amount": "100,000",
        "advance_amount": "40000",
        "expense_amount": "15000",
        "balance_amount": "1",
        "bill_submission_date": "",
        "sop_roi_email_submission_date": "",
    }
    data.update(overrides)
    return data


class TestAuth:
    def test_pages_require_login(self, client):
        response = client.get("/projects/")
        assert response.status_code == 302
        assert "/auth/login" in response.headers["Location"]

    def test_bad_login(self, client, users):
        response = login(client, "admin", "wrong")
        assert response.status_code == 401
        assert b"Invalid corporate credentials." in response.data

    def test_register_then_login(self, client, app):
        response = client.post(
            "/auth/register",
            data={"username": "dana", "password": "pw", "role": "VIEWER"},
        )
        assert response.status_code == 302
        assert "/auth/login" in response.headers["Location"]

        with app.app_context():
            user = db.session.execute(select(User).filter_by(username="dana")).scalar_one()
            assert user.password_hash != "pw"

        assert login(client, "dana", "pw").status_code == 302

    def test_duplicate_registration(self, client, users):
        response = client.post(
            "/auth/register",
            data={"username": "admin", "password": "x", "role": "ADMIN"},
        )
        assert response.status_code == 400
        assert b"User already exists in corporate ledger." in response.data

    def test_logout(self, admin_client):
        response = admin_client.post("/auth/logout")
        assert response.status_code == 302
        assert admin_client.get("/projects/").status_code == 302


class TestViewerIsReadOnly:
    def test_viewer_can_browse(self, viewer_client, app, make_input):
        _create(app, make_input)
        for path in ("/projects/", "/projects/upcoming", "/projects/completed", "/projects/history"):
            assert viewer_client.get(path).status_code == 200

    def test_no_new_project_nav_for_viewer(self, viewer_client, admin_client):
        assert b"New Project" not in viewer_client.get("/projects/").data
        assert b"New Project" in admin_client.get("/projects/").data

    def test_viewer_cannot_open_or_post_form(self, viewer_client, app):
        assert viewer_client.get("/projects/new").status_code == 403
        assert viewer_client.post("/projects/new", data=_form()).status_code == 403
        with app.app_context():
            assert db.session.execute(select(Project)).first() is None

    def test_viewer_cannot_edit_or_delete(self, viewer_client, app, make_input):
        record = _create(app, make_input)
        assert viewer_client.post(f"/projects/{record.id}/edit", data=_form()).status_code == 403
        assert viewer_client.post(f"/projects/{record.id}/delete").status_code == 403
        with app.app_context():
            assert db.session.get(Project, record.id).name == "Site A"

    def test_viewer_audit_has_no_edit_action(self, viewer_client, admin_client, app, make_input):
        record = _create(app, make_input)
        viewer_page = viewer_client.get(f"/projects/{record.id}/audit")
        admin_page = admin_client.get(f"/projects/{record.id}/audit")

        assert viewer_page.status_code == 200
        assert b"edit-link" not in viewer_page.data
        assert b"edit-link" in admin_page.data
        assert b"BDT 25,000" in viewer_page.data

    def test_list_edit_links_only_for_admin(self, viewer_client, admin_client, app, make_input):
        _create(app, make_input, end_date=date.today() + timedelta(days=30))
        assert b"edit-link" not in viewer_client.get("/projects/upcoming").data
        assert b"edit-link" in admin_client.get("/projects/upcoming").data


class TestAdminForm:
    def test_create(self, admin_client, app):
        response = admin_client.post("/projects/new", data=_form())
        assert response.status_code == 302

        with app.app_context():
            project = db.session.execute(select(Project)).scalar_one()
            assert project.name == "Bridge Works"
            assert int(project.budget_amount) == 100000
            assert int(project.balance_amount) == 25000

        assert b"Project created successfully!" in admin_client.get("/projects/").data

    def test_failed_create_keeps_form(self, admin_client, app):
        response = admin_client.post("/projects/new", data=_form(end_date=""))

        assert response.status_code == 400
        assert b'value="Bridge Works"' in response.data
        assert b"Please fill in all mandatory fields" in response.data
        with app.app_context():
            assert db.session.execute(select(Project)).first() is None

    def test_edit(self, admin_client, app, make_input):
        record = _create(app, make_input)
        page = admin_client.get(f"/projects/{record.id}/edit")
        assert b'value="Site A"' in page.data

        response = admin_client.post(f"/projects/{record.id}/edit", data=_form(expense_amount="50000"))
        assert response.status_code == 302
        with app.app_context():
            assert int(db.session.get(Project, record.id).balance_amount) == -10000

    def test_edit_unknown_project(self, admin_client):
        assert admin_client.get("/projects/missing/edit").status_code == 404

    def test_upload_and_download_attachment(self, admin_client, app):
        data = _form()
        data["bill_top_sheet_image"] = (io.BytesIO(b"\x89PNG-data"), "sheet.png", "image/png")
        response = admin_client.post("/projects/new", data=data, content_type="multipart/form-data")
        assert response.status_code == 302

        with app.app_context():
            project_id = db.session.execute(select(Project.id)).scalar_one()

        download = admin_client.get(f"/projects/{project_id}/attachments/bill_top_sheet_image")
        assert download.status_code == 200
        assert download.data == b"\x89PNG-data"
        assert download.mimetype == "image/png"
        assert admin_client.get(f"/projects/{project_id}/attachments/budget_copy_attachment").status_code == 404

    def test_delete(self, admin_client, app, make_input):
        record = _create(app, make_input)
        assert admin_client.post(f"/projects/{record.id}/delete").status_code == 302
        with app.app_context():
            assert db.session.get(Project, record.id) is None


class TestReadEndpoints:
    def test_dashboard_totals(self, viewer_client, app, make_input):
        _create(app, make_input)
        _create(app, make_input, advance_amount=0, expense_amount=5000)

        page = viewer_client.get("/projects/").data
        assert b'id="total-balance">BDT 20,000<' in page
        assert b'id="total-budget">BDT 200,000<' in page

    def test_audit_unknown_project(self, viewer_client):
        assert viewer_client.get("/projects/missing/audit").status_code == 404

    def test_export_csv(self, viewer_client, app, make_input):
        _create(app, make_input, name='Q4, "Phase 2"', end_date=date(2020, 1, 31), start_date=date(2020, 1, 1))

        response = viewer_client.get("/projects/completed/export.csv")
        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert response.data.startswith(b"\xef\xbb\xbf")
        disposition = response.headers["Content-Disposition"]
        assert "Akij_Ledger_Export_completed_" in disposition

        rows = list(csv.reader(io.StringIO(response.data.decode("utf-8-sig"))))
        assert rows[1][1] == 'Q4, "Phase 2"'
        assert rows[1][2] == "1 Jan 2020"
        assert rows[1][8] == "N/A"

    def test_export_unknown_mode(self, viewer_client):
        assert viewer_client.get("/projects/everything/export.csv").status_code == 404

    def test_api_projects(self, viewer_client, app, make_input):
        _create(app, make_input)
        payload = viewer_client.get("/projects/api/projects").get_json()

        assert len(payload) == 1
        assert payload[0]["balanceAmount"] == 25000
        assert payload[0]["startDate"] == "2024-01-01"
        assert payload[0]["billTopSheetImage"] is None


class TestStorageOutage:
    """Reads that fail at the gateway are flashed, never a 500."""

    @pytest.fixture()
    def outage(self, monkeypatch):
        def fail_list(self):
            raise GatewayUnavailable("Failed to fetch projects.")

        def fail_get(self, project_id):
            raise GatewayUnavailable("Failed to fetch project.")

        monkeypatch.setattr(ProjectGateway, "list_projects", fail_list)
        monkeypatch.setattr(ProjectGateway, "get_project", fail_get)

    def test_audit_report(self, viewer_client, app, make_input, outage):
        record = _create(app, make_input)

        response = viewer_client.get(f"/projects/{record.id}/audit")
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/projects/")

        page = viewer_client.get("/projects/")
        assert page.status_code == 200
        assert b"Failed to fetch project." in page.data

    def test_attachment_download(self, viewer_client, app, make_input, outage):
        record = _create(app, make_input)

        response = viewer_client.get(f"/projects/{record.id}/attachments/bill_top_sheet_image")
        assert response.status_code == 302

    def test_edit_form(self, admin_client, app, make_input, outage):
        record = _create(app, make_input)

        response = admin_client.get(f"/projects/{record.id}/edit")
        assert response.status_code == 302
        assert b"Failed to fetch project." in admin_client.get("/projects/").data


class TestCli:
    def test_create_user(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["create-user", "erin", "--role", "ADMIN", "--password", "pw"])

        assert result.exit_code == 0, result.output
        with app.app_context():
            user = db.session.execute(select(User).filter_by(username="erin")).scalar_one()
            assert user.is_admin

        again = runner.invoke(args=["create-user", "erin", "--password", "pw"])
        assert again.exit_code != 0
        assert "already exists" in again.output

    def test_export_projects(self, app, make_input, tmp_path):
        _create(app, make_input)
        target = tmp_path / "out.csv"

        result = app.test_cli_runner().invoke(
            args=["export-projects", "completed", "--as-of", "2024-06-01", "--output", str(target)]
        )

        assert result.exit_code == 0, result.output
        assert "1 projects written" in result.output
        assert target.read_bytes().startswith(b"\xef\xbb\xbf")

    def test_seed_demo_is_idempotent(self, app):
        runner = app.test_cli_runner()
        runner.invoke(args=["seed-demo"])
        result = runner.invoke(args=["seed-demo"])

        assert "(0 new)" in result.output
        with app.app_context():
            assert len(db.session.execute(select(Project)).all()) == 3
