"""
Tests for the project persistence gateway.

Covers:
- balance is derived on create and update, never taken from input
- update is a full replace and unknown ids leave the ledger untouched
- delete is permanent
- every mutation writes an audit row in the same transaction
- storage failures surface as GatewayUnavailable after a rollback
"""

import json
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from ledger.errors import GatewayUnavailable, NotFound, ValidationFailure
from ledger.extensions import db
from ledger.gateway import ProjectGateway
from ledger.identity import Principal
from ledger.models import AuditLog, Project, Role
from ledger.records import Attachment, ProjectInput

ADMIN = Principal("admin", Role.ADMIN)


@pytest.fixture()
def gateway(app_ctx):
    return ProjectGateway(db.session, actor=ADMIN)


def _audit_rows():
    return db.session.execute(select(AuditLog).order_by(AuditLog.id)).scalars().all()


class TestCreate:
    def test_balance_is_derived(self, gateway, make_input):
        record = gateway.create_project(make_input())

        assert record.balance_amount == Decimal("25000")
        assert record.id
        assert gateway.get_project(record.id).balance_amount == Decimal("25000")

    def test_client_supplied_balance_is_ignored(self, gateway):
        data = ProjectInput.from_dict(
            {
                "name": "Wire",
                "startDate": "2024-01-01",
                "endDate": "2024-01-31",
                "budgetAmount": 100000,
                "advanceAmount": 40000,
                "expenseAmount": 15000,
                "balanceAmount": 999999,
            }
        )
        record = gateway.create_project(data)
        assert record.balance_amount == Decimal("25000")

    def test_negative_balance_is_kept(self, gateway, make_input):
        record = gateway.create_project(make_input(advance_amount=Decimal("10"), expense_amount=Decimal("25")))
        assert record.balance_amount == Decimal("-15")

    def test_sub_cent_amounts_keep_balance_consistent_after_reload(self, gateway, make_input):
        gateway.create_project(
            make_input(
                budget_amount=Decimal("10.005"),
                advance_amount=Decimal("1.006"),
                expense_amount=Decimal("0.004"),
            )
        )
        db.session.expire_all()

        stored = gateway.list_projects()[0]
        assert stored.advance_amount == Decimal("1.01")
        assert stored.expense_amount == Decimal("0.00")
        assert stored.budget_amount == Decimal("10.01")
        assert stored.balance_amount == stored.advance_amount - stored.expense_amount

    def test_sub_cent_update_keeps_balance_consistent(self, gateway, make_input):
        record = gateway.create_project(make_input())
        gateway.update_project(
            record.id,
            make_input(advance_amount=Decimal("100.125"), expense_amount=Decimal("0.335")),
        )
        db.session.expire_all()

        stored = gateway.get_project(record.id)
        assert stored.balance_amount == stored.advance_amount - stored.expense_amount
        assert stored.balance_amount == Decimal("99.79")

    def test_missing_fields_rejected_before_write(self, gateway, make_input):
        with pytest.raises(ValidationFailure) as excinfo:
            gateway.create_project(make_input(name="  ", end_date=None))

        assert excinfo.value.fields == ["name", "end_date"]
        assert gateway.list_projects() == []
        assert _audit_rows() == []

    def test_attachments_are_stored(self, gateway, make_input):
        sheet = Attachment("sheet.png", "image/png", b"\x89PNG")
        record = gateway.create_project(make_input(bill_top_sheet_image=sheet))

        stored = gateway.get_project(record.id)
        assert stored.bill_top_sheet_image == sheet
        assert stored.budget_copy_attachment is None


class TestUpdate:
    def test_balance_recomputed(self, gateway, make_input):
        record = gateway.create_project(make_input())
        updated = gateway.update_project(record.id, make_input(expense_amount=Decimal("50000")))

        assert updated.id == record.id
        assert updated.balance_amount == Decimal("-10000")

    def test_full_replace_clears_optional_fields(self, gateway, make_input):
        record = gateway.create_project(make_input(bill_submission_date=date(2024, 2, 1)))
        updated = gateway.update_project(record.id, make_input(name="Renamed"))

        assert updated.name == "Renamed"
        assert updated.bill_submission_date is None

    def test_unknown_id_leaves_ledger_unchanged(self, gateway, make_input):
        record = gateway.create_project(make_input())
        before = gateway.list_projects()

        with pytest.raises(NotFound):
            gateway.update_project("does-not-exist", make_input(name="Other"))

        assert gateway.list_projects() == before
        assert gateway.get_project(record.id).name == "Site A"


class TestDeleteAndList:
    def test_delete_is_permanent(self, gateway, make_input):
        record = gateway.create_project(make_input())
        gateway.delete_project(record.id)

        assert gateway.list_projects() == []
        with pytest.raises(NotFound):
            gateway.get_project(record.id)

    def test_delete_unknown_id(self, gateway):
        with pytest.raises(NotFound):
            gateway.delete_project("missing")

    def test_list_newest_first(self, gateway, make_input):
        first = gateway.create_project(make_input(name="First"))
        second = gateway.create_project(make_input(name="Second"))
        # Creation timestamps can collide at clock resolution; pin them.
        db.session.get(Project, first.id).created_at = db.session.get(Project, second.id).created_at.replace(year=2020)
        db.session.commit()

        assert [p.name for p in gateway.list_projects()] == ["Second", "First"]


class TestAudit:
    def test_each_mutation_is_logged(self, gateway, make_input):
        record = gateway.create_project(make_input(bill_top_sheet_image=Attachment("a.pdf", "application/pdf", b"%PDF")))
        gateway.update_project(record.id, make_input(name="Renamed"))
        gateway.delete_project(record.id)

        rows = _audit_rows()
        assert [r.action for r in rows] == ["CREATE", "UPDATE", "DELETE"]
        assert {r.entity_id for r in rows} == {record.id}
        assert {r.username_snapshot for r in rows} == {"admin"}

        created = json.loads(rows[0].after_data)
        assert Decimal(created["balance_amount"]) == Decimal("25000")
        assert created["bill_top_sheet_image"] == "a.pdf"
        assert json.loads(rows[1].before_data)["name"] == "Site A"
        assert rows[2].after_data is None

    def test_recent_activity(self, gateway, make_input):
        record = gateway.create_project(make_input(name="Tracked"))
        gateway.delete_project(record.id)

        activity = gateway.recent_activity(limit=5)
        assert [a.action for a in activity] == ["DELETE", "CREATE"]
        assert activity[0].project_name == "Tracked"
        assert activity[0].username == "admin"


class TestStorageFailure:
    def test_commit_failure_becomes_gateway_unavailable(self, gateway, make_input, monkeypatch):
        def broken_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db.session, "commit", broken_commit)

        with pytest.raises(GatewayUnavailable) as excinfo:
            gateway.create_project(make_input())

        assert excinfo.value.message == "Failed to create project."
        monkeypatch.undo()
        assert gateway.list_projects() == []
