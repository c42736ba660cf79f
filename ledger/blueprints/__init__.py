"""
Shared glue between the blueprints and the view controller.

Each request gets its own LedgerController bound to the signed-in user;
notifications it raises are handed to Flask's flash().
"""

from __future__ import annotations

from flask import current_app, flash
from flask_login import current_user

from ..controller import LedgerController
from ..extensions import db
from ..gateway import ProjectGateway
from ..identity import IdentityGateway, Principal


def build_controller(resume: bool = True) -> LedgerController:
    """Controller for the current request; resume=True loads the session and ledger."""
    controller = LedgerController(
        projects_gateway=ProjectGateway(db.session, actor=Principal.from_user(current_user)),
        identity=IdentityGateway(db.session),
        org_name=current_app.config["LEDGER_ORG_NAME"],
        currency=current_app.config["LEDGER_CURRENCY"],
        missing_date=current_app.config["LEDGER_MISSING_DATE"],
    )
    if resume:
        controller.resume()
    return controller


def flash_notifications(controller: LedgerController) -> None:
    for note in controller.drain_notifications():
        flash(note.message, note.category)
