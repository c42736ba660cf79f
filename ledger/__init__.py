"""
ledger/__init__.py

Flask application factory for the Project Ledger.

Requirements:
- UI is never trusted; server-side access control is enforced.
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev.
- Money and date formatting come from ledger.formatting only, so pages,
  exports and audit reports show the same numbers.

Navigation:
- Sidebar items are filtered for visibility (admin-only items hidden from
  viewers), BUT all permissions are enforced server-side.
"""

from __future__ import annotations

from datetime import date

import click
from flask import Flask, redirect, render_template, url_for
from flask_login import current_user

from .extensions import csrf, db, login_manager, migrate
from .formatting import format_currency, format_date
from .logging_config import configure_logging
from .models import Role, User
from .security import can_edit, viewer_readonly_guard


# -------------------------------------------------------------------
# NAVIGATION STRUCTURE (UI visibility only; security enforced in routes)
# -------------------------------------------------------------------

NAV_ITEMS = [
    {"label": "Dashboard", "endpoint": "projects.dashboard", "admin_only": False},
    {"label": "New Project", "endpoint": "projects.create_project", "admin_only": True},
    {"label": "Upcoming & Ongoing", "endpoint": "projects.upcoming_projects", "admin_only": False},
    {"label": "Completed", "endpoint": "projects.completed_projects", "admin_only": False},
    {"label": "History", "endpoint": "projects.history", "admin_only": False},
]


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.login_message_category = "info"

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login; a malformed id means no session."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    # ----------------------------------------------------------------------
    # GLOBAL SECURITY NET: Viewer read-only guard (server-side).
    # ----------------------------------------------------------------------
    @app.before_request
    def _viewer_guard_hook():
        return viewer_readonly_guard()

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.projects import projects_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(projects_bp)

    # ----------------------------------------------------------------------
    # Template helpers
    # ----------------------------------------------------------------------
    currency = app.config.get("LEDGER_CURRENCY", "BDT")
    missing = app.config.get("LEDGER_MISSING_DATE", "N/A")

    app.jinja_env.filters["currency"] = lambda value: format_currency(value, currency)
    app.jinja_env.filters["ledger_date"] = lambda value, placeholder=missing: format_date(value, placeholder)

    @app.context_processor
    def inject_globals():
        """Navigation filtered by role (visibility only)."""
        nav_items = []
        if current_user.is_authenticated:
            nav_items = [
                item for item in NAV_ITEMS
                if not item["admin_only"] or can_edit(current_user)
            ]
        return {"config": app.config, "nav_items": nav_items}

    @app.errorhandler(403)
    def forbidden(_error):
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found(_error):
        return render_template("errors/404.html"), 404

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("create-user")
    @click.argument("username")
    @click.option("--role", type=click.Choice([r.value for r in Role]), default=Role.VIEWER.value, show_default=True)
    @click.password_option()
    def create_user_command(username, role, password):
        """Register a user (no self-service needed)."""
        from .errors import LedgerError
        from .identity import IdentityGateway, RegistrationRequest

        try:
            IdentityGateway().register(RegistrationRequest(username=username, password=password, role=Role(role)))
        except LedgerError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"User {username} created with role {role}.")

    @app.cli.command("export-projects")
    @click.argument("mode", type=click.Choice(["upcoming", "completed"]))
    @click.option("--as-of", "as_of", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
    @click.option("--output", type=click.Path(dir_okay=False, writable=True), default=None)
    def export_projects_command(mode, as_of, output):
        """Write the CSV export for one bucket."""
        from .formatting import export_csv, export_filename
        from .gateway import ProjectGateway
        from .reporting import partition

        day = as_of.date() if as_of else date.today()
        projects = partition(ProjectGateway().list_projects(), mode, day)
        path = output or export_filename(app.config["LEDGER_ORG_NAME"], mode, day)
        with open(path, "wb") as fh:
            fh.write(export_csv(projects, currency=currency, missing=missing))
        click.echo(f"{len(projects)} projects written to {path}")

    @app.cli.command("seed-demo")
    def seed_demo_command():
        """Insert sample projects (idempotent)."""
        from .seed import seed_demo_projects

        created = seed_demo_projects()
        click.echo(f"Demo projects seeded ({created} new).")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Home: dashboard or login."""
        if current_user.is_authenticated:
            return redirect(url_for("projects.dashboard"))
        return redirect(url_for("auth.login"))

    return app
