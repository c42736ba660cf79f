"""
Authentication Routes

Provides:
- /auth/login
- /auth/logout
- /auth/register

Rules:
- Credentials validated via password hash (werkzeug).
- Unknown user and wrong password give the same message.
- Registration never signs the new user in.
"""

from flask import (
    Blueprint,
    render_template,
    redirect,
    url_for,
    request,
)
from flask_login import current_user

from .. import build_controller, flash_notifications
from ...errors import LedgerError
from ...identity import RegistrationRequest
from ...models import Role
from ...utils import safe_next_url


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    """Authenticate a user and open a 24h session."""

    if current_user.is_authenticated:
        return redirect(url_for("projects.dashboard"))

    if request.method == "POST":
        controller = build_controller(resume=False)
        ok = controller.login(
            request.form.get("username", ""),
            request.form.get("password", ""),
        )
        flash_notifications(controller)

        if not ok:
            return render_template("auth/login.html", username=request.form.get("username", "")), 401

        next_url = safe_next_url(request.args.get("next"))
        return redirect(next_url or url_for("projects.dashboard"))

    return render_template("auth/login.html", username="")


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout", methods=["GET", "POST"])
def logout():
    """Log out the current user (no-op without a session)."""
    controller = build_controller(resume=False)
    controller.logout()
    flash_notifications(controller)
    return redirect(url_for("auth.login"))


# ============================================================
# REGISTER
# ============================================================

@auth_bp.route("/register", methods=["GET", "POST"])
def register():
    """Create an account with a chosen role. The user signs in afterwards."""

    if request.method == "POST":
        controller = build_controller(resume=False)
        try:
            registration = RegistrationRequest.from_form(request.form)
        except LedgerError as exc:
            controller.notify("danger", exc.message)
            registration = None

        if registration is not None and controller.register(registration):
            flash_notifications(controller)
            return redirect(url_for("auth.login"))

        flash_notifications(controller)
        return render_template(
            "auth/register.html",
            roles=list(Role),
            username=request.form.get("username", ""),
            selected_role=request.form.get("role", Role.VIEWER.value),
        ), 400

    return render_template("auth/register.html", roles=list(Role), username="", selected_role=Role.VIEWER.value)
