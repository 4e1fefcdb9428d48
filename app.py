# app.py
from flask import Flask, render_template, redirect, url_for, request, flash, jsonify, abort
from flask_migrate import Migrate
from flask_login import (
    LoginManager, login_user, login_required, current_user, logout_user
)
from werkzeug.exceptions import HTTPException

from config import Config
from models import db, User
from forms import LoginForm, UserCreateForm, UserEditForm, ResetPasswordForm
from access import json_body, role_required, EVERYONE
from logger import configure_logging, get_logger
import whatsapp
import presence_api
from users_api import users_bp
from tasks_api import tasks_bp
from routine_api import routine_bp
from day_api import day_bp
from messages_api import messages_bp
from tickets_api import tickets_bp
from enrollment_api import enrollment_bp
from resources_api import resources_bp
from announcements_api import announcements_bp
from leave_api import leave_bp
from reports_api import reports_bp, overview_counts
from presence_api import presence_bp

logger = get_logger(__name__)

BLUEPRINTS = (
    users_bp, tasks_bp, routine_bp, day_bp, messages_bp, tickets_bp,
    enrollment_bp, resources_bp, announcements_bp, leave_bp, reports_bp, presence_bp,
)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # ---- DB & Login setup
    db.init_app(app)
    Migrate(app, db)
    login_manager = LoginManager(app)
    login_manager.login_view = "login"

    @login_manager.user_loader
    def load_user(user_id):
        user = db.session.get(User, int(user_id))
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        if request.path.startswith("/api/"):
            return jsonify({"error": "Unauthorized"}), 401
        return redirect(url_for("login", next=request.path))

    whatsapp.init_app(app)
    presence_api.init_app(app)
    for bp in BLUEPRINTS:
        app.register_blueprint(bp)

    # ---- Errors

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": e.description}), e.code
        return e

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        if request.path.startswith("/api/"):
            return jsonify({"error": "Internal server error"}), 500
        return render_template("error.html", message="Something went wrong."), 500

    # ---- Helpers

    def is_admin_user():
        return current_user.is_authenticated and current_user.role == "admin"

    def supervisor_choices():
        return (User.query
                .filter(User.role.in_(("admin", "team_manager")), User.is_active.is_(True))
                .order_by(User.name.asc())
                .all())

    # ---- Health

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    # ---- Auth (pages)

    @app.route("/")
    def index():
        if current_user.is_authenticated:
            return redirect(url_for("dashboard"))
        return redirect(url_for("login"))

    @app.route("/login", methods=["GET", "POST"])
    def login():
        if current_user.is_authenticated:
            return redirect(url_for("dashboard"))
        form = LoginForm()
        if form.validate_on_submit():
            user = User.query.filter_by(email=form.email.data.strip().lower()).first()
            if user and user.check_password(form.password.data):
                if not user.is_active:
                    flash("This account is disabled.", "error")
                    return render_template("login.html", form=form)
                login_user(user)
                return redirect(url_for("dashboard"))
            flash("Invalid email or password", "error")
        return render_template("login.html", form=form)

    @app.route("/logout")
    @login_required
    def logout():
        logout_user()
        return redirect(url_for("index"))

    @app.route("/dashboard")
    @login_required
    def dashboard():
        return render_template("dashboard.html", counts=overview_counts(current_user))

    # ---- Auth (JSON)

    @app.post("/api/auth/login")
    def api_login():
        data = json_body()
        email = str(data.get("email") or "").strip().lower()
        password = str(data.get("password") or "")
        if not email or not password:
            abort(400, description="Email and password are required")
        user = User.query.filter_by(email=email).first()
        if user is None or not user.check_password(password):
            abort(401, description="Invalid email or password")
        if not user.is_active:
            abort(403, description="This account is disabled")
        login_user(user)
        logger.info("User %s signed in", user.id)
        return jsonify({"user": user.to_dict()})

    @app.post("/api/auth/logout")
    @role_required(*EVERYONE)
    def api_logout():
        logout_user()
        return jsonify({"ok": True})

    @app.get("/api/auth/me")
    @role_required(*EVERYONE)
    def api_me():
        return jsonify({"user": current_user.to_dict()})

    # ---- Admin: users (pages)

    @app.route("/admin/users")
    @login_required
    def admin_users():
        if not is_admin_user():
            flash("Admins only.", "error")
            return redirect(url_for("dashboard"))

        users = User.query.order_by(User.role.asc(), User.name.asc()).all()
        return render_template("admin_users.html", users=users)

    @app.route("/admin/users/new", methods=["GET", "POST"])
    @login_required
    def admin_user_new():
        if not is_admin_user():
            flash("Admins only.", "error")
            return redirect(url_for("dashboard"))

        form = UserCreateForm()
        if request.method == "GET":
            form.whatsapp_enabled.data = True

        if form.validate_on_submit():
            user = User(
                name=form.name.data.strip(),
                email=form.email.data.strip().lower(),
                role=form.role.data,
                type=form.type.data,
                team_manager_type=(form.team_manager_type.data or None) if form.role.data == "team_manager" else None,
                whatsapp_number=(form.whatsapp_number.data or "").strip() or None,
                whatsapp_enabled=bool(form.whatsapp_enabled.data),
                immediate_supervisor_id=form.immediate_supervisor.data or None,
                is_teacher=bool(form.is_teacher.data),
            )
            user.set_password(form.password.data)
            db.session.add(user)
            db.session.commit()
            flash("User created.", "success")
            return redirect(url_for("admin_users"))

        return render_template("admin_user_form.html", form=form, title="Create user", user=None,
                               supervisors=supervisor_choices())

    @app.route("/admin/users/<int:user_id>/edit", methods=["GET", "POST"])
    @login_required
    def admin_user_edit(user_id):
        if not is_admin_user():
            flash("Admins only.", "error")
            return redirect(url_for("dashboard"))

        user = db.get_or_404(User, user_id)
        form = UserEditForm(user_id=user.id)

        if request.method == "GET":
            form.name.data = user.name
            form.email.data = user.email
            form.role.data = user.role
            form.type.data = user.type
            form.team_manager_type.data = user.team_manager_type or ""
            form.whatsapp_number.data = user.whatsapp_number
            form.whatsapp_enabled.data = bool(user.whatsapp_enabled)
            form.immediate_supervisor.data = user.immediate_supervisor_id
            form.is_teacher.data = bool(user.is_teacher)
            form.is_active.data = bool(user.is_active)

        if form.validate_on_submit():
            becoming_disabled = not bool(form.is_active.data)
            if user.id == current_user.id and becoming_disabled:
                flash("You cannot disable your own account.", "error")
                return redirect(url_for("admin_user_edit", user_id=user.id))

            admin_count = User.query.filter_by(role="admin", is_active=True).count()
            losing_admin = user.role == "admin" and (form.role.data != "admin" or becoming_disabled)
            if losing_admin and user.is_active and admin_count <= 1:
                flash("Cannot remove the last active admin account.", "error")
                return redirect(url_for("admin_user_edit", user_id=user.id))

            user.name = form.name.data.strip()
            user.email = form.email.data.strip().lower()
            user.role = form.role.data
            user.type = form.type.data
            user.team_manager_type = (form.team_manager_type.data or None) if form.role.data == "team_manager" else None
            user.whatsapp_number = (form.whatsapp_number.data or "").strip() or None
            user.whatsapp_enabled = bool(form.whatsapp_enabled.data)
            user.immediate_supervisor_id = form.immediate_supervisor.data or None
            user.is_teacher = bool(form.is_teacher.data)
            user.is_active = bool(form.is_active.data)

            db.session.commit()
            flash("User updated.", "success")
            return redirect(url_for("admin_users"))

        return render_template("admin_user_form.html", form=form, title=f"Edit user: {user.name}", user=user,
                               supervisors=supervisor_choices())

    @app.route("/admin/users/<int:user_id>/reset_password", methods=["GET", "POST"])
    @login_required
    def admin_user_reset_password(user_id):
        if not is_admin_user():
            flash("Admins only.", "error")
            return redirect(url_for("dashboard"))

        user = db.get_or_404(User, user_id)
        form = ResetPasswordForm()
        if form.validate_on_submit():
            user.set_password(form.password.data)
            db.session.commit()
            flash("Password reset.", "success")
            return redirect(url_for("admin_users"))

        return render_template("admin_reset_password.html", form=form, user=user)

    @app.post("/admin/users/<int:user_id>/toggle_active")
    @login_required
    def admin_user_toggle_active(user_id):
        if not is_admin_user():
            flash("Admins only.", "error")
            return redirect(url_for("dashboard"))

        user = db.get_or_404(User, user_id)
        if user.id == current_user.id and user.is_active:
            flash("You cannot disable your own account.", "error")
            return redirect(url_for("admin_users"))

        next_active = not bool(user.is_active)
        if user.role == "admin" and not next_active:
            admin_active_count = User.query.filter_by(role="admin", is_active=True).count()
            if admin_active_count <= 1:
                flash("Cannot disable the last active admin account.", "error")
                return redirect(url_for("admin_users"))

        user.is_active = next_active
        db.session.commit()
        flash("User enabled." if next_active else "User disabled.", "success")
        return redirect(url_for("admin_users"))

    # ---- CLI

    @app.cli.command("seed")
    def seed_command():
        """Recreate the schema and load demo users."""
        from seed import seed_data
        seed_data()
        print("Seeded demo data.")

    # ---- Critical: return the Flask app object
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
