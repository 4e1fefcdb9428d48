# users_api.py
from flask import Blueprint, jsonify, abort
from flask_login import current_user

from models import db, User, RoutineTask, RoutineTaskDailyStatus, ROLES, USER_TYPES, TEAM_MANAGER_TYPES
from forms import json_form, UserCreateForm
from access import role_required, json_body, to_int, to_bool, clean_text, form_error, ADMIN, MANAGERS, EVERYONE
from timeutil import today_local
from logger import get_logger

logger = get_logger(__name__)

users_bp = Blueprint("users_api", __name__)


def _resolve_supervisor(raw, user_id=None):
    if raw in (None, ""):
        return None
    sup_id = to_int(raw)
    if sup_id is None or (user_id and sup_id == user_id):
        abort(400, description="Invalid immediate supervisor")
    if db.session.get(User, sup_id) is None:
        abort(400, description="Immediate supervisor not found")
    return sup_id


def _active_admin_count():
    return User.query.filter_by(role="admin", is_active=True).count()


# ---- Admin

@users_bp.get("/api/admin/users")
@role_required(*ADMIN)
def list_users():
    users = User.query.order_by(User.role.asc(), User.name.asc()).all()
    return jsonify({"users": [u.to_dict() for u in users]})


@users_bp.post("/api/admin/users")
@role_required(*ADMIN)
def create_user():
    data = json_body()
    form = json_form(UserCreateForm, data)
    if not form.validate():
        abort(400, description=form_error(form))

    user = User(
        name=form.name.data.strip(),
        email=form.email.data.strip().lower(),
        role=form.role.data,
        type=form.type.data,
        team_manager_type=(form.team_manager_type.data or None) if form.role.data == "team_manager" else None,
        whatsapp_number=(form.whatsapp_number.data or "").strip() or None,
        whatsapp_enabled=to_bool(data.get("whatsappEnabled"), default=True),
        immediate_supervisor_id=_resolve_supervisor(form.immediate_supervisor.data),
        is_teacher=bool(form.is_teacher.data),
    )
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()
    logger.info("User %s created by %s", user.email, current_user.id)
    return jsonify({"user": user.to_dict()}), 201


@users_bp.patch("/api/admin/users/<int:user_id>")
@role_required(*ADMIN)
def update_user(user_id):
    user = db.get_or_404(User, user_id, description="User not found")
    data = json_body()

    if "name" in data:
        name = clean_text(data.get("name"), 120)
        if not name:
            abort(400, description="Name is required")
        user.name = name
    if "role" in data:
        if data["role"] not in ROLES:
            abort(400, description="Invalid role")
        if user.role == "admin" and data["role"] != "admin" and user.is_active and _active_admin_count() <= 1:
            abort(400, description="Cannot remove admin rights from the last admin account")
        user.role = data["role"]
    if "type" in data:
        if data["type"] not in USER_TYPES:
            abort(400, description="Invalid user type")
        user.type = data["type"]
    if "teamManagerType" in data:
        tm_type = data.get("teamManagerType") or None
        if tm_type and tm_type not in TEAM_MANAGER_TYPES:
            abort(400, description="Invalid team manager type")
        user.team_manager_type = tm_type
    if user.role == "team_manager" and not user.team_manager_type:
        abort(400, description="Team manager type is required for team managers")
    if user.role != "team_manager":
        user.team_manager_type = None
    if "whatsappNumber" in data:
        user.whatsapp_number = clean_text(data.get("whatsappNumber"), 32) or None
    if "whatsappEnabled" in data:
        user.whatsapp_enabled = to_bool(data.get("whatsappEnabled"))
    if "immediateSupervisor" in data:
        user.immediate_supervisor_id = _resolve_supervisor(data.get("immediateSupervisor"), user.id)
    if "isTeacher" in data:
        user.is_teacher = to_bool(data.get("isTeacher"))
    if "isActive" in data:
        next_active = to_bool(data.get("isActive"))
        if not next_active and user.id == current_user.id:
            abort(400, description="You cannot disable your own account")
        if not next_active and user.role == "admin" and user.is_active and _active_admin_count() <= 1:
            abort(400, description="Cannot disable the last active admin account")
        user.is_active = next_active
    if data.get("password"):
        if len(str(data["password"])) < 6:
            abort(400, description="Password must be at least 6 characters")
        user.set_password(str(data["password"]))

    db.session.commit()
    return jsonify({"user": user.to_dict()})


@users_bp.delete("/api/admin/users/<int:user_id>")
@role_required(*ADMIN)
def deactivate_user(user_id):
    user = db.get_or_404(User, user_id, description="User not found")
    if user.id == current_user.id:
        abort(400, description="You cannot disable your own account")
    if user.role == "admin" and user.is_active and _active_admin_count() <= 1:
        abort(400, description="Cannot disable the last active admin account")
    user.is_active = False
    db.session.commit()
    logger.info("User %s deactivated by %s", user.id, current_user.id)
    return jsonify({"ok": True, "user": user.to_dict()})


@users_bp.post("/api/admin/users/<int:user_id>/routine-tasks")
@role_required(*ADMIN)
def add_routine_tasks_for_user(user_id):
    """Bulk add routine tasks; each gets today's not_started row."""
    user = db.get_or_404(User, user_id, description="User not found")
    data = json_body()
    raw = data.get("tasks") or []
    if not isinstance(raw, list):
        abort(400, description="tasks must be an array")
    descriptions = [clean_text(t.get("description") if isinstance(t, dict) else t, 2000) for t in raw]
    descriptions = [d for d in descriptions if d]
    if not descriptions:
        abort(400, description="At least one task description is required")

    today = today_local()
    created = []
    for desc in descriptions:
        task = RoutineTask(description=desc, member_id=user.id)
        task.daily_statuses.append(RoutineTaskDailyStatus(date=today, status="not_started"))
        db.session.add(task)
        created.append(task)
    db.session.commit()
    return jsonify({"created": [{"id": t.id, "description": t.description} for t in created]}), 201


# ---- Pickers

@users_bp.get("/api/managers/users")
@role_required(*MANAGERS)
def list_active_users():
    users = User.query.filter_by(is_active=True).order_by(User.name.asc()).all()
    return jsonify({"users": [
        {"id": u.id, "name": u.name, "role": u.role, "type": u.type,
         "teamManagerType": u.team_manager_type, "isTeacher": bool(u.is_teacher)}
        for u in users
    ]})


@users_bp.get("/api/member/supervisors")
@role_required(*EVERYONE)
def list_supervisors():
    users = (User.query
             .filter(User.role.in_(MANAGERS), User.is_active.is_(True))
             .order_by(User.name.asc())
             .all())
    return jsonify({"supervisors": [
        {"id": u.id, "name": u.name, "role": u.role, "teamManagerType": u.team_manager_type}
        for u in users
    ]})


# ---- Own profile

@users_bp.get("/api/member/profile")
@role_required(*EVERYONE)
def get_profile():
    user = current_user
    payload = user.to_dict()
    payload["immediateSupervisorName"] = user.supervisor.name if user.supervisor else None
    return jsonify({"user": payload})


@users_bp.patch("/api/member/profile")
@role_required(*EVERYONE)
def update_profile():
    data = json_body()
    user = current_user
    if "name" in data:
        name = clean_text(data.get("name"), 120)
        if not name:
            abort(400, description="Name is required")
        user.name = name
    if "whatsappNumber" in data:
        user.whatsapp_number = clean_text(data.get("whatsappNumber"), 32) or None
    if "whatsappEnabled" in data:
        user.whatsapp_enabled = to_bool(data.get("whatsappEnabled"))
    if data.get("newPassword"):
        if not user.check_password(str(data.get("currentPassword") or "")):
            abort(400, description="Current password is incorrect")
        if len(str(data["newPassword"])) < 6:
            abort(400, description="Password must be at least 6 characters")
        user.set_password(str(data["newPassword"]))
    db.session.commit()
    return jsonify({"user": user.to_dict()})
