# tasks_api.py
from datetime import datetime

from flask import Blueprint, jsonify, abort
from flask_login import current_user
from sqlalchemy import or_

from models import db, User, AssignedTask, AssignedTaskStatus, Sprint, AssignedTaskLog, iso
from access import role_required, json_body, to_int, to_bool, clean_text, MANAGERS, EVERYONE
from notify import notify_user, send_chat, create_notifications, send_whatsapp
from timeutil import parse_iso_datetime
from workflow import (
    MEMBER_SETTABLE, STATUS_LABELS, derive_status, derive_task_status,
    can_transition, options_for,
)
from logger import get_logger

logger = get_logger(__name__)

tasks_bp = Blueprint("tasks_api", __name__)


def status_payload(st: AssignedTaskStatus):
    return {
        "statusId": st.id,
        "memberId": st.member_id,
        "memberName": st.member.name if st.member else None,
        "status": st.status,
        "comment": st.comment,
        "assignedDate": iso(st.assigned_date),
        "verifiedBy": st.verified_by_id,
        "verifiedAt": iso(st.verified_at),
        "sprints": [sp.to_dict() for sp in st.sprints],
    }


def task_payload(task: AssignedTask, include_logs=False):
    payload = {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "taskType": task.task_type,
        "createdBy": task.created_by_id,
        "createdByName": task.created_by.name if task.created_by else None,
        "deadline": iso(task.deadline),
        "resources": task.resources,
        "createdAt": iso(task.created_at),
        "status": derive_task_status(task),
        "assignees": [status_payload(st) for st in task.statuses],
    }
    if include_logs:
        payload["logs"] = [log.to_dict() for log in task.logs]
    return payload


def add_log(task_id, action, details=None, sprint_id=None):
    db.session.add(AssignedTaskLog(
        task_id=task_id, user_id=current_user.id, action=action,
        details=details, sprint_id=sprint_id,
    ))


def _manager_can_see(task: AssignedTask) -> bool:
    if current_user.role == "admin" or task.created_by_id == current_user.id:
        return True
    supervised = {u.id for u in User.query.filter_by(immediate_supervisor_id=current_user.id).all()}
    supervised.add(current_user.id)
    return any(st.member_id in supervised for st in task.statuses)


def _load_for_manager(task_id):
    task = db.get_or_404(AssignedTask, task_id, description="Task not found")
    if not _manager_can_see(task):
        abort(403, description="Not allowed to manage this task")
    return task


# ---- Managers

@tasks_bp.get("/api/managers/assigned-tasks")
@role_required(*MANAGERS)
def manager_list_tasks():
    q = AssignedTask.query.filter(AssignedTask.task_type == "assigned")
    if current_user.role != "admin":
        supervised_ids = [u.id for u in User.query.filter_by(immediate_supervisor_id=current_user.id).all()]
        member_ids = supervised_ids + [current_user.id]
        q = q.filter(or_(
            AssignedTask.created_by_id == current_user.id,
            AssignedTask.statuses.any(AssignedTaskStatus.member_id.in_(member_ids)),
        ))
    tasks = q.order_by(AssignedTask.created_at.desc()).all()
    return jsonify({"tasks": [task_payload(t) for t in tasks if t.statuses]})


@tasks_bp.post("/api/managers/assigned-tasks")
@role_required(*MANAGERS)
def manager_create_task():
    data = json_body()
    title = clean_text(data.get("title"), 255)
    if not title:
        abort(400, description="Title is required")

    raw_assignees = data.get("assignees") or []
    if not isinstance(raw_assignees, list) or not raw_assignees:
        abort(400, description="At least one assignee is required")
    assignee_ids = list(dict.fromkeys(to_int(a) for a in raw_assignees))
    if None in assignee_ids:
        abort(400, description="Invalid assignee id")
    assignees = User.query.filter(User.id.in_(assignee_ids)).all()
    if len(assignees) != len(assignee_ids):
        abort(400, description="One or more assignees do not exist")

    deadline = None
    if data.get("deadline"):
        deadline = parse_iso_datetime(data.get("deadline"))
        if deadline is None:
            abort(400, description="Invalid deadline")

    sprints = data.get("sprints") or []
    if not isinstance(sprints, list):
        abort(400, description="sprints must be an array")
    sprint_specs = []
    for sp in sprints:
        sp_title = clean_text(sp.get("title") if isinstance(sp, dict) else sp, 255)
        if not sp_title:
            abort(400, description="Sprint title is required")
        sprint_specs.append((sp_title, clean_text(sp.get("description"), 2000) if isinstance(sp, dict) else None))

    task = AssignedTask(
        title=title,
        description=clean_text(data.get("description"), 5000) or None,
        created_by_id=current_user.id,
        deadline=deadline,
        resources=clean_text(data.get("resources"), 5000) or None,
    )
    for user in assignees:
        st = AssignedTaskStatus(member_id=user.id, status="not_started")
        for sp_title, sp_desc in sprint_specs:
            st.sprints.append(Sprint(title=sp_title, description=sp_desc or None))
        task.statuses.append(st)
    db.session.add(task)
    db.session.flush()
    add_log(task.id, "created", f"Task created and assigned to {', '.join(u.name for u in assignees)}")

    if to_bool(data.get("notify"), default=True):
        for user in assignees:
            if user.id == current_user.id:
                continue
            notify_user(
                current_user, user,
                subject=f"New task: {task.title}",
                message=f"You have been assigned \"{task.title}\" by {current_user.name}.",
                type="task_assigned", entity_kind="assigned_task", entity_id=task.id,
                whatsapp=to_bool(data.get("notifyWhatsapp"), default=True),
            )

    db.session.commit()
    logger.info("Task %s created by %s for %s assignees", task.id, current_user.id, len(assignees))
    return jsonify({"task": task_payload(task)}), 201


@tasks_bp.get("/api/managers/assigned-tasks/<int:task_id>")
@role_required(*MANAGERS)
def manager_get_task(task_id):
    task = _load_for_manager(task_id)
    return jsonify({"task": task_payload(task, include_logs=True)})


@tasks_bp.patch("/api/managers/assigned-tasks/<int:task_id>")
@role_required(*MANAGERS)
def manager_update_task(task_id):
    task = _load_for_manager(task_id)
    data = json_body()
    changed = []
    if "title" in data:
        title = clean_text(data.get("title"), 255)
        if not title:
            abort(400, description="Title is required")
        task.title = title
        changed.append("title")
    if "description" in data:
        task.description = clean_text(data.get("description"), 5000) or None
        changed.append("description")
    if "deadline" in data:
        if data.get("deadline"):
            deadline = parse_iso_datetime(data.get("deadline"))
            if deadline is None:
                abort(400, description="Invalid deadline")
            task.deadline = deadline
        else:
            task.deadline = None
        changed.append("deadline")
    if "resources" in data:
        task.resources = clean_text(data.get("resources"), 5000) or None
        changed.append("resources")
    if changed:
        add_log(task.id, "updated", "Updated " + ", ".join(changed))
    db.session.commit()
    return jsonify({"task": task_payload(task)})


@tasks_bp.delete("/api/managers/assigned-tasks/<int:task_id>")
@role_required(*MANAGERS)
def manager_delete_task(task_id):
    task = _load_for_manager(task_id)
    db.session.delete(task)
    db.session.commit()
    logger.info("Task %s deleted by %s", task_id, current_user.id)
    return jsonify({"ok": True})


@tasks_bp.patch("/api/managers/assigned-tasks/<int:task_id>/verify")
@role_required(*MANAGERS)
def manager_verify_task(task_id):
    task = _load_for_manager(task_id)
    data = json_body()
    member_id = to_int(data.get("memberId"))
    target = data.get("status")
    comment = clean_text(data.get("comment"), 2000) or None

    st = next((s for s in task.statuses if s.member_id == member_id), None)
    if st is None:
        abort(404, description="Assignee not found on this task")
    if not can_transition(st.status, target, "observer"):
        abort(400, description=f"Cannot move from {st.status} to {target}")

    previous = st.status
    st.status = target
    if comment:
        st.comment = comment
    if target == "verified":
        st.verified_by_id = current_user.id
        st.verified_at = datetime.utcnow()
    add_log(task.id, "verify", f"{STATUS_LABELS.get(previous)} -> {STATUS_LABELS.get(target)}"
            + (f": {comment}" if comment else ""))

    notify_user(
        current_user, st.member,
        subject=f"Task update: {task.title}",
        message=f"{current_user.name} marked \"{task.title}\" as {STATUS_LABELS.get(target)}.",
        note=comment, type="task_verified", entity_kind="assigned_task", entity_id=task.id,
    )
    db.session.commit()
    return jsonify({"task": task_payload(task)})


# ---- Members

@tasks_bp.get("/api/member/assigned-tasks")
@role_required(*EVERYONE)
def member_list_tasks():
    rows = (AssignedTaskStatus.query
            .join(AssignedTask)
            .filter(AssignedTaskStatus.member_id == current_user.id)
            .order_by(AssignedTask.created_at.desc())
            .all())
    tasks = []
    for st in rows:
        task = st.task
        tasks.append({
            "id": task.id,
            "title": task.title,
            "description": task.description,
            "deadline": iso(task.deadline),
            "resources": task.resources,
            "createdBy": task.created_by_id,
            "createdByName": task.created_by.name if task.created_by else None,
            "status": st.status,
            "comment": st.comment,
            "overallStatus": derive_task_status(task),
            "options": options_for(st.status, "doer"),
            "sprints": [dict(sp.to_dict(), options=options_for(sp.status, "sprint")) for sp in st.sprints],
        })
    return jsonify({"tasks": tasks})


@tasks_bp.patch("/api/member/assigned-tasks/status")
@role_required(*EVERYONE)
def member_update_status():
    data = json_body()
    task_id = to_int(data.get("taskId"))
    action = data.get("action") or "update_task"
    status = data.get("status")
    comment = clean_text(data.get("comment"), 2000) or None

    if action not in ("update_task", "update_sprint"):
        abort(400, description="Invalid action")
    if status not in MEMBER_SETTABLE:
        abort(400, description="Invalid status")

    st = AssignedTaskStatus.query.filter_by(task_id=task_id, member_id=current_user.id).first()
    if st is None:
        abort(404, description="Task not assigned to you")
    task = st.task

    if action == "update_sprint":
        sprint_id = to_int(data.get("sprintId"))
        sprint = db.session.get(Sprint, sprint_id) if sprint_id else None
        if sprint is None or sprint.task_status_id != st.id:
            abort(404, description="Sprint not found")
        sprint.status = status
        st.status = derive_status([s.status for s in st.sprints])
        add_log(task.id, "update_sprint", f"Sprint \"{sprint.title}\" -> {STATUS_LABELS[status]}"
                + (f": {comment}" if comment else ""), sprint_id=sprint.id)
        summary = f"{current_user.name} updated sprint \"{sprint.title}\" of \"{task.title}\" to {STATUS_LABELS[status]}."
    else:
        st.status = status
        if comment:
            st.comment = comment
        add_log(task.id, "update_status", f"Status -> {STATUS_LABELS[status]}" + (f": {comment}" if comment else ""))
        summary = f"{current_user.name} updated \"{task.title}\" to {STATUS_LABELS[status]}."

    recipient_ids = {s.member_id for s in task.statuses if s.member_id != current_user.id}
    if task.created_by_id != current_user.id:
        recipient_ids.add(task.created_by_id)
    recipients = User.query.filter(User.id.in_(recipient_ids)).all() if recipient_ids else []

    create_notifications([u.id for u in recipients], f"Task update: {task.title}", body=summary,
                         type="task_status", entity_kind="assigned_task", entity_id=task.id)
    if to_bool(data.get("notifyAssignees")):
        for user in recipients:
            send_chat(current_user.id, user.id, summary, subject=f"Task update: {task.title}", note=comment)
    if to_bool(data.get("notifyWhatsapp")):
        for user in recipients:
            send_whatsapp(current_user, user, f"Task update: {task.title}", summary, note=comment)

    db.session.commit()
    return jsonify({
        "taskId": task.id,
        "status": st.status,
        "overallStatus": derive_task_status(task),
        "sprints": [sp.to_dict() for sp in st.sprints],
    })
