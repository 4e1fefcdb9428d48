# routine_api.py
import calendar
from datetime import date

from flask import Blueprint, jsonify, abort, request
from flask_login import current_user

from models import db, User, RoutineTask, RoutineTaskDailyStatus, RoutineTaskLog, iso
from access import role_required, json_body, to_int, clean_text, MANAGERS, EVERYONE
from timeutil import today_local, parse_iso_date
from workflow import ROUTINE_STATUSES
from logger import get_logger

logger = get_logger(__name__)

routine_bp = Blueprint("routine_api", __name__)

LOCKED_STATUSES = ("done", "verified")


def _date_arg(raw):
    if not raw:
        return today_local()
    parsed = parse_iso_date(raw)
    if parsed is None:
        abort(400, description="Invalid date")
    return parsed


def tasks_for_day(member_id, day):
    tasks = RoutineTask.query.filter_by(member_id=member_id).order_by(RoutineTask.id.asc()).all()
    statuses = {
        s.routine_task_id: s
        for s in RoutineTaskDailyStatus.query
        .filter(RoutineTaskDailyStatus.date == day,
                RoutineTaskDailyStatus.routine_task_id.in_([t.id for t in tasks] or [0]))
        .all()
    }
    rows = []
    for t in tasks:
        st = statuses.get(t.id)
        rows.append({
            "id": t.id,
            "description": t.description,
            "memberId": t.member_id,
            "date": day.isoformat(),
            "status": st.status if st else "not_started",
            "comment": st.comment if st else None,
            "isLocked": bool(st.is_locked) if st else False,
            "updatedAt": iso(st.updated_at) if st else None,
        })
    return rows


# ---- Members

@routine_bp.get("/api/member/routine-tasks")
@role_required(*EVERYONE)
def member_routine_tasks():
    day = _date_arg(request.args.get("date"))
    return jsonify({"date": day.isoformat(), "tasks": tasks_for_day(current_user.id, day)})


@routine_bp.patch("/api/member/routine-tasks/status")
@role_required(*EVERYONE)
def member_update_routine_status():
    data = json_body()
    task_id = to_int(data.get("taskId"))
    status = data.get("status")
    day = _date_arg(data.get("date"))
    if status not in ROUTINE_STATUSES or status == "verified":
        abort(400, description="Invalid status")

    task = db.session.get(RoutineTask, task_id) if task_id else None
    if task is None:
        abort(404, description="Routine task not found")
    if task.member_id != current_user.id:
        abort(403, description="Not your routine task")

    row = RoutineTaskDailyStatus.query.filter_by(routine_task_id=task.id, date=day).first()
    if row is None:
        row = RoutineTaskDailyStatus(routine_task_id=task.id, date=day, status="not_started")
        db.session.add(row)
    elif row.is_locked or row.status in LOCKED_STATUSES:
        abort(400, description="Task status is locked for this date")

    row.status = status
    if data.get("comment"):
        row.comment = clean_text(data.get("comment"), 2000)
    db.session.add(RoutineTaskLog(
        routine_task_id=task.id, user_id=current_user.id,
        action="status_update", details=f"{day.isoformat()}: {status}",
    ))
    db.session.commit()
    return jsonify({"taskId": task.id, "date": day.isoformat(), "status": row.status})


@routine_bp.get("/api/member/routine-tasks/monthly")
@role_required(*EVERYONE)
def member_routine_month():
    raw = request.args.get("month") or today_local().strftime("%Y-%m")
    try:
        year, month = (int(p) for p in raw.split("-", 1))
        first = date(year, month, 1)
    except ValueError:
        abort(400, description="Invalid month, expected YYYY-MM")
    last = date(year, month, calendar.monthrange(year, month)[1])

    tasks = RoutineTask.query.filter_by(member_id=current_user.id).order_by(RoutineTask.id.asc()).all()
    grid = {t.id: {} for t in tasks}
    rows = (RoutineTaskDailyStatus.query
            .filter(RoutineTaskDailyStatus.routine_task_id.in_(list(grid) or [0]),
                    RoutineTaskDailyStatus.date >= first,
                    RoutineTaskDailyStatus.date <= last)
            .all())
    for r in rows:
        grid[r.routine_task_id][r.date.isoformat()] = r.status
    return jsonify({
        "month": first.strftime("%Y-%m"),
        "tasks": [{"id": t.id, "description": t.description, "days": grid[t.id]} for t in tasks],
    })


# ---- Managers

@routine_bp.get("/api/managers/routine-tasks")
@role_required(*MANAGERS)
def manager_routine_tasks():
    member_id = to_int(request.args.get("memberId"))
    if member_id is None:
        abort(400, description="memberId is required")
    db.get_or_404(User, member_id, description="User not found")
    day = _date_arg(request.args.get("date"))
    return jsonify({"date": day.isoformat(), "tasks": tasks_for_day(member_id, day)})


@routine_bp.post("/api/managers/routine-tasks")
@role_required(*MANAGERS)
def manager_create_routine_task():
    data = json_body()
    member_id = to_int(data.get("memberId"))
    description = clean_text(data.get("description"), 2000)
    status = data.get("status") or "not_started"
    if not description:
        abort(400, description="Description is required")
    if status not in ROUTINE_STATUSES:
        abort(400, description="Invalid status")
    if member_id is None or db.session.get(User, member_id) is None:
        abort(400, description="Member not found")

    task = RoutineTask(description=description, member_id=member_id)
    task.daily_statuses.append(RoutineTaskDailyStatus(date=today_local(), status=status))
    db.session.add(task)
    db.session.flush()
    db.session.add(RoutineTaskLog(routine_task_id=task.id, user_id=current_user.id,
                                  action="created", details=description))
    db.session.commit()
    logger.info("Routine task %s created for user %s", task.id, member_id)
    return jsonify({"task": {"id": task.id, "description": task.description, "memberId": member_id,
                             "status": status}}), 201


@routine_bp.delete("/api/managers/routine-tasks/<int:task_id>")
@role_required(*MANAGERS)
def manager_delete_routine_task(task_id):
    task = db.get_or_404(RoutineTask, task_id, description="Routine task not found")
    db.session.delete(task)
    db.session.commit()
    return jsonify({"ok": True})
