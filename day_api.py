# day_api.py
import re
from datetime import datetime

from flask import Blueprint, jsonify, abort, request, current_app
from flask_login import current_user
from sqlalchemy import func

from models import (
    db, User, OpenCloseTime, DayOpenRecord, DayCloseRequest, GeneralLog,
    RoutineTask, RoutineTaskDailyStatus, RoutineTaskLog,
    AssignedTask, AssignedTaskStatus, AssignedTaskLog, USER_TYPES,
)
from access import role_required, json_body, to_int, to_bool, clean_text, ADMIN, MANAGERS, STAFF
from flags import get_flag, set_flag, all_flags, routine_log_required_for, KNOWN_FLAGS
from notify import notify_user
from timeutil import (
    now_local, parse_hms, parse_iso_date, parse_iso_datetime,
    within_window, in_day_open_window,
)
from workflow import MEMBER_SETTABLE
from logger import get_logger

logger = get_logger(__name__)

day_bp = Blueprint("day_api", __name__)

MOBILE_UA = re.compile(r"Mobi|Android|iPhone|iPad|iPod|Windows Phone", re.IGNORECASE)
TIME_KEYS = (
    ("dayOpenTime", "day_open_time"),
    ("dayCloseTime", "day_close_time"),
    ("closingWindowStart", "closing_window_start"),
    ("closingWindowEnd", "closing_window_end"),
)


def times_for(user_type):
    return OpenCloseTime.query.filter_by(user_type=user_type).first()


# ---- Open/close times

@day_bp.get("/api/admin/open-close-times")
@role_required(*ADMIN)
def admin_get_times():
    rows = OpenCloseTime.query.order_by(OpenCloseTime.user_type.asc()).all()
    return jsonify({"times": [r.to_dict() for r in rows]})


@day_bp.patch("/api/admin/open-close-times")
@role_required(*ADMIN)
def admin_update_times():
    data = json_body()
    items = data.get("times")
    if not isinstance(items, list) or not items:
        abort(400, description="times must be a non-empty array")

    parsed = []
    for item in items:
        if not isinstance(item, dict) or item.get("userType") not in USER_TYPES:
            abort(400, description="Invalid user type")
        values = {}
        for key, column in TIME_KEYS:
            value = parse_hms(item.get(key))
            if value is None:
                abort(400, description=f"Invalid {key}, expected HH:MM:SS")
            values[column] = value
        parsed.append((item["userType"], values))

    for user_type, values in parsed:
        row = times_for(user_type)
        if row is None:
            row = OpenCloseTime(user_type=user_type, **values)
            db.session.add(row)
        else:
            for column, value in values.items():
                setattr(row, column, value)
    db.session.commit()
    logger.info("Open/close times updated for %s", ", ".join(t for t, _ in parsed))
    rows = OpenCloseTime.query.order_by(OpenCloseTime.user_type.asc()).all()
    return jsonify({"times": [r.to_dict() for r in rows]})


@day_bp.get("/api/member/open-close-times")
@role_required(*STAFF)
def member_get_times():
    row = times_for(current_user.type)
    if row is None:
        abort(404, description="Open/close times not configured for your user type")
    return jsonify({"times": row.to_dict()})


# ---- Day open

@day_bp.post("/api/member/day-open")
@role_required(*STAFF)
def start_day():
    data = json_body()
    day = parse_iso_date(data.get("date"))
    if day is None:
        abort(400, description="Date is required")

    now = now_local()
    if day != now.date():
        abort(400, description="Day can only be started for today")

    times = times_for(current_user.type)
    if times is None:
        abort(404, description="Open/close times not configured for your user type")
    grace = current_app.config.get("DAY_OPEN_GRACE_MINUTES", 10)
    if not in_day_open_window(now.time(), times.day_open_time, grace):
        abort(403, description="Outside day open window")

    if DayOpenRecord.query.filter_by(user_id=current_user.id, date=day).first():
        abort(400, description="Day already started")

    record = DayOpenRecord(user_id=current_user.id, date=day, opened_at=datetime.utcnow())
    db.session.add(record)
    db.session.commit()
    logger.info("User %s opened day %s", current_user.id, day)
    return jsonify({"message": "Day started", "dayOpenedAt": record.opened_at.isoformat()}), 201


@day_bp.get("/api/member/day-open")
@role_required(*STAFF)
def get_day_open():
    day = parse_iso_date(request.args.get("date")) or now_local().date()
    record = DayOpenRecord.query.filter_by(user_id=current_user.id, date=day).first()
    return jsonify({"record": record.to_dict() if record else None})


# ---- Day close (member side)

def _validate_assigned_updates(items):
    if not isinstance(items, list):
        abort(400, description="assignedTasksUpdates must be an array")
    cleaned = []
    for item in items:
        if not isinstance(item, dict) or to_int(item.get("id")) is None:
            abort(400, description="Invalid assigned task update")
        if item.get("statusUpdate") not in MEMBER_SETTABLE:
            abort(400, description="Invalid assigned task status")
        new_deadline = item.get("newDeadline")
        if new_deadline and parse_iso_datetime(new_deadline) is None:
            abort(400, description="Invalid newDeadline")
        cleaned.append({
            "id": to_int(item["id"]),
            "statusUpdate": item["statusUpdate"],
            "comment": clean_text(item.get("comment"), 2000) or None,
            "newDeadline": new_deadline or None,
        })
    return cleaned


def _validate_routine_updates(items):
    if not isinstance(items, list):
        abort(400, description="routineTasksUpdates must be an array")
    cleaned = []
    for item in items:
        if not isinstance(item, dict) or to_int(item.get("id")) is None or not isinstance(item.get("done"), bool):
            abort(400, description="Invalid routine task update")
        cleaned.append({"id": to_int(item["id"]), "done": item["done"]})
    return cleaned


@day_bp.post("/api/member/day-close")
@role_required(*STAFF)
def request_day_close():
    data = json_body()
    day = parse_iso_date(data.get("date"))
    if day is None:
        abort(400, description="Date is required")
    assigned_updates = _validate_assigned_updates(data.get("assignedTasksUpdates") or [])
    routine_updates = _validate_routine_updates(data.get("routineTasksUpdates") or [])

    if get_flag("block_mobile_day_close") and MOBILE_UA.search(request.headers.get("User-Agent", "")):
        abort(403, description="Day close is not allowed from mobile devices")

    bypass = to_bool(data.get("bypass"))
    if bypass and not get_flag("show_day_close_bypass"):
        abort(403, description="Day close bypass is disabled")

    routine_log = clean_text(data.get("routineLog"), 5000) or None
    if routine_log_required_for(current_user) and not routine_log:
        abort(400, description="Routine log is required")

    if not bypass:
        times = times_for(current_user.type)
        if times is None:
            abort(404, description="Open/close times not configured for your user type")
        if not within_window(now_local().time(), times.closing_window_start, times.closing_window_end):
            abort(400, description="Not within closing window")

    existing = (DayCloseRequest.query
                .filter(DayCloseRequest.user_id == current_user.id,
                        DayCloseRequest.date == day,
                        DayCloseRequest.status.in_(("pending", "approved")))
                .first())
    if existing is not None:
        if existing.status == "pending":
            abort(400, description="A pending day close request already exists for this date")
        abort(400, description="Day already closed for this date")

    mri_report = data.get("mriReport")
    req = DayCloseRequest(
        user_id=current_user.id,
        date=day,
        status="pending",
        assigned_tasks_updates=assigned_updates,
        routine_tasks_updates=routine_updates,
        routine_log=routine_log,
        general_log=clean_text(data.get("generalLog"), 5000) or None,
        mri_cleared=to_bool(data.get("mriCleared")) if "mriCleared" in data else None,
        mri_report=mri_report if isinstance(mri_report, (dict, list)) else None,
        bypassed=bypass,
    )
    db.session.add(req)
    db.session.commit()
    logger.info("Day close requested by %s for %s (bypass=%s)", current_user.id, day, bypass)
    return jsonify({"message": "Day close request submitted", "request": req.to_dict()}), 201


@day_bp.get("/api/member/day-close/status")
@role_required(*STAFF)
def day_close_status():
    day = parse_iso_date(request.args.get("date")) or now_local().date()
    req = (DayCloseRequest.query
           .filter_by(user_id=current_user.id, date=day)
           .order_by(DayCloseRequest.created_at.desc())
           .first())
    return jsonify({"request": req.to_dict() if req else None})


@day_bp.get("/api/member/day-close/history")
@role_required(*STAFF)
def day_close_history():
    rows = (DayCloseRequest.query
            .filter_by(user_id=current_user.id)
            .order_by(DayCloseRequest.date.desc(), DayCloseRequest.created_at.desc())
            .all())
    return jsonify({"requests": [r.to_dict() for r in rows]})


# ---- Day close (approver side)

@day_bp.get("/api/managers/day-close-requests")
@role_required(*MANAGERS)
def list_day_close_requests():
    status = request.args.get("status") or "pending"
    q = DayCloseRequest.query
    if status != "all":
        q = q.filter(DayCloseRequest.status == status)
    if current_user.role != "admin":
        q = q.join(User, DayCloseRequest.user_id == User.id).filter(
            User.immediate_supervisor_id == current_user.id)
    rows = q.order_by(DayCloseRequest.date.desc(), DayCloseRequest.created_at.asc()).all()
    return jsonify({"requests": [r.to_dict() for r in rows]})


def _apply_approval(req: DayCloseRequest):
    member_id = req.user_id

    for upd in req.assigned_tasks_updates or []:
        st = AssignedTaskStatus.query.filter_by(task_id=upd["id"], member_id=member_id).first()
        if st is None:
            continue
        st.status = upd["statusUpdate"]
        if upd.get("comment"):
            st.comment = upd["comment"]
            db.session.add(AssignedTaskLog(task_id=st.task_id, user_id=member_id,
                                           action="day_close_update", details=upd["comment"]))
        if upd.get("newDeadline"):
            task = db.session.get(AssignedTask, st.task_id)
            task.deadline = parse_iso_datetime(upd["newDeadline"])

    own_task_ids = {t.id for t in RoutineTask.query.filter_by(member_id=member_id).all()}
    for upd in req.routine_tasks_updates or []:
        if upd["id"] not in own_task_ids:
            continue
        row = RoutineTaskDailyStatus.query.filter_by(routine_task_id=upd["id"], date=req.date).first()
        if row is None:
            row = RoutineTaskDailyStatus(routine_task_id=upd["id"], date=req.date)
            db.session.add(row)
        row.status = "done" if upd["done"] else "not_done"
        row.is_locked = True

    if req.routine_log:
        db.session.add(RoutineTaskLog(user_id=member_id, action="close_day_comment", details=req.routine_log))
    if req.supervisor_routine_log:
        db.session.add(RoutineTaskLog(user_id=current_user.id, action="is_routine_comment",
                                      details=req.supervisor_routine_log))
    if req.general_log:
        db.session.add(GeneralLog(user_id=member_id, date=req.date, content=req.general_log))

    opened = DayOpenRecord.query.filter_by(user_id=member_id, date=req.date).first()
    if opened is not None and opened.closed_at is None:
        opened.closed_at = datetime.utcnow()


@day_bp.patch("/api/managers/day-close-requests/<int:request_id>")
@role_required(*MANAGERS)
def decide_day_close(request_id):
    data = json_body()
    status = data.get("status")
    if status not in ("approved", "rejected"):
        abort(400, description="Status must be approved or rejected")

    req = db.session.get(DayCloseRequest, request_id)
    if req is None:
        abort(404, description="Day close request not found")
    if req.status != "pending":
        abort(400, description="Request is not pending")
    if current_user.role != "admin" and req.user.immediate_supervisor_id != current_user.id:
        abort(403, description="Only the immediate supervisor can decide this request")

    req.supervisor_routine_log = clean_text(data.get("ISRoutineLog") or data.get("supervisorRoutineLog"), 5000) or None
    req.supervisor_general_log = clean_text(data.get("ISGeneralLog") or data.get("supervisorGeneralLog"), 5000) or None
    if status == "approved":
        _apply_approval(req)
    req.status = status
    req.approved_by_id = current_user.id
    req.approved_at = datetime.utcnow()

    message = f"Your day close request for {req.date.isoformat()} has been {status}."
    comments = [c for c in (req.supervisor_general_log, req.supervisor_routine_log) if c]
    if comments:
        message += " Supervisor comments: " + " | ".join(comments)
    notify_user(current_user, req.user, subject=f"Day close {status}", message=message,
                type="day_close", entity_kind="day_close_request", entity_id=req.id)
    db.session.commit()
    logger.info("Day close %s %s by %s", req.id, status, current_user.id)
    return jsonify({"request": req.to_dict()})


@day_bp.get("/api/managers/day-close/summary")
@role_required(*MANAGERS)
def day_close_summary():
    start = parse_iso_date(request.args.get("start"))
    end = parse_iso_date(request.args.get("end"))
    if start is None or end is None or start > end:
        abort(400, description="Invalid date range")
    rows = (db.session.query(User.id, User.name, func.count(DayCloseRequest.id))
            .join(DayCloseRequest, DayCloseRequest.user_id == User.id)
            .filter(DayCloseRequest.status == "approved",
                    DayCloseRequest.date >= start,
                    DayCloseRequest.date <= end)
            .group_by(User.id, User.name)
            .order_by(User.name.asc())
            .all())
    return jsonify({
        "start": start.isoformat(),
        "end": end.isoformat(),
        "summary": [{"userId": uid, "name": name, "approvedDays": count} for uid, name, count in rows],
    })


# ---- System flags

@day_bp.get("/api/admin/flags")
@role_required(*ADMIN)
def get_flags():
    return jsonify({"flags": all_flags()})


@day_bp.patch("/api/admin/flags")
@role_required(*ADMIN)
def update_flags():
    data = json_body()
    flags = data.get("flags")
    if not isinstance(flags, dict) or not flags:
        abort(400, description="flags must be an object")
    unknown = [k for k in flags if k not in KNOWN_FLAGS]
    if unknown:
        abort(400, description=f"Unknown flag: {unknown[0]}")
    for key, value in flags.items():
        set_flag(key, to_bool(value))
    db.session.commit()
    return jsonify({"flags": all_flags()})
