# reports_api.py
import io

from flask import Blueprint, jsonify, abort, request, send_file
from flask_login import current_user
from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from models import (
    User, AssignedTaskStatus, RoutineTask, RoutineTaskDailyStatus,
    DayCloseRequest, LeaveRequest, Notification, Ticket,
)
from access import role_required, to_int, MANAGERS, EVERYONE
from ticketing import queues_for, OPEN_STATUSES
from timeutil import today_local, parse_iso_date
from workflow import FINISHED, ACTIVE

reports_bp = Blueprint("reports_api", __name__)


def _bucket(statuses):
    counts = {"total": 0, "completed": 0, "inProgress": 0, "notStarted": 0}
    for s in statuses:
        counts["total"] += 1
        if s in FINISHED:
            counts["completed"] += 1
        elif s in ACTIVE:
            counts["inProgress"] += 1
        else:
            counts["notStarted"] += 1
    return counts


def _scoped_users(member_type):
    q = User.query.filter(User.is_active.is_(True))
    if current_user.role != "admin":
        q = q.filter((User.immediate_supervisor_id == current_user.id) | (User.id == current_user.id))
    if member_type in (None, "", "all"):
        pass
    elif member_type == "admins":
        q = q.filter(User.role.in_(MANAGERS))
    elif member_type == "members":
        q = q.filter(User.role == "member")
    elif to_int(member_type) is not None:
        q = q.filter(User.id == to_int(member_type))
    else:
        abort(400, description="Invalid memberType")
    return q.order_by(User.name.asc()).all()


def collect_statuses(user_ids, day):
    """(member_id, status) pairs for assigned tasks and for the day's routine rows."""
    user_ids = user_ids or [0]
    assigned = (AssignedTaskStatus.query
                .with_entities(AssignedTaskStatus.member_id, AssignedTaskStatus.status)
                .filter(AssignedTaskStatus.member_id.in_(user_ids))
                .all())

    routine_tasks = RoutineTask.query.filter(RoutineTask.member_id.in_(user_ids)).all()
    day_rows = dict(RoutineTaskDailyStatus.query
                    .with_entities(RoutineTaskDailyStatus.routine_task_id, RoutineTaskDailyStatus.status)
                    .filter(RoutineTaskDailyStatus.date == day,
                            RoutineTaskDailyStatus.routine_task_id.in_([t.id for t in routine_tasks] or [0]))
                    .all())
    routine = [(t.member_id, day_rows.get(t.id, "not_started")) for t in routine_tasks]
    return assigned, routine


@reports_bp.get("/api/reports/task-summary")
@role_required(*MANAGERS)
def task_summary():
    day = parse_iso_date(request.args.get("date")) or today_local()
    users = _scoped_users(request.args.get("memberType"))
    assigned, routine = collect_statuses([u.id for u in users], day)

    assigned_counts = _bucket(s for _, s in assigned)
    routine_counts = _bucket(s for _, s in routine)
    return jsonify({
        "date": day.isoformat(),
        "assigned": assigned_counts,
        "routine": routine_counts,
        "totals": {k: assigned_counts[k] + routine_counts[k] for k in assigned_counts},
    })


XLSX_HEADERS = [
    "Name", "Role", "Assigned total", "Assigned completed", "Assigned in progress",
    "Assigned not started", "Routine total", "Routine completed", "Routine in progress",
    "Routine not started",
]


@reports_bp.get("/api/reports/task-summary.xlsx")
@role_required(*MANAGERS)
def task_summary_xlsx():
    day = parse_iso_date(request.args.get("date")) or today_local()
    users = _scoped_users(request.args.get("memberType"))
    assigned, routine = collect_statuses([u.id for u in users], day)

    wb = Workbook()
    ws = wb.active
    ws.title = f"Tasks {day.isoformat()}"
    ws.append(XLSX_HEADERS)
    for user in users:
        a = _bucket(s for uid, s in assigned if uid == user.id)
        r = _bucket(s for uid, s in routine if uid == user.id)
        ws.append([user.name, user.role,
                   a["total"], a["completed"], a["inProgress"], a["notStarted"],
                   r["total"], r["completed"], r["inProgress"], r["notStarted"]])

    ws.freeze_panes = "A2"
    for idx, header in enumerate(XLSX_HEADERS, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = 24 if header == "Name" else 16

    out = io.BytesIO()
    wb.save(out)
    out.seek(0)
    return send_file(out, as_attachment=True, download_name=f"task-summary-{day.isoformat()}.xlsx",
                     mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")


@reports_bp.get("/api/reports/overview")
@role_required(*EVERYONE)
def overview():
    return jsonify(overview_counts(current_user))


def overview_counts(user):
    unread = Notification.query.filter_by(user_id=user.id, read=False).count()
    if user.role in MANAGERS:
        day_close = DayCloseRequest.query.filter_by(status="pending")
        leave = LeaveRequest.query.filter_by(status="pending")
        if user.role != "admin":
            day_close = day_close.join(User, DayCloseRequest.user_id == User.id).filter(
                User.immediate_supervisor_id == user.id)
            leave = leave.filter(LeaveRequest.submitted_to_id == user.id)
        queues = queues_for(user)
        open_tickets = Ticket.query.filter(Ticket.queue.in_(queues or ("",)),
                                           Ticket.status.in_(OPEN_STATUSES)).count()
        return {
            "role": user.role,
            "pendingDayClose": day_close.count(),
            "pendingLeave": leave.count(),
            "openTickets": open_tickets,
            "unreadNotifications": unread,
        }

    open_assigned = (AssignedTaskStatus.query
                     .filter(AssignedTaskStatus.member_id == user.id,
                             AssignedTaskStatus.status.notin_(FINISHED))
                     .count())
    today = today_local()
    routine_ids = [t.id for t in RoutineTask.query.filter_by(member_id=user.id).all()]
    done_today = (RoutineTaskDailyStatus.query
                  .filter(RoutineTaskDailyStatus.routine_task_id.in_(routine_ids or [0]),
                          RoutineTaskDailyStatus.date == today,
                          RoutineTaskDailyStatus.status.in_(FINISHED))
                  .count())
    my_tickets = Ticket.query.filter(Ticket.created_by_id == user.id,
                                     Ticket.status.in_(OPEN_STATUSES)).count()
    return {
        "role": user.role,
        "openAssignedTasks": open_assigned,
        "routineToday": {"total": len(routine_ids), "done": done_today},
        "openTickets": my_tickets,
        "unreadNotifications": unread,
    }
