# tickets_api.py
from datetime import datetime, timedelta

from flask import Blueprint, jsonify, abort, request
from flask_login import current_user
from sqlalchemy import func

from models import db, User, Ticket, TicketActivity
from forms import json_form, TicketForm
from access import (
    role_required, json_body, to_int, clamp, clean_text, is_http_url, form_error,
    MANAGERS, EVERYONE,
)
from notify import notify_user
from ticketing import (
    CATEGORY_TREE, PRIORITIES, STATUS_FLOW, OPEN_STATUSES,
    find_category, find_subcategory, compute_sla, format_ticket_number,
    queues_for, summary_label,
)
from timeutil import parse_iso_datetime
from logger import get_logger

logger = get_logger(__name__)

tickets_bp = Blueprint("tickets_api", __name__)

MAX_ATTACHMENTS = 5


def add_activity(ticket, type, message=None, from_status=None, to_status=None, meta=None):
    activity = TicketActivity(
        ticket=ticket, author_id=current_user.id, type=type, message=message,
        from_status=from_status, to_status=to_status, meta=meta or {},
    )
    db.session.add(activity)
    ticket.last_activity_at = datetime.utcnow()
    return activity


def notify_raiser(ticket, subject, message):
    if ticket.created_by_id == current_user.id:
        return
    notify_user(current_user, ticket.created_by, subject=subject, message=message,
                type="ticket", entity_kind="ticket", entity_id=ticket.id)


def member_can_comment(ticket) -> bool:
    if current_user.role in MANAGERS:
        return True
    if ticket.created_by_id != current_user.id:
        return False
    meta = ticket.meta or {}
    if not meta.get("memberCommentAllowed"):
        return False
    until = parse_iso_datetime(meta.get("memberCommentAllowUntil"))
    return until is None or until > datetime.utcnow()


def manager_can_access(ticket) -> bool:
    if current_user.role == "admin":
        return True
    return (ticket.queue in queues_for(current_user)
            or ticket.assigned_to_id == current_user.id
            or ticket.created_by_id == current_user.id)


def detail_payload(ticket):
    payload = ticket.to_dict()
    payload["activities"] = [a.to_dict() for a in ticket.activities]
    payload["categoryLabel"] = summary_label(ticket.category, ticket.subcategory)
    return payload


def _clean_attachments(raw):
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        abort(400, description="attachments must be an array")
    if len(raw) > MAX_ATTACHMENTS:
        abort(400, description=f"At most {MAX_ATTACHMENTS} attachments are allowed")
    cleaned = []
    for item in raw:
        if not isinstance(item, dict) or not is_http_url(item.get("url")):
            abort(400, description="Each attachment needs an http(s) url")
        cleaned.append({"name": clean_text(item.get("name"), 200) or "Attachment",
                        "url": str(item["url"]).strip()})
    return cleaned


# ---- Members

@tickets_bp.get("/api/member/tickets")
@role_required(*EVERYONE)
def member_list_tickets():
    rows = (Ticket.query
            .filter_by(created_by_id=current_user.id)
            .order_by(Ticket.last_activity_at.desc())
            .all())
    counts = {s: 0 for s in STATUS_FLOW}
    for t in rows:
        counts[t.status] = counts.get(t.status, 0) + 1
    return jsonify({
        "tickets": [t.to_dict() for t in rows],
        "counts": counts,
        "categories": CATEGORY_TREE,
        "priorities": list(PRIORITIES),
    })


@tickets_bp.post("/api/member/tickets")
@role_required(*EVERYONE)
def member_raise_ticket():
    data = json_body()
    form = json_form(TicketForm, data)
    if not form.validate():
        abort(400, description=form_error(form))
    attachments = _clean_attachments(data.get("attachments"))

    category = find_category(form.category_key.data) or find_category("other")
    subcategory = find_subcategory(category, form.subcategory_key.data)
    now = datetime.utcnow()
    first_due, resolve_by = compute_sla("normal", now)

    ticket = Ticket(
        created_by_id=current_user.id,
        queue=category["queue"],
        category=category["key"],
        subcategory=subcategory["key"] if subcategory else None,
        title=clean_text(form.title.data, 180),
        description=clean_text(form.description.data, 2000),
        priority="normal",
        status="open",
        attachments=attachments,
        meta={},
        sla_first_response_at=first_due,
        sla_resolve_by=resolve_by,
        created_at=now,
        last_activity_at=now,
    )
    db.session.add(ticket)
    db.session.flush()
    ticket.ticket_number = format_ticket_number(ticket.id, now)

    label = summary_label(category["key"], subcategory["key"] if subcategory else None)
    add_activity(ticket, "created", f"Ticket raised ({label})", to_status="open",
                 meta={"priority": "normal", "queue": ticket.queue})

    supervisor = current_user.supervisor
    if supervisor is not None:
        ticket.assigned_to_id = supervisor.id
        add_activity(ticket, "assignment", "Auto-assigned to your immediate supervisor",
                     meta={"assigneeId": supervisor.id})
        notify_user(current_user, supervisor,
                    subject=f"Ticket {ticket.ticket_number} assigned to you",
                    message=f"{current_user.name} raised \"{ticket.title}\".",
                    type="ticket", entity_kind="ticket", entity_id=ticket.id)

    db.session.commit()
    logger.info("Ticket %s raised by %s in queue %s", ticket.ticket_number, current_user.id, ticket.queue)
    return jsonify({"ticket": detail_payload(ticket)}), 201


@tickets_bp.get("/api/member/tickets/<int:ticket_id>")
@role_required(*EVERYONE)
def member_get_ticket(ticket_id):
    ticket = db.get_or_404(Ticket, ticket_id, description="Ticket not found")
    if ticket.created_by_id != current_user.id and not (current_user.role in MANAGERS and manager_can_access(ticket)):
        abort(403, description="Not allowed to view this ticket")
    payload = detail_payload(ticket)
    payload["canComment"] = member_can_comment(ticket)
    return jsonify({"ticket": payload})


@tickets_bp.post("/api/member/tickets/<int:ticket_id>/comments")
@role_required(*EVERYONE)
def member_comment(ticket_id):
    ticket = db.get_or_404(Ticket, ticket_id, description="Ticket not found")
    if ticket.created_by_id != current_user.id and not (current_user.role in MANAGERS and manager_can_access(ticket)):
        abort(403, description="Not allowed to view this ticket")
    if not member_can_comment(ticket):
        abort(403, description="Commenting is not enabled for this ticket")
    comment = clean_text(json_body().get("comment"), 2000)
    if not comment:
        abort(400, description="Comment is required")
    activity = add_activity(ticket, "comment", comment)
    if ticket.assigned_to is not None and ticket.assigned_to_id != current_user.id:
        notify_user(current_user, ticket.assigned_to,
                    subject=f"New comment on {ticket.ticket_number}", message=comment,
                    type="ticket", entity_kind="ticket", entity_id=ticket.id, whatsapp=False)
    db.session.commit()
    return jsonify({"activity": activity.to_dict()}), 201


# ---- Managers

@tickets_bp.get("/api/managers/tickets")
@role_required(*MANAGERS)
def manager_list_tickets():
    queues = queues_for(current_user)
    view = request.args.get("view") or "queue"
    status = request.args.get("status")
    priority = request.args.get("priority")
    queue = request.args.get("queue")

    q = Ticket.query
    if view == "assigned":
        q = q.filter(Ticket.assigned_to_id == current_user.id)
    elif view == "created":
        q = q.filter(Ticket.created_by_id == current_user.id)
    elif view == "queue":
        if not queues:
            abort(403, description="No ticket queues available for your role")
        if queue:
            if queue not in queues:
                abort(403, description="Queue not available for your role")
            q = q.filter(Ticket.queue == queue)
        else:
            q = q.filter(Ticket.queue.in_(queues))
    else:
        abort(400, description="Invalid view")

    base = q
    queue_summary = {
        "total": base.count(),
        "open": base.filter(Ticket.status.in_(OPEN_STATUSES)).count(),
        "escalated": base.filter(Ticket.escalated.is_(True)).count(),
    }
    status_summary = {s: 0 for s in STATUS_FLOW}
    for s, n in base.with_entities(Ticket.status, func.count(Ticket.id)).group_by(Ticket.status).all():
        status_summary[s] = n

    if status:
        q = q.filter(Ticket.status == status)
    if priority:
        q = q.filter(Ticket.priority == priority)
    limit = clamp(to_int(request.args.get("limit"), 100), 1, 200)
    rows = q.order_by(Ticket.last_activity_at.desc()).limit(limit).all()
    return jsonify({
        "tickets": [t.to_dict() for t in rows],
        "queues": list(queues),
        "queueSummary": queue_summary,
        "statusSummary": status_summary,
    })


@tickets_bp.get("/api/managers/tickets/<int:ticket_id>")
@role_required(*MANAGERS)
def manager_get_ticket(ticket_id):
    ticket = db.get_or_404(Ticket, ticket_id, description="Ticket not found")
    if not manager_can_access(ticket):
        abort(403, description="Not allowed to view this ticket")
    return jsonify({"ticket": detail_payload(ticket)})


@tickets_bp.patch("/api/managers/tickets/<int:ticket_id>")
@role_required(*MANAGERS)
def manager_update_ticket(ticket_id):
    ticket = db.get_or_404(Ticket, ticket_id, description="Ticket not found")
    if not manager_can_access(ticket):
        abort(403, description="Not allowed to update this ticket")
    data = json_body()
    action = data.get("action")
    number = ticket.ticket_number

    if action == "assign":
        assignee = db.session.get(User, to_int(data.get("assigneeId"), 0))
        if assignee is None or not assignee.is_active or assignee.role not in MANAGERS:
            abort(400, description="Assignee must be an active admin or team manager")
        ticket.assigned_to_id = assignee.id
        add_activity(ticket, "assignment", f"Assigned to {assignee.name}", meta={"assigneeId": assignee.id})
        if assignee.id != current_user.id:
            notify_user(current_user, assignee, subject=f"Ticket {number} assigned to you",
                        message=f"\"{ticket.title}\" has been assigned to you.",
                        type="ticket", entity_kind="ticket", entity_id=ticket.id)
        notify_raiser(ticket, f"Ticket {number} assigned", f"Your ticket is now handled by {assignee.name}.")

    elif action == "priority":
        priority = data.get("priority")
        if priority not in PRIORITIES:
            abort(400, description="Invalid priority")
        if priority == ticket.priority:
            return jsonify({"ticket": detail_payload(ticket), "unchanged": True})
        previous = ticket.priority
        ticket.priority = priority
        ticket.sla_first_response_at, ticket.sla_resolve_by = compute_sla(priority, ticket.created_at)
        add_activity(ticket, "priority_change", f"Priority {previous} -> {priority}",
                     meta={"from": previous, "to": priority})
        notify_raiser(ticket, f"Ticket {number} priority updated", f"Priority changed to {priority}.")

    elif action == "status":
        status = data.get("status")
        if status not in STATUS_FLOW:
            abort(400, description="Invalid status")
        if status == ticket.status:
            return jsonify({"ticket": detail_payload(ticket), "unchanged": True})
        previous = ticket.status
        now = datetime.utcnow()
        if previous == "open" and ticket.first_response_at is None:
            ticket.first_response_at = now
        if status == "resolved":
            ticket.resolved_at = now
            ticket.escalated = False
        elif status == "closed":
            ticket.closed_at = now
            ticket.escalated = False
        elif status == "escalated":
            ticket.escalated = True
        if previous == "closed":
            ticket.reopened_at = now
            ticket.closed_at = None
        ticket.status = status
        note = clean_text(data.get("note"), 2000) or None
        add_activity(ticket, "status_change", note or f"Status {previous} -> {status}",
                     from_status=previous, to_status=status)
        notify_raiser(ticket, f"Ticket {number} is now {status.replace('_', ' ')}",
                      note or f"Status changed from {previous} to {status}.")

    elif action == "comment":
        comment = clean_text(data.get("comment"), 2000)
        if not comment:
            abort(400, description="Comment is required")
        if ticket.first_response_at is None:
            ticket.first_response_at = datetime.utcnow()
        add_activity(ticket, "comment", comment)
        notify_raiser(ticket, f"New comment on {number}", comment)

    elif action == "allow_member_comment":
        hours = clamp(to_int(data.get("hours"), 48), 1, 720)
        until = datetime.utcnow() + timedelta(hours=hours)
        ticket.meta = {**(ticket.meta or {}), "memberCommentAllowed": True,
                       "memberCommentAllowUntil": until.isoformat()}
        add_activity(ticket, "member_comment_allowed", f"Raiser may comment for {hours}h",
                     meta={"until": until.isoformat()})
        notify_raiser(ticket, f"You can reply on {number}",
                      f"You may add comments to this ticket for the next {hours} hours.")

    elif action == "revoke_member_comment":
        meta = dict(ticket.meta or {})
        meta["memberCommentAllowed"] = False
        meta.pop("memberCommentAllowUntil", None)
        ticket.meta = meta
        add_activity(ticket, "member_comment_revoked", "Raiser comments disabled")
        notify_raiser(ticket, f"Replies closed on {number}",
                      "Comments from you on this ticket are no longer enabled.")

    elif action == "escalate":
        if ticket.escalated:
            abort(409, description="Ticket already escalated")
        target = db.session.get(User, to_int(data.get("toUserId"), 0))
        if target is None or target.role not in MANAGERS:
            abort(400, description="Escalation target is required")
        note = clean_text(data.get("note"), 2000) or None
        previous = ticket.status
        ticket.escalated = True
        ticket.status = "escalated"
        ticket.assigned_to_id = target.id
        ticket.meta = {**(ticket.meta or {}), "escalation": {
            "by": current_user.id, "to": target.id, "note": note,
            "at": datetime.utcnow().isoformat(),
        }}
        add_activity(ticket, "escalation", note or f"Escalated to {target.name}",
                     from_status=previous, to_status="escalated", meta={"toUserId": target.id})
        if target.id != current_user.id:
            notify_user(current_user, target, subject=f"Ticket {number} escalated to you",
                        message=f"\"{ticket.title}\" was escalated by {current_user.name}.", note=note,
                        type="ticket", entity_kind="ticket", entity_id=ticket.id)
        notify_raiser(ticket, f"Ticket {number} escalated", f"Your ticket was escalated to {target.name}.")

    else:
        abort(400, description="Unsupported action")

    db.session.commit()
    logger.info("Ticket %s action %s by %s", number, action, current_user.id)
    return jsonify({"ticket": detail_payload(ticket)})
