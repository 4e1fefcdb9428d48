# enrollment_api.py
from collections import Counter
from datetime import datetime, timedelta

from flask import Blueprint, jsonify, abort, request
from flask_login import current_user
from sqlalchemy import func, or_

from models import db, Guardian, GuardianChild, GuardianInteraction
from forms import json_form, GuardianForm, GUARDIAN_STATUSES
from access import role_required, json_body, to_int, to_bool, clamp, clean_text, form_error, MANAGERS
from timeutil import parse_iso_date, today_local
from whatsapp import get_provider, normalize_number, WhatsAppError
from logger import get_logger

logger = get_logger(__name__)

enrollment_bp = Blueprint("enrollment_api", __name__)

INTERACTION_POINTS = {
    "call": 5,
    "visit": 5,
    "community_event": 5,
    "whatsapp": 2,
    "note": 1,
}

UPDATABLE = {
    "name": ("name", 120),
    "whatsapp": ("whatsapp", 32),
    "location": ("location", 255),
    "notes": ("notes", 4000),
}


def _children_from(raw):
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        abort(400, description="children must be an array")
    children = []
    for c in raw:
        if not isinstance(c, dict) or not clean_text(c.get("name"), 120):
            abort(400, description="Each child needs a name")
        children.append(GuardianChild(
            name=clean_text(c.get("name"), 120),
            age=to_int(c.get("age")),
            current_school=clean_text(c.get("currentSchool"), 255) or None,
            grade=clean_text(c.get("grade"), 40) or None,
        ))
    return children


def _interests_from(raw):
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        abort(400, description="interests must be an array")
    return [clean_text(i, 80) for i in raw if clean_text(i, 80)]


@enrollment_bp.get("/api/enrollment/guardians")
@role_required(*MANAGERS)
def list_guardians():
    search = clean_text(request.args.get("search"), 120)
    status = request.args.get("status")
    page = max(1, to_int(request.args.get("page"), 1))
    limit = clamp(to_int(request.args.get("limit"), 50), 1, 200)

    q = Guardian.query
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(
            func.lower(Guardian.name).like(like),
            func.lower(Guardian.location).like(like),
            func.lower(Guardian.whatsapp).like(like),
        ))
    if status and status != "all":
        q = q.filter(Guardian.status == status)

    total = q.count()
    rows = (q.order_by(Guardian.last_contact.is_(None), Guardian.last_contact.desc(), Guardian.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all())
    return jsonify({
        "guardians": [g.to_dict() for g in rows],
        "total": total,
        "page": page,
        "limit": limit,
    })


@enrollment_bp.post("/api/enrollment/guardians")
@role_required(*MANAGERS)
def create_guardian():
    data = json_body()
    form = json_form(GuardianForm, data)
    if not form.validate():
        abort(400, description=form_error(form))

    guardian = Guardian(
        name=clean_text(form.name.data, 120),
        whatsapp=clean_text(form.whatsapp.data, 32),
        location=clean_text(form.location.data, 255),
        notes=clean_text(form.notes.data, 4000) or None,
        interests=_interests_from(data.get("interests")),
        status="new_lead",
        engagement_score=0,
        created_by_id=current_user.id,
    )
    guardian.children = _children_from(data.get("children"))
    db.session.add(guardian)
    db.session.commit()
    logger.info("Guardian %s created by %s", guardian.id, current_user.id)
    return jsonify({"guardian": guardian.to_dict()}), 201


@enrollment_bp.put("/api/enrollment/guardians/<int:guardian_id>")
@role_required(*MANAGERS)
def update_guardian(guardian_id):
    guardian = db.get_or_404(Guardian, guardian_id, description="Guardian not found")
    data = json_body()

    for key, (column, max_len) in UPDATABLE.items():
        if key in data:
            value = clean_text(data.get(key), max_len)
            if not value and key != "notes":
                abort(400, description=f"{key} cannot be empty")
            setattr(guardian, column, value or None)
    if "status" in data:
        if data["status"] not in GUARDIAN_STATUSES:
            abort(400, description="Invalid status")
        guardian.status = data["status"]
    if "interests" in data:
        guardian.interests = _interests_from(data.get("interests"))
    if "engagementScore" in data:
        score = to_int(data.get("engagementScore"))
        if score is None or score < 0:
            abort(400, description="Invalid engagement score")
        guardian.engagement_score = score
    if "children" in data:
        guardian.children = _children_from(data.get("children"))

    db.session.commit()
    return jsonify({"guardian": guardian.to_dict()})


@enrollment_bp.post("/api/enrollment/guardians/<int:guardian_id>/interactions")
@role_required(*MANAGERS)
def add_interaction(guardian_id):
    guardian = db.get_or_404(Guardian, guardian_id, description="Guardian not found")
    data = json_body()
    kind = data.get("type")
    content = clean_text(data.get("content"), 4000)
    if kind not in INTERACTION_POINTS:
        abort(400, description="Invalid interaction type")
    if not content:
        abort(400, description="Content is required")

    interaction = GuardianInteraction(
        guardian_id=guardian.id,
        user_id=current_user.id,
        type=kind,
        content=content,
        outcome=clean_text(data.get("outcome"), 2000) or None,
    )
    if to_bool(data.get("sendWhatsapp")):
        number = normalize_number(guardian.whatsapp)
        try:
            if not number:
                raise WhatsAppError("No valid WhatsApp number")
            get_provider().send(number, {
                "recipientName": guardian.name,
                "senderName": current_user.name,
                "subject": "Message from school",
                "message": content,
            })
            interaction.whatsapp_status = "sent"
        except WhatsAppError as e:
            logger.warning("WhatsApp to guardian %s failed: %s", guardian.id, e)
            interaction.whatsapp_status = "failed"

    guardian.engagement_score = (guardian.engagement_score or 0) + INTERACTION_POINTS[kind]
    guardian.last_contact = datetime.utcnow()
    db.session.add(interaction)
    db.session.commit()
    return jsonify({"interaction": interaction.to_dict(), "guardian": guardian.to_dict()}), 201


@enrollment_bp.get("/api/enrollment/analytics")
@role_required(*MANAGERS)
def analytics():
    end = parse_iso_date(request.args.get("endDate")) or today_local()
    start = parse_iso_date(request.args.get("startDate")) or end - timedelta(days=30)
    if start > end:
        abort(400, description="Invalid date range")

    by_status = dict(db.session.query(Guardian.status, func.count(Guardian.id)).group_by(Guardian.status).all())
    avg = db.session.query(func.avg(Guardian.engagement_score)).scalar()

    start_dt = datetime.combine(start, datetime.min.time())
    end_dt = datetime.combine(end + timedelta(days=1), datetime.min.time())
    interactions = (GuardianInteraction.query
                    .filter(GuardianInteraction.created_at >= start_dt,
                            GuardianInteraction.created_at < end_dt)
                    .all())
    by_type = Counter(i.type for i in interactions)
    by_day = Counter(i.created_at.date().isoformat() for i in interactions)

    return jsonify({
        "range": {"startDate": start.isoformat(), "endDate": end.isoformat()},
        "totalGuardians": sum(by_status.values()),
        "byStatus": {s: by_status.get(s, 0) for s in GUARDIAN_STATUSES},
        "highInterest": by_status.get("high_interest", 0),
        "averageEngagement": round(float(avg or 0), 2),
        "interactionsByType": {t: by_type.get(t, 0) for t in INTERACTION_POINTS},
        "interactionsByDay": dict(sorted(by_day.items())),
    })
