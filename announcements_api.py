# announcements_api.py
from flask import Blueprint, jsonify, abort, request
from flask_login import current_user

from models import db, User, Announcement
from forms import json_form, AnnouncementForm
from access import role_required, json_body, to_int, clamp, clean_text, is_http_url, form_error, MANAGERS, EVERYONE
from notify import create_notifications
from logger import get_logger

logger = get_logger(__name__)

announcements_bp = Blueprint("announcements_api", __name__)


@announcements_bp.get("/api/announcements")
@role_required(*EVERYONE)
def list_announcements():
    q = Announcement.query
    if current_user.role == "member":
        q = q.filter(Announcement.target.in_(("team_members", "all")))
    limit = clamp(to_int(request.args.get("limit"), 50), 1, 200)
    rows = q.order_by(Announcement.created_at.desc(), Announcement.id.desc()).limit(limit).all()
    return jsonify({"announcements": [a.to_dict() for a in rows]})


@announcements_bp.post("/api/managers/announcements")
@role_required(*MANAGERS)
def create_announcement():
    data = json_body()
    form = json_form(AnnouncementForm, data)
    if not form.validate():
        abort(400, description=form_error(form))

    attachments = data.get("attachments") or []
    if not isinstance(attachments, list) or not all(is_http_url(a) for a in attachments):
        abort(400, description="Attachments must be http(s) URLs")
    content = clean_text(form.content.data, 10000)
    if not content:
        abort(400, description="Content is required")

    announcement = Announcement(
        created_by_id=current_user.id,
        target=form.target.data,
        program=form.program.data,
        program_title=clean_text(form.program_title.data, 120) or None,
        subject=clean_text(form.subject.data, 255) or None,
        content=content,
        attachments=[str(a).strip() for a in attachments],
    )
    db.session.add(announcement)
    db.session.flush()

    if announcement.target in ("team_members", "all"):
        staff_ids = [u.id for u in User.query.filter(User.is_active.is_(True), User.id != current_user.id).all()]
        create_notifications(staff_ids, announcement.subject or f"{announcement.program} announcement",
                             body=content[:200], type="announcement",
                             entity_kind="announcement", entity_id=announcement.id)
    db.session.commit()
    logger.info("Announcement %s posted by %s", announcement.id, current_user.id)
    return jsonify({"announcement": announcement.to_dict()}), 201
