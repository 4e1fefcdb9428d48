# presence_api.py
from datetime import datetime

from flask import Blueprint, jsonify, abort, request, current_app, make_response
from flask_login import current_user

from models import db, PresenceSession, AssignedTaskStatus, RoutineTask
from access import role_required, json_body, to_int, clean_text, EVERYONE
from feedcache import FeedCache

presence_bp = Blueprint("presence_api", __name__)

SESSION_TYPES = ("assigned", "routine", "other")


def init_app(app):
    app.extensions["feed_cache"] = FeedCache(ttl_seconds=app.config.get("FEED_CACHE_TTL", 5))


def feed_cache() -> FeedCache:
    return current_app.extensions["feed_cache"]


def _end_active_sessions(user_id):
    now = datetime.utcnow()
    for s in PresenceSession.query.filter_by(user_id=user_id, active=True).all():
        s.active = False
        s.ended_at = now


def _resolve_title(kind, item_id, data):
    if kind == "assigned":
        st = AssignedTaskStatus.query.filter_by(task_id=item_id, member_id=current_user.id).first()
        if st is None:
            abort(404, description="Assigned task not found")
        return st.task.title
    if kind == "routine":
        task = db.session.get(RoutineTask, item_id) if item_id else None
        if task is None or task.member_id != current_user.id:
            abort(404, description="Routine task not found")
        return task.description[:255]
    title = clean_text(data.get("itemTitle"), 255)
    if not title:
        abort(400, description="itemTitle is required")
    return title


@presence_bp.post("/api/member/presence/start")
@role_required(*EVERYONE)
def start_session():
    data = json_body()
    kind = data.get("type")
    if kind not in SESSION_TYPES:
        abort(400, description="Invalid type")
    item_id = to_int(data.get("itemId"))
    title = _resolve_title(kind, item_id, data)

    _end_active_sessions(current_user.id)
    session = PresenceSession(
        user_id=current_user.id,
        type=kind,
        item_id=item_id if kind != "other" else None,
        item_title=title,
        note=clean_text(data.get("note"), 1000) or None,
        active=True,
    )
    db.session.add(session)
    db.session.commit()
    feed_cache().invalidate()
    return jsonify({"session": session.to_dict()}), 201


@presence_bp.post("/api/member/presence/stop")
@role_required(*EVERYONE)
def stop_session():
    _end_active_sessions(current_user.id)
    db.session.commit()
    feed_cache().invalidate()
    return jsonify({"ok": True})


@presence_bp.get("/api/member/presence/current")
@role_required(*EVERYONE)
def current_session():
    session = PresenceSession.query.filter_by(user_id=current_user.id, active=True).first()
    return jsonify({"session": session.to_dict() if session else None})


def build_feed():
    rows = (PresenceSession.query
            .filter_by(active=True)
            .order_by(PresenceSession.started_at.desc())
            .all())
    return {"feed": [s.to_dict() for s in rows]}


@presence_bp.get("/api/member/presence/feed")
@role_required(*EVERYONE)
def presence_feed():
    payload, etag = feed_cache().get_or_build(build_feed)
    max_age = int(feed_cache().ttl)
    cache_control = f"private, max-age={max_age}"

    if_none_match = [t.strip() for t in request.headers.get("If-None-Match", "").split(",") if t.strip()]
    if etag in if_none_match:
        resp = make_response("", 304)
    else:
        resp = make_response(jsonify(payload))
    resp.headers["ETag"] = etag
    resp.headers["Cache-Control"] = cache_control
    return resp
