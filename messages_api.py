# messages_api.py
from flask import Blueprint, jsonify, abort, request
from flask_login import current_user
from sqlalchemy import or_

from models import db, User, Message, Notification, WhatsappMessageLog
from access import role_required, json_body, to_int, to_bool, clamp, clean_text, MANAGERS, EVERYONE
from notify import send_chat, send_whatsapp, create_notifications
from logger import get_logger

logger = get_logger(__name__)

messages_bp = Blueprint("messages_api", __name__)


# ---- Chat messages

@messages_bp.get("/api/member/messages")
@role_required(*EVERYONE)
def list_messages():
    rows = (Message.query
            .filter(or_(Message.sender_id == current_user.id, Message.recipient_id == current_user.id))
            .order_by(Message.created_at.asc(), Message.id.asc())
            .all())
    return jsonify({"messages": [m.to_dict() for m in rows]})


@messages_bp.post("/api/member/messages")
@role_required(*EVERYONE)
def post_message():
    data = json_body()
    recipient_id = to_int(data.get("recipientId"))
    content = clean_text(data.get("content"), 5000)
    if recipient_id is None or not content:
        abort(400, description="recipientId and content are required")
    recipient = db.session.get(User, recipient_id)
    if recipient is None:
        abort(404, description="Recipient not found")

    msg = send_chat(current_user.id, recipient.id, content)
    create_notifications([recipient.id], f"New message from {current_user.name}", body=content[:200],
                         type="message", entity_kind="message")
    db.session.commit()
    return jsonify({"message": msg.to_dict()}), 201


@messages_bp.patch("/api/member/messages/read")
@role_required(*EVERYONE)
def mark_messages_read():
    data = json_body()
    q = Message.query.filter(Message.recipient_id == current_user.id, Message.status == "sent")
    if "ids" in data:
        if not isinstance(data["ids"], list) or not data["ids"]:
            abort(400, description="ids must be a non-empty array")
        ids = [to_int(i) for i in data["ids"] if to_int(i) is not None]
        q = q.filter(Message.id.in_(ids))
    elif to_int(data.get("senderId")) is not None:
        q = q.filter(Message.sender_id == to_int(data.get("senderId")))
    else:
        abort(400, description="senderId or ids is required")
    updated = q.update({Message.status: "read"}, synchronize_session=False)
    db.session.commit()
    return jsonify({"updated": updated})


# ---- Notifications

@messages_bp.get("/api/member/notifications")
@role_required(*EVERYONE)
def list_notifications():
    limit = clamp(to_int(request.args.get("limit"), 30), 1, 100)
    q = Notification.query.filter_by(user_id=current_user.id)
    if to_bool(request.args.get("unread")):
        q = q.filter(Notification.read.is_(False))
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    unread = Notification.query.filter_by(user_id=current_user.id, read=False).count()
    return jsonify({"notifications": [n.to_dict() for n in rows], "unreadCount": unread})


@messages_bp.patch("/api/member/notifications")
@role_required(*EVERYONE)
def update_notifications():
    data = json_body()
    read = to_bool(data.get("read"), default=True)
    q = Notification.query.filter_by(user_id=current_user.id)
    if to_bool(data.get("all")):
        updated = q.update({Notification.read: read}, synchronize_session=False)
    else:
        note_id = to_int(data.get("id"))
        if note_id is None:
            abort(400, description="id or all is required")
        row = q.filter_by(id=note_id).first()
        if row is None:
            abort(404, description="Notification not found")
        row.read = read
        updated = 1
    db.session.commit()
    return jsonify({"updated": updated})


# ---- Direct WhatsApp messages

@messages_bp.post("/api/managers/direct-message")
@role_required(*MANAGERS)
def direct_message():
    data = json_body()
    recipient_id = to_int(data.get("recipientId"))
    subject = clean_text(data.get("subject"), 255)
    message = clean_text(data.get("message"), 5000)
    note = clean_text(data.get("note"), 2000) or None
    if recipient_id is None or not subject or not message:
        abort(400, description="recipientId, subject and message are required")
    recipient = db.session.get(User, recipient_id)
    if recipient is None:
        abort(404, description="Recipient not found")

    send_chat(current_user.id, recipient.id, message, subject=subject, note=note)
    log = send_whatsapp(current_user, recipient, subject, message, note=note)
    db.session.commit()
    logger.info("Direct message %s -> %s (%s)", current_user.id, recipient.id, log.status)
    return jsonify({"log": log.to_dict()}), 201


@messages_bp.get("/api/managers/direct-message")
@role_required(*MANAGERS)
def direct_message_history():
    limit = clamp(to_int(request.args.get("limit"), 50), 1, 200)
    rows = (WhatsappMessageLog.query
            .filter_by(sender_id=current_user.id)
            .order_by(WhatsappMessageLog.created_at.desc(), WhatsappMessageLog.id.desc())
            .limit(limit)
            .all())
    return jsonify({"logs": [r.to_dict() for r in rows]})
