# notify.py
from models import db, Message, Notification, WhatsappMessageLog
from timeutil import now_local
from whatsapp import get_provider, normalize_number, WhatsAppError
from logger import get_logger

logger = get_logger(__name__)


def send_chat(sender_id, recipient_id, content, subject=None, note=None):
    msg = Message(
        sender_id=sender_id,
        recipient_id=recipient_id,
        subject=subject,
        content=content,
        note=note,
        status="sent",
    )
    db.session.add(msg)
    return msg


def create_notifications(user_ids, title, body=None, type="general", entity_kind=None, entity_id=None, meta=None):
    rows = []
    for uid in dict.fromkeys(u for u in user_ids if u):
        rows.append(Notification(
            user_id=uid,
            type=type,
            title=title,
            body=body,
            entity_kind=entity_kind,
            entity_id=entity_id,
            meta=meta or {},
        ))
    if rows:
        db.session.add_all(rows)
    return rows


def send_whatsapp(sender, recipient, subject, message, note=None):
    """Best effort. Always returns a log row, never raises on delivery failure."""
    log = WhatsappMessageLog(
        sender_id=sender.id if sender else None,
        recipient_id=recipient.id,
        to_number=recipient.whatsapp_number,
        subject=subject,
        message=message,
    )
    number = normalize_number(recipient.whatsapp_number)
    if not recipient.whatsapp_enabled or not number:
        log.status = "skipped"
        log.error = "WhatsApp disabled" if not recipient.whatsapp_enabled else "No WhatsApp number"
        db.session.add(log)
        return log

    variables = {
        "recipientName": recipient.name,
        "senderName": sender.name if sender else "System",
        "subject": subject,
        "message": message,
        "note": note or "",
        "contact": (sender.whatsapp_number or sender.email) if sender else "",
        "dateTime": now_local().strftime("%d %b %Y, %I:%M %p"),
    }
    try:
        log.provider_sid = get_provider().send(number, variables)
        log.status = "sent"
    except WhatsAppError as e:
        logger.warning("WhatsApp to user %s failed: %s", recipient.id, e)
        log.status = "failed"
        log.error = str(e)
    db.session.add(log)
    return log


def notify_user(actor, recipient, subject, message, *, note=None, type="general",
                entity_kind=None, entity_id=None, chat=True, whatsapp=True):
    """Message + in-app notification + WhatsApp for one recipient."""
    if recipient is None:
        return
    if chat and actor is not None:
        send_chat(actor.id, recipient.id, message, subject=subject, note=note)
    create_notifications([recipient.id], subject, body=message, type=type,
                         entity_kind=entity_kind, entity_id=entity_id)
    if whatsapp:
        send_whatsapp(actor, recipient, subject, message, note=note)
