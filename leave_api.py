# leave_api.py
from datetime import datetime

from flask import Blueprint, jsonify, abort
from flask_login import current_user

from models import db, User, LeaveRequest
from forms import json_form, LeaveRequestForm
from access import role_required, json_body, clean_text, form_error, MANAGERS, EVERYONE
from flags import get_flag
from notify import send_chat, notify_user
from logger import get_logger

logger = get_logger(__name__)

leave_bp = Blueprint("leave_api", __name__)


@leave_bp.get("/api/member/leave-requests")
@role_required(*EVERYONE)
def my_leave_requests():
    rows = (LeaveRequest.query
            .filter_by(user_id=current_user.id)
            .order_by(LeaveRequest.created_at.desc())
            .all())
    return jsonify({"requests": [r.to_dict() for r in rows],
                    "proofRequired": get_flag("leave_proof_required")})


@leave_bp.post("/api/member/leave-requests")
@role_required(*EVERYONE)
def submit_leave_request():
    form = json_form(LeaveRequestForm, json_body())
    if not form.validate():
        abort(400, description=form_error(form))

    supervisor = current_user.supervisor
    if supervisor is None:
        abort(400, description="No immediate supervisor is set for your account")
    if get_flag("leave_proof_required") and not form.proof_url.data:
        abort(400, description="Proof is required for leave requests")
    transfer_to = form.transfer_to.data
    if transfer_to is not None and db.session.get(User, transfer_to) is None:
        abort(400, description="Transfer user not found")

    req = LeaveRequest(
        user_id=current_user.id,
        start_date=form.start_date.data,
        end_date=form.end_date.data,
        reason=clean_text(form.reason.data, 2000),
        proof_url=(form.proof_url.data or "").strip() or None,
        status="pending",
        submitted_to_id=supervisor.id,
        transfer_to_id=transfer_to,
    )
    db.session.add(req)
    db.session.flush()

    span = f"{req.start_date.isoformat()} to {req.end_date.isoformat()}"
    send_chat(current_user.id, current_user.id, f"You requested leave from {span}. Reason: {req.reason}",
              subject="Leave request submitted")
    notify_user(current_user, supervisor, subject="Leave request",
                message=f"{current_user.name} requested leave from {span}. Reason: {req.reason}",
                type="leave_request", entity_kind="leave_request", entity_id=req.id)
    db.session.commit()
    logger.info("Leave request %s submitted by %s to %s", req.id, current_user.id, supervisor.id)
    return jsonify({"request": req.to_dict()}), 201


@leave_bp.get("/api/managers/leave-requests")
@role_required(*MANAGERS)
def list_leave_requests():
    q = LeaveRequest.query
    if current_user.role != "admin":
        q = q.filter(LeaveRequest.submitted_to_id == current_user.id)
    rows = q.order_by(LeaveRequest.created_at.desc()).all()
    return jsonify({"requests": [r.to_dict() for r in rows]})


@leave_bp.patch("/api/managers/leave-requests/<int:request_id>")
@role_required(*MANAGERS)
def decide_leave_request(request_id):
    data = json_body()
    status = data.get("status")
    if status not in ("approved", "rejected"):
        abort(400, description="Status must be approved or rejected")
    req = db.get_or_404(LeaveRequest, request_id, description="Leave request not found")
    if current_user.role != "admin" and req.submitted_to_id != current_user.id:
        abort(403, description="This request was not submitted to you")
    if req.status != "pending":
        abort(400, description="Request already decided")

    req.status = status
    req.approved_by_id = current_user.id
    req.approved_at = datetime.utcnow()
    req.decision_note = clean_text(data.get("note"), 2000) or None

    message = (f"Your leave request from {req.start_date.isoformat()} to "
               f"{req.end_date.isoformat()} has been {status}.")
    if req.decision_note:
        message += f" Note: {req.decision_note}"
    notify_user(current_user, req.user, subject=f"Leave {status}", message=message,
                type="leave_request", entity_kind="leave_request", entity_id=req.id)
    db.session.commit()
    return jsonify({"request": req.to_dict()})
