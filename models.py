# models.py
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


ROLES = ("admin", "team_manager", "member")
TEAM_MANAGER_TYPES = (
    "head_incharge", "coordinator", "accountant",
    "chief_counsellor", "hostel_incharge", "principal",
)
USER_TYPES = ("residential", "non_residential", "semi_residential")


def iso(value):
    return value.isoformat() if value is not None else None


# ----- People -----

class User(UserMixin, db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="member")
    team_manager_type = db.Column(db.String(40), nullable=True)
    type = db.Column(db.String(30), nullable=False, default="residential")
    whatsapp_number = db.Column(db.String(32), nullable=True)
    whatsapp_enabled = db.Column(db.Boolean, nullable=False, default=True)
    immediate_supervisor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    is_teacher = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    supervisor = db.relationship("User", remote_side=[id], uselist=False)

    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "teamManagerType": self.team_manager_type,
            "type": self.type,
            "whatsappNumber": self.whatsapp_number,
            "whatsappEnabled": bool(self.whatsapp_enabled),
            "immediateSupervisor": self.immediate_supervisor_id,
            "isTeacher": bool(self.is_teacher),
            "isActive": bool(self.is_active),
        }


# ----- Attendance -----

class OpenCloseTime(db.Model):
    __tablename__ = "open_close_times"
    id = db.Column(db.Integer, primary_key=True)
    user_type = db.Column(db.String(30), unique=True, nullable=False)
    day_open_time = db.Column(db.Time, nullable=False)
    day_close_time = db.Column(db.Time, nullable=False)
    closing_window_start = db.Column(db.Time, nullable=False)
    closing_window_end = db.Column(db.Time, nullable=False)

    def to_dict(self):
        fmt = "%H:%M:%S"
        return {
            "userType": self.user_type,
            "dayOpenTime": self.day_open_time.strftime(fmt),
            "dayCloseTime": self.day_close_time.strftime(fmt),
            "closingWindowStart": self.closing_window_start.strftime(fmt),
            "closingWindowEnd": self.closing_window_end.strftime(fmt),
        }


class DayOpenRecord(db.Model):
    __tablename__ = "day_open_records"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    opened_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    closed_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("user_id", "date", name="uq_day_open_user_date"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "date": iso(self.date),
            "dayOpenedAt": iso(self.opened_at),
            "dayClosedAt": iso(self.closed_at),
        }


class DayCloseRequest(db.Model):
    __tablename__ = "day_close_requests"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    assigned_tasks_updates = db.Column(db.JSON, nullable=True)
    routine_tasks_updates = db.Column(db.JSON, nullable=True)
    routine_log = db.Column(db.Text, nullable=True)
    general_log = db.Column(db.Text, nullable=True)
    mri_cleared = db.Column(db.Boolean, nullable=True)
    mri_report = db.Column(db.JSON, nullable=True)
    bypassed = db.Column(db.Boolean, nullable=False, default=False)
    approved_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    supervisor_routine_log = db.Column(db.Text, nullable=True)
    supervisor_general_log = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship("User", foreign_keys=[user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_id])

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user.name if self.user else None,
            "date": iso(self.date),
            "status": self.status,
            "assignedTasksUpdates": self.assigned_tasks_updates or [],
            "routineTasksUpdates": self.routine_tasks_updates or [],
            "routineLog": self.routine_log,
            "generalLog": self.general_log,
            "mriCleared": self.mri_cleared,
            "mriReport": self.mri_report,
            "bypassed": bool(self.bypassed),
            "approvedBy": self.approved_by_id,
            "approvedAt": iso(self.approved_at),
            "ISRoutineLog": self.supervisor_routine_log,
            "ISGeneralLog": self.supervisor_general_log,
            "createdAt": iso(self.created_at),
        }


class GeneralLog(db.Model):
    __tablename__ = "general_logs"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


# ----- Routine tasks -----

class RoutineTask(db.Model):
    __tablename__ = "routine_tasks"
    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.Text, nullable=False)
    member_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    member = db.relationship("User")
    daily_statuses = db.relationship("RoutineTaskDailyStatus", backref="task", cascade="all, delete-orphan")
    logs = db.relationship("RoutineTaskLog", backref="task", cascade="all, delete-orphan")


class RoutineTaskDailyStatus(db.Model):
    __tablename__ = "routine_task_daily_statuses"
    id = db.Column(db.Integer, primary_key=True)
    routine_task_id = db.Column(db.Integer, db.ForeignKey("routine_tasks.id"), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(30), nullable=False, default="not_started")
    comment = db.Column(db.Text, nullable=True)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("routine_task_id", "date", name="uq_routine_status_task_date"),
    )


class RoutineTaskLog(db.Model):
    __tablename__ = "routine_task_logs"
    id = db.Column(db.Integer, primary_key=True)
    routine_task_id = db.Column(db.Integer, db.ForeignKey("routine_tasks.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    action = db.Column(db.String(40), nullable=False)
    details = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


# ----- Assigned tasks -----

class AssignedTask(db.Model):
    __tablename__ = "assigned_tasks"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    task_type = db.Column(db.String(20), nullable=False, default="assigned")
    deadline = db.Column(db.DateTime, nullable=True)
    resources = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    created_by = db.relationship("User")
    statuses = db.relationship("AssignedTaskStatus", backref="task", cascade="all, delete-orphan")
    logs = db.relationship("AssignedTaskLog", backref="task", cascade="all, delete-orphan",
                           order_by="AssignedTaskLog.id")


class AssignedTaskStatus(db.Model):
    __tablename__ = "assigned_task_statuses"
    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("assigned_tasks.id"), nullable=False)
    member_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(30), nullable=False, default="not_started")
    comment = db.Column(db.Text, nullable=True)
    assigned_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    verified_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    member = db.relationship("User", foreign_keys=[member_id])
    sprints = db.relationship("Sprint", backref="task_status", cascade="all, delete-orphan",
                              order_by="Sprint.id")

    __table_args__ = (
        db.UniqueConstraint("task_id", "member_id", name="uq_task_status_task_member"),
    )


class Sprint(db.Model):
    __tablename__ = "sprints"
    id = db.Column(db.Integer, primary_key=True)
    task_status_id = db.Column(db.Integer, db.ForeignKey("assigned_task_statuses.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(30), nullable=False, default="not_started")
    verified_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "verifiedBy": self.verified_by_id,
            "verifiedAt": iso(self.verified_at),
        }


class AssignedTaskLog(db.Model):
    __tablename__ = "assigned_task_logs"
    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("assigned_tasks.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    sprint_id = db.Column(db.Integer, db.ForeignKey("sprints.id", ondelete="SET NULL"), nullable=True)
    action = db.Column(db.String(40), nullable=False)
    details = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "sprintId": self.sprint_id,
            "action": self.action,
            "details": self.details,
            "createdAt": iso(self.created_at),
        }


# ----- Messaging -----

class Message(db.Model):
    __tablename__ = "messages"
    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    subject = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=False)
    note = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="sent")
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    sender = db.relationship("User", foreign_keys=[sender_id])
    recipient = db.relationship("User", foreign_keys=[recipient_id])

    def to_dict(self):
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "senderName": self.sender.name if self.sender else None,
            "recipientId": self.recipient_id,
            "subject": self.subject,
            "content": self.content,
            "note": self.note,
            "status": self.status,
            "createdAt": iso(self.created_at),
        }


class Notification(db.Model):
    __tablename__ = "notifications"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    type = db.Column(db.String(40), nullable=False, default="general")
    title = db.Column(db.String(255), nullable=False)
    body = db.Column(db.Text, nullable=True)
    entity_kind = db.Column(db.String(40), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    meta = db.Column(db.JSON, nullable=True)
    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "body": self.body,
            "entityKind": self.entity_kind,
            "entityId": self.entity_id,
            "meta": self.meta or {},
            "read": bool(self.read),
            "createdAt": iso(self.created_at),
        }


class WhatsappMessageLog(db.Model):
    __tablename__ = "whatsapp_message_logs"
    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    to_number = db.Column(db.String(32), nullable=True)
    subject = db.Column(db.String(255), nullable=True)
    message = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="sent")
    error = db.Column(db.Text, nullable=True)
    provider_sid = db.Column(db.String(80), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "recipientId": self.recipient_id,
            "toNumber": self.to_number,
            "subject": self.subject,
            "message": self.message,
            "status": self.status,
            "error": self.error,
            "sid": self.provider_sid,
            "createdAt": iso(self.created_at),
        }


# ----- Tickets -----

class Ticket(db.Model):
    __tablename__ = "tickets"
    id = db.Column(db.Integer, primary_key=True)
    ticket_number = db.Column(db.String(40), unique=True, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    queue = db.Column(db.String(40), nullable=False, default="operations")
    category = db.Column(db.String(40), nullable=False)
    subcategory = db.Column(db.String(80), nullable=True)
    title = db.Column(db.String(180), nullable=False)
    description = db.Column(db.Text, nullable=False)
    priority = db.Column(db.String(20), nullable=False, default="normal")
    status = db.Column(db.String(20), nullable=False, default="open")
    escalated = db.Column(db.Boolean, nullable=False, default=False)
    attachments = db.Column(db.JSON, nullable=True)
    meta = db.Column(db.JSON, nullable=True)
    sla_first_response_at = db.Column(db.DateTime, nullable=True)
    sla_resolve_by = db.Column(db.DateTime, nullable=True)
    first_response_at = db.Column(db.DateTime, nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)
    closed_at = db.Column(db.DateTime, nullable=True)
    reopened_at = db.Column(db.DateTime, nullable=True)
    last_activity_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    created_by = db.relationship("User", foreign_keys=[created_by_id])
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])
    activities = db.relationship("TicketActivity", backref="ticket", cascade="all, delete-orphan",
                                 order_by="TicketActivity.id")

    def to_dict(self):
        return {
            "id": self.id,
            "ticketNumber": self.ticket_number,
            "createdBy": self.created_by_id,
            "createdByName": self.created_by.name if self.created_by else None,
            "assignedTo": self.assigned_to_id,
            "assignedToName": self.assigned_to.name if self.assigned_to else None,
            "queue": self.queue,
            "category": self.category,
            "subcategory": self.subcategory,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "escalated": bool(self.escalated),
            "attachments": self.attachments or [],
            "metadata": self.meta or {},
            "slaFirstResponseAt": iso(self.sla_first_response_at),
            "slaResolveBy": iso(self.sla_resolve_by),
            "firstResponseAt": iso(self.first_response_at),
            "resolvedAt": iso(self.resolved_at),
            "closedAt": iso(self.closed_at),
            "reopenedAt": iso(self.reopened_at),
            "lastActivityAt": iso(self.last_activity_at),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class TicketActivity(db.Model):
    __tablename__ = "ticket_activities"
    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(db.Integer, db.ForeignKey("tickets.id"), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    type = db.Column(db.String(40), nullable=False)
    message = db.Column(db.Text, nullable=True)
    from_status = db.Column(db.String(20), nullable=True)
    to_status = db.Column(db.String(20), nullable=True)
    meta = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    author = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "message": self.message,
            "fromStatus": self.from_status,
            "toStatus": self.to_status,
            "metadata": self.meta or {},
            "authorId": self.author_id,
            "authorName": self.author.name if self.author else None,
            "createdAt": iso(self.created_at),
        }


# ----- Enrollment CRM -----

class Guardian(db.Model):
    __tablename__ = "guardians"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, index=True)
    whatsapp = db.Column(db.String(32), nullable=False)
    location = db.Column(db.String(255), nullable=False)
    interests = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(30), nullable=False, default="new_lead")
    engagement_score = db.Column(db.Integer, nullable=False, default=0)
    last_contact = db.Column(db.DateTime, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    children = db.relationship("GuardianChild", backref="guardian", cascade="all, delete-orphan",
                               order_by="GuardianChild.id")
    interactions = db.relationship("GuardianInteraction", backref="guardian", cascade="all, delete-orphan",
                                   order_by="GuardianInteraction.created_at.desc()")

    def to_dict(self, interaction_limit=10):
        return {
            "id": self.id,
            "name": self.name,
            "whatsapp": self.whatsapp,
            "location": self.location,
            "interests": self.interests or [],
            "notes": self.notes,
            "status": self.status,
            "engagementScore": self.engagement_score,
            "lastContact": iso(self.last_contact),
            "createdAt": iso(self.created_at),
            "children": [c.to_dict() for c in self.children],
            "interactions": [i.to_dict() for i in self.interactions[:interaction_limit]],
        }


class GuardianChild(db.Model):
    __tablename__ = "guardian_children"
    id = db.Column(db.Integer, primary_key=True)
    guardian_id = db.Column(db.Integer, db.ForeignKey("guardians.id"), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    age = db.Column(db.Integer, nullable=True)
    current_school = db.Column(db.String(255), nullable=True)
    grade = db.Column(db.String(40), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "age": self.age,
            "currentSchool": self.current_school,
            "grade": self.grade,
        }


class GuardianInteraction(db.Model):
    __tablename__ = "guardian_interactions"
    id = db.Column(db.Integer, primary_key=True)
    guardian_id = db.Column(db.Integer, db.ForeignKey("guardians.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    type = db.Column(db.String(30), nullable=False)
    content = db.Column(db.Text, nullable=False)
    outcome = db.Column(db.Text, nullable=True)
    whatsapp_status = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "outcome": self.outcome,
            "whatsappStatus": self.whatsapp_status,
            "userId": self.user_id,
            "createdAt": iso(self.created_at),
        }


# ----- Resources -----

class ResourceCategory(db.Model):
    __tablename__ = "resource_categories"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("resource_categories.id"), nullable=True)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "parentId": self.parent_id,
            "description": self.description,
        }


class Resource(db.Model):
    __tablename__ = "resources"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    asset_tag = db.Column(db.String(80), unique=True, nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey("resource_categories.id"), nullable=True)
    type = db.Column(db.String(80), nullable=True)
    serial_no = db.Column(db.String(120), nullable=True)
    vendor = db.Column(db.String(120), nullable=True)
    purchase_date = db.Column(db.Date, nullable=True)
    warranty_end = db.Column(db.Date, nullable=True)
    cost = db.Column(db.Numeric(12, 2), nullable=True)
    building = db.Column(db.String(120), nullable=True)
    room = db.Column(db.String(120), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="available")
    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    category = db.relationship("ResourceCategory")
    logs = db.relationship("ResourceLog", backref="resource", cascade="all, delete-orphan",
                           order_by="ResourceLog.created_at.desc()")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "assetTag": self.asset_tag,
            "categoryId": self.category_id,
            "categoryName": self.category.name if self.category else None,
            "type": self.type,
            "serialNo": self.serial_no,
            "vendor": self.vendor,
            "purchaseDate": iso(self.purchase_date),
            "warrantyEnd": iso(self.warranty_end),
            "cost": float(self.cost) if self.cost is not None else None,
            "building": self.building,
            "room": self.room,
            "status": self.status,
            "assignedTo": self.assigned_to_id,
            "notes": self.notes,
            "tags": self.tags or [],
            "createdAt": iso(self.created_at),
        }


class ResourceLog(db.Model):
    __tablename__ = "resource_logs"
    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)
    kind = db.Column(db.String(20), nullable=False)
    by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    to_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "kind": self.kind,
            "byUserId": self.by_user_id,
            "toUserId": self.to_user_id,
            "notes": self.notes,
            "createdAt": iso(self.created_at),
        }


# ----- Announcements, leave, flags, presence -----

class Announcement(db.Model):
    __tablename__ = "announcements"
    id = db.Column(db.Integer, primary_key=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    target = db.Column(db.String(20), nullable=False)
    program = db.Column(db.String(20), nullable=False)
    program_title = db.Column(db.String(120), nullable=True)
    subject = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=False)
    attachments = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    created_by = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "createdBy": self.created_by_id,
            "createdByName": self.created_by.name if self.created_by else None,
            "target": self.target,
            "program": self.program,
            "programTitle": self.program_title,
            "subject": self.subject,
            "content": self.content,
            "attachments": self.attachments or [],
            "createdAt": iso(self.created_at),
        }


class LeaveRequest(db.Model):
    __tablename__ = "leave_requests"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    proof_url = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    submitted_to_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    transfer_to_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    decision_note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship("User", foreign_keys=[user_id])

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user.name if self.user else None,
            "startDate": iso(self.start_date),
            "endDate": iso(self.end_date),
            "reason": self.reason,
            "proofUrl": self.proof_url,
            "status": self.status,
            "submittedTo": self.submitted_to_id,
            "transferTo": self.transfer_to_id,
            "approvedBy": self.approved_by_id,
            "approvedAt": iso(self.approved_at),
            "decisionNote": self.decision_note,
            "createdAt": iso(self.created_at),
        }


class SystemFlag(db.Model):
    __tablename__ = "system_flags"
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(80), unique=True, nullable=False)
    value = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PresenceSession(db.Model):
    __tablename__ = "presence_sessions"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)
    item_id = db.Column(db.Integer, nullable=True)
    item_title = db.Column(db.String(255), nullable=True)
    note = db.Column(db.Text, nullable=True)
    started_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    ended_at = db.Column(db.DateTime, nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user.name if self.user else None,
            "type": self.type,
            "itemId": self.item_id,
            "itemTitle": self.item_title,
            "note": self.note,
            "startedAt": iso(self.started_at),
            "endedAt": iso(self.ended_at),
            "active": bool(self.active),
        }
