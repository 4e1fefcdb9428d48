# forms.py
import re

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import (
    StringField, PasswordField, SubmitField, BooleanField, SelectField,
    IntegerField, TextAreaField, DateField
)
from wtforms.validators import DataRequired, Length, Optional, Regexp, ValidationError
from sqlalchemy import func
from models import User, ROLES, TEAM_MANAGER_TYPES, USER_TYPES

EMAIL_RE = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
URL_RE = r"^https?://\S+$"

ROLE_CHOICES = [(r, r.replace("_", " ").title()) for r in ROLES]
TYPE_CHOICES = [(t, t.replace("_", " ").title()) for t in USER_TYPES]
TM_TYPE_CHOICES = [("", "-")] + [(t, t.replace("_", " ").title()) for t in TEAM_MANAGER_TYPES]

GUARDIAN_STATUSES = ("new_lead", "high_interest", "nurturing", "follow_up_needed", "enrolled", "inactive")

ANNOUNCEMENT_TARGETS = ("team_members", "students", "all")
ANNOUNCEMENT_PROGRAMS = ("MSP", "MSP-E", "MHCP", "MNP", "MGHP", "MAP", "M4E", "Other")


def _snake(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def json_form(form_cls, data, **kwargs):
    """Bind a flat JSON object to a form. camelCase keys map to snake_case fields."""
    formdata = MultiDict()
    for key, value in (data or {}).items():
        if value is None or isinstance(value, (dict, list)):
            continue
        if isinstance(value, bool):
            value = "y" if value else ""
        formdata.add(_snake(key), str(value))
    return form_cls(formdata=formdata, meta={"csrf": False}, **kwargs)


# --- Auth ---

class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])
    submit = SubmitField("Log in")


# --- Admin: users ---

class _UserFieldsMixin:
    def validate_team_manager_type(self, field):
        if self.role.data == "team_manager" and not field.data:
            raise ValidationError("Team manager type is required for team managers.")

    def _email_taken(self, email, exclude_id=None):
        q = User.query.filter(func.lower(User.email) == email.strip().lower())
        if exclude_id:
            q = q.filter(User.id != exclude_id)
        return q.first() is not None


class UserCreateForm(_UserFieldsMixin, FlaskForm):
    name = StringField("Name", validators=[DataRequired(), Length(min=1, max=120)])
    email = StringField("Email", validators=[DataRequired(), Length(max=255),
                                             Regexp(EMAIL_RE, message="Invalid email format.")])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=6, max=128)])
    role = SelectField("Role", choices=ROLE_CHOICES, default="member")
    type = SelectField("User type", choices=TYPE_CHOICES, default="residential")
    team_manager_type = SelectField("Team manager type", choices=TM_TYPE_CHOICES, default="")
    whatsapp_number = StringField("WhatsApp number", validators=[Optional(), Length(max=32)])
    whatsapp_enabled = BooleanField("WhatsApp enabled", default=True)
    immediate_supervisor = IntegerField("Immediate supervisor id", validators=[Optional()])
    is_teacher = BooleanField("Teacher")
    submit = SubmitField("Create user")

    def validate_email(self, field):
        if self._email_taken(field.data):
            raise ValidationError("Email already exists.")


class UserEditForm(_UserFieldsMixin, FlaskForm):
    name = StringField("Name", validators=[DataRequired(), Length(min=1, max=120)])
    email = StringField("Email", validators=[DataRequired(), Length(max=255),
                                             Regexp(EMAIL_RE, message="Invalid email format.")])
    role = SelectField("Role", choices=ROLE_CHOICES, default="member")
    type = SelectField("User type", choices=TYPE_CHOICES, default="residential")
    team_manager_type = SelectField("Team manager type", choices=TM_TYPE_CHOICES, default="")
    whatsapp_number = StringField("WhatsApp number", validators=[Optional(), Length(max=32)])
    whatsapp_enabled = BooleanField("WhatsApp enabled", default=True)
    immediate_supervisor = IntegerField("Immediate supervisor id", validators=[Optional()])
    is_teacher = BooleanField("Teacher")
    is_active = BooleanField("Active", default=True)
    submit = SubmitField("Save")

    def __init__(self, user_id=None, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id

    def validate_email(self, field):
        if self._email_taken(field.data, exclude_id=self.user_id):
            raise ValidationError("Email already exists.")

    def validate_immediate_supervisor(self, field):
        if field.data and self.user_id and field.data == self.user_id:
            raise ValidationError("A user cannot supervise themselves.")


class ResetPasswordForm(FlaskForm):
    password = PasswordField("New password", validators=[DataRequired(), Length(min=6, max=128)])
    submit = SubmitField("Reset password")


# --- Tickets ---

class TicketForm(FlaskForm):
    title = StringField("Title", validators=[DataRequired(message="Title is required"), Length(max=180)])
    description = TextAreaField("Description", validators=[DataRequired(message="Description is required"),
                                                           Length(max=2000)])
    category_key = StringField("Category", validators=[Optional(), Length(max=40)])
    subcategory_key = StringField("Subcategory", validators=[Optional(), Length(max=60)])


# --- Enrollment ---

class GuardianForm(FlaskForm):
    name = StringField("Name", validators=[DataRequired(message="Name is required"), Length(max=120)])
    whatsapp = StringField("WhatsApp", validators=[DataRequired(message="WhatsApp is required"), Length(max=32)])
    location = StringField("Location", validators=[DataRequired(message="Location is required"), Length(max=255)])
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=4000)])


# --- Resources ---

class ResourceCategoryForm(FlaskForm):
    name = StringField("Name", validators=[DataRequired(message="Name is required"), Length(max=120)])
    parent_id = IntegerField("Parent category", validators=[Optional()])
    description = TextAreaField("Description", validators=[Optional(), Length(max=1000)])


# --- Announcements ---

class AnnouncementForm(FlaskForm):
    target = SelectField("Target", choices=[(t, t) for t in ANNOUNCEMENT_TARGETS], default="team_members")
    program = SelectField("Program", choices=[(p, p) for p in ANNOUNCEMENT_PROGRAMS], default="Other")
    program_title = StringField("Program title", validators=[Length(max=120)])
    subject = StringField("Subject", validators=[Optional(), Length(max=255)])
    content = TextAreaField("Content", validators=[DataRequired(message="Content is required")])

    def validate_program_title(self, field):
        if self.program.data == "Other" and not (field.data or "").strip():
            raise ValidationError("Program title is required for Other.")


# --- Leave ---

class LeaveRequestForm(FlaskForm):
    start_date = DateField("Start date", format="%Y-%m-%d", validators=[DataRequired()])
    end_date = DateField("End date", format="%Y-%m-%d", validators=[DataRequired()])
    reason = TextAreaField("Reason", validators=[DataRequired(message="Reason is required"), Length(max=2000)])
    proof_url = StringField("Proof URL", validators=[Optional(), Regexp(URL_RE, message="Proof must be an http(s) URL.")])
    transfer_to = IntegerField("Transfer duties to", validators=[Optional()])

    def validate_end_date(self, field):
        if self.start_date.data and field.data and field.data < self.start_date.data:
            raise ValidationError("End date must be on or after the start date.")
