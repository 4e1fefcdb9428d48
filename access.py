# access.py
from functools import wraps
import re

from flask import abort, request
from flask_login import current_user

ADMIN = ("admin",)
MANAGERS = ("admin", "team_manager")
STAFF = ("member", "team_manager")
EVERYONE = ("admin", "team_manager", "member")

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def role_required(*roles):
    """Reject anonymous users and users outside `roles` with a 401."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401, description="Unauthorized")
            if roles and current_user.role not in roles:
                abort(401, description="Unauthorized")
            return view(*args, **kwargs)
        return wrapped
    return decorator


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def to_int(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def clamp(value, low, high):
    return max(low, min(high, value))


def to_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def clean_text(value, max_len=None):
    text = _CONTROL_CHARS.sub("", str(value or "")).strip()
    if max_len is not None:
        text = text[:max_len]
    return text


def is_http_url(value) -> bool:
    return bool(re.match(r"^https?://\S+$", str(value or "").strip(), re.IGNORECASE))


def form_error(form):
    """First WTForms error message, prefixed with the field label."""
    for name, errors in form.errors.items():
        if errors:
            label = getattr(form, name).label.text if hasattr(form, name) else name
            if errors[0].lower().startswith(label.lower()):
                return errors[0]
            return f"{label}: {errors[0]}"
    return "Invalid input"
