# flags.py
from models import db, SystemFlag

# key -> (label, default)
KNOWN_FLAGS = {
    "show_day_close_bypass": ("Allow day close outside the closing window", False),
    "block_mobile_day_close": ("Block day close from mobile devices", False),
    "routine_log_required_all": ("Routine log required for everyone", False),
    "routine_log_required_teachers": ("Routine log required for teachers", False),
    "routine_log_required_non_teachers": ("Routine log required for non-teachers", False),
    "leave_proof_required": ("Proof required for leave requests", False),
}


def get_flag(key: str) -> bool:
    row = SystemFlag.query.filter_by(key=key).first()
    if row is None:
        return KNOWN_FLAGS.get(key, ("", False))[1]
    return bool(row.value)


def set_flag(key: str, value: bool):
    row = SystemFlag.query.filter_by(key=key).first()
    if row is None:
        row = SystemFlag(key=key, value=bool(value))
        db.session.add(row)
    else:
        row.value = bool(value)
    return row


def all_flags():
    return [
        {"key": key, "label": label, "value": get_flag(key)}
        for key, (label, _default) in KNOWN_FLAGS.items()
    ]


def routine_log_required_for(user) -> bool:
    if get_flag("routine_log_required_all"):
        return True
    if user.is_teacher:
        return get_flag("routine_log_required_teachers")
    return get_flag("routine_log_required_non_teachers")
