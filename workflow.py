# workflow.py
"""Assigned-task status vocabulary, per-role transitions and status derivation."""

TASK_STATUSES = ("not_started", "in_progress", "pending_verification", "verified", "done")
MEMBER_SETTABLE = ("not_started", "in_progress", "pending_verification", "done")
ROUTINE_STATUSES = ("not_started", "in_progress", "done", "not_done", "verified")

STATUS_LABELS = {
    "not_started": "Not started",
    "in_progress": "In progress",
    "pending_verification": "Pending verification",
    "verified": "Verified",
    "done": "Done",
    "not_done": "Not done",
}

DOER_TRANSITIONS = {
    "not_started": ("in_progress",),
    "in_progress": ("pending_verification",),
}

OBSERVER_TRANSITIONS = {
    "pending_verification": ("in_progress", "done", "verified"),
    "done": ("pending_verification", "verified"),
    "verified": ("in_progress", "pending_verification"),
}

SPRINT_TRANSITIONS = {
    "not_started": ("in_progress",),
    "in_progress": ("done",),
    "done": ("in_progress",),
}

FINISHED = ("done", "verified")
ACTIVE = ("in_progress", "pending_verification")


def options_for(status: str, role: str = "doer"):
    table = {
        "doer": DOER_TRANSITIONS,
        "observer": OBSERVER_TRANSITIONS,
        "sprint": SPRINT_TRANSITIONS,
    }[role]
    return [{"value": s, "label": STATUS_LABELS[s]} for s in table.get(status, ())]


def can_transition(current: str, target: str, role: str = "doer") -> bool:
    return target in [o["value"] for o in options_for(current, role)]


def _derive(statuses):
    if statuses and all(s in FINISHED for s in statuses):
        return "done"
    if any(s in ACTIVE for s in statuses):
        return "in_progress"
    return "not_started"


def derive_status(sprint_statuses, assignee_statuses=()):
    """Overall status: sprints win when present, otherwise the assignees decide."""
    sprint_statuses = list(sprint_statuses or [])
    if sprint_statuses:
        return _derive(sprint_statuses)
    return _derive(list(assignee_statuses or []))


def derive_task_status(task):
    sprints = [sp.status for st in task.statuses for sp in st.sprints]
    return derive_status(sprints, [st.status for st in task.statuses])
