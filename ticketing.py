# ticketing.py
from datetime import datetime, timedelta

SLA_RULES = {
    "low": {"firstResponseHours": 48, "resolveHours": 120},
    "normal": {"firstResponseHours": 24, "resolveHours": 72},
    "high": {"firstResponseHours": 4, "resolveHours": 24},
    "urgent": {"firstResponseHours": 1, "resolveHours": 8},
}

PRIORITIES = ("low", "normal", "high", "urgent")

STATUS_FLOW = ("open", "triaged", "in_progress", "waiting_user", "escalated", "resolved", "closed")
OPEN_STATUSES = ("open", "triaged", "in_progress", "waiting_user", "escalated")

CATEGORY_TREE = [
    {"key": "facilities", "label": "Facilities & Infrastructure", "queue": "facilities", "subcategories": [
        {"key": "electricity", "label": "Electricity"},
        {"key": "plumbing", "label": "Plumbing"},
        {"key": "furniture", "label": "Furniture"},
        {"key": "cleaning", "label": "Cleaning & Housekeeping"},
        {"key": "safety", "label": "Safety & Compliance"},
    ]},
    {"key": "it", "label": "IT & Systems", "queue": "it", "subcategories": [
        {"key": "hardware", "label": "Hardware"},
        {"key": "software", "label": "Software"},
        {"key": "network", "label": "Network"},
        {"key": "access", "label": "Access & Credentials"},
    ]},
    {"key": "finance", "label": "Finance & Accounts", "queue": "finance", "subcategories": [
        {"key": "payments", "label": "Payments"},
        {"key": "reimbursements", "label": "Reimbursements"},
        {"key": "fee", "label": "Student Fees"},
        {"key": "audit", "label": "Audit & Compliance"},
    ]},
    {"key": "academics", "label": "Academics", "queue": "academics", "subcategories": [
        {"key": "curriculum", "label": "Curriculum"},
        {"key": "assessment", "label": "Assessment"},
        {"key": "resources", "label": "Teaching Resources"},
        {"key": "event", "label": "Academic Events"},
    ]},
    {"key": "hostel", "label": "Hostel & Residential", "queue": "hostel", "subcategories": [
        {"key": "maintenance", "label": "Maintenance"},
        {"key": "mess", "label": "Mess & Kitchen"},
        {"key": "discipline", "label": "Discipline"},
        {"key": "medical", "label": "Medical"},
    ]},
    {"key": "operations", "label": "Operations", "queue": "operations", "subcategories": [
        {"key": "staffing", "label": "Staffing"},
        {"key": "logistics", "label": "Logistics"},
        {"key": "procurement", "label": "Procurement"},
        {"key": "communication", "label": "Communication"},
    ]},
    {"key": "other", "label": "Other", "queue": "other", "subcategories": [
        {"key": "general", "label": "General"},
        {"key": "suggestion", "label": "Suggestion"},
        {"key": "incident", "label": "Incident"},
    ]},
]

ALL_QUEUES = tuple(c["queue"] for c in CATEGORY_TREE)

QUEUE_ACCESS = {
    "accountant": ("finance", "operations"),
    "hostel_incharge": ("hostel", "facilities", "operations"),
    "coordinator": ("academics", "operations"),
    "head_incharge": ("operations", "facilities"),
    "chief_counsellor": ("operations",),
    "principal": ALL_QUEUES,
}


def find_category(key):
    if not key:
        return None
    return next((c for c in CATEGORY_TREE if c["key"] == key), None)


def find_subcategory(category, key):
    if not category or not key:
        return None
    return next((s for s in category["subcategories"] if s["key"] == key), None)


def compute_sla(priority, base=None):
    """(first_response_due, resolve_by) for a ticket raised at `base`."""
    rule = SLA_RULES.get((priority or "normal").lower(), SLA_RULES["normal"])
    created = base or datetime.utcnow()
    return (
        created + timedelta(hours=rule["firstResponseHours"]),
        created + timedelta(hours=rule["resolveHours"]),
    )


def format_ticket_number(ticket_id: int, created_at=None) -> str:
    year = (created_at or datetime.utcnow()).year
    return f"TCK-{year}-{ticket_id:04d}"


def queues_for(user):
    if user.role == "admin":
        return ALL_QUEUES
    if user.role != "team_manager":
        return ()
    return QUEUE_ACCESS.get(user.team_manager_type or "", ("operations",))


def summary_label(category_key, subcategory_key):
    category = find_category(category_key)
    sub = find_subcategory(category, subcategory_key)
    parts = [category["label"] if category else None, sub["label"] if sub else None]
    return " • ".join(p for p in parts if p)
