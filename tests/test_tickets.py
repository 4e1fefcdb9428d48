import re
from datetime import datetime, timedelta

import pytest

from models import Notification


def raise_ticket(client, **overrides):
    payload = {
        "title": "Projector not working",
        "description": "Room 12 projector shows no signal",
        "categoryKey": "academics",
        "subcategoryKey": "resources",
    }
    payload.update(overrides)
    return client.post("/api/member/tickets", json=payload)


def hours_between(start, end):
    return (datetime.fromisoformat(end) - datetime.fromisoformat(start)) / timedelta(hours=1)


@pytest.fixture
def ticket(member_client):
    resp = raise_ticket(member_client, attachments=[{"name": "photo", "url": "https://files.example.com/p.jpg"}])
    assert resp.status_code == 201
    return resp.get_json()["ticket"]


def test_raise_ticket(app, ticket, ids):
    assert re.fullmatch(r"TCK-\d{4}-0001", ticket["ticketNumber"])
    assert ticket["priority"] == "normal"
    assert ticket["status"] == "open"
    assert ticket["queue"] == "academics"
    assert ticket["categoryLabel"] == "Academics • Teaching Resources"
    assert ticket["assignedTo"] == ids["coordinator"]
    assert [a["type"] for a in ticket["activities"]] == ["created", "assignment"]
    assert ticket["activities"][1]["message"] == "Auto-assigned to your immediate supervisor"
    assert hours_between(ticket["createdAt"], ticket["slaFirstResponseAt"]) == 24
    assert hours_between(ticket["createdAt"], ticket["slaResolveBy"]) == 72
    assert ticket["attachments"] == [{"name": "photo", "url": "https://files.example.com/p.jpg"}]

    with app.app_context():
        assert Notification.query.filter_by(user_id=ids["coordinator"], type="ticket").count() == 1


def test_raise_ticket_validation(member_client):
    missing = raise_ticket(member_client, title="")
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "Title is required"

    too_many = [{"url": f"https://x.example.com/{i}"} for i in range(6)]
    assert raise_ticket(member_client, attachments=too_many).status_code == 400
    assert raise_ticket(member_client, attachments=[{"url": "ftp://x"}]).status_code == 400

    fallback = raise_ticket(member_client, categoryKey="nonsense").get_json()["ticket"]
    assert fallback["category"] == "other"
    assert fallback["queue"] == "other"
    assert fallback["priority"] == "normal"


def test_member_listing_and_privacy(member_client, member2_client, ticket):
    listing = member_client.get("/api/member/tickets").get_json()
    assert [t["id"] for t in listing["tickets"]] == [ticket["id"]]
    assert listing["counts"]["open"] == 1
    assert listing["priorities"] == ["low", "normal", "high", "urgent"]

    detail = member_client.get(f"/api/member/tickets/{ticket['id']}").get_json()["ticket"]
    assert detail["canComment"] is False
    assert member2_client.get(f"/api/member/tickets/{ticket['id']}").status_code == 403
    assert member_client.get("/api/member/tickets/999").status_code == 404


def test_member_comment_window(app, member_client, coordinator_client, ticket, ids):
    url = f"/api/member/tickets/{ticket['id']}/comments"
    assert member_client.post(url, json={"comment": "Any update?"}).status_code == 403

    allow = coordinator_client.patch(f"/api/managers/tickets/{ticket['id']}",
                                     json={"action": "allow_member_comment", "hours": 2})
    assert allow.status_code == 200
    assert allow.get_json()["ticket"]["metadata"]["memberCommentAllowed"] is True

    assert member_client.get(f"/api/member/tickets/{ticket['id']}").get_json()["ticket"]["canComment"] is True
    assert member_client.post(url, json={"comment": ""}).status_code == 400
    assert member_client.post(url, json={"comment": "Still broken"}).status_code == 201

    coordinator_client.patch(f"/api/managers/tickets/{ticket['id']}", json={"action": "revoke_member_comment"})
    assert member_client.post(url, json={"comment": "Hello?"}).status_code == 403

    with app.app_context():
        titles = [n.title for n in Notification.query.filter_by(user_id=ids["member1"], type="ticket").all()]
    assert f"Replies closed on {ticket['ticketNumber']}" in titles


def test_manager_queue_views(coordinator_client, member3_client, ticket):
    facilities = raise_ticket(member3_client, categoryKey="facilities", subcategoryKey="plumbing").get_json()["ticket"]

    listing = coordinator_client.get("/api/managers/tickets").get_json()
    assert [t["id"] for t in listing["tickets"]] == [ticket["id"]]
    assert listing["queues"] == ["academics", "operations"]
    assert listing["queueSummary"] == {"total": 1, "open": 1, "escalated": 0}
    assert listing["statusSummary"]["open"] == 1

    assigned = coordinator_client.get("/api/managers/tickets?view=assigned").get_json()["tickets"]
    assert [t["id"] for t in assigned] == [ticket["id"]]
    assert coordinator_client.get("/api/managers/tickets?queue=finance").status_code == 403
    assert coordinator_client.get("/api/managers/tickets?view=everything").status_code == 400
    assert coordinator_client.get(f"/api/managers/tickets/{facilities['id']}").status_code == 403


def test_priority_change_recomputes_sla(coordinator_client, ticket):
    url = f"/api/managers/tickets/{ticket['id']}"
    same = coordinator_client.patch(url, json={"action": "priority", "priority": "normal"}).get_json()
    assert same["unchanged"] is True

    updated = coordinator_client.patch(url, json={"action": "priority", "priority": "high"}).get_json()["ticket"]
    assert updated["priority"] == "high"
    assert hours_between(updated["createdAt"], updated["slaFirstResponseAt"]) == 4
    assert hours_between(updated["createdAt"], updated["slaResolveBy"]) == 24
    assert updated["activities"][-1]["type"] == "priority_change"
    assert coordinator_client.patch(url, json={"action": "priority", "priority": "asap"}).status_code == 400


def test_status_lifecycle(app, coordinator_client, ticket, ids):
    url = f"/api/managers/tickets/{ticket['id']}"
    working = coordinator_client.patch(url, json={"action": "status", "status": "in_progress"}).get_json()["ticket"]
    assert working["firstResponseAt"] is not None

    closed = coordinator_client.patch(url, json={"action": "status", "status": "closed"}).get_json()["ticket"]
    assert closed["closedAt"] is not None

    reopened = coordinator_client.patch(url, json={"action": "status", "status": "open",
                                                   "note": "Issue came back"}).get_json()["ticket"]
    assert reopened["reopenedAt"] is not None
    assert reopened["closedAt"] is None
    assert reopened["activities"][-1]["message"] == "Issue came back"
    assert coordinator_client.patch(url, json={"action": "status", "status": "done"}).status_code == 400

    with app.app_context():
        titles = [n.title for n in Notification.query.filter_by(user_id=ids["member1"]).all()]
        assert f"Ticket {ticket['ticketNumber']} is now in progress" in titles


def test_escalation(coordinator_client, ticket, ids):
    url = f"/api/managers/tickets/{ticket['id']}"
    assert coordinator_client.patch(url, json={"action": "escalate"}).status_code == 400

    resp = coordinator_client.patch(url, json={"action": "escalate", "toUserId": ids["admin"], "note": "Needs budget"})
    body = resp.get_json()["ticket"]
    assert body["status"] == "escalated"
    assert body["escalated"] is True
    assert body["assignedTo"] == ids["admin"]
    assert body["metadata"]["escalation"]["to"] == ids["admin"]

    again = coordinator_client.patch(url, json={"action": "escalate", "toUserId": ids["admin"]})
    assert again.status_code == 409


def test_assign_and_comment(admin_client, ticket, ids):
    url = f"/api/managers/tickets/{ticket['id']}"
    assert admin_client.patch(url, json={"action": "assign", "assigneeId": ids["member2"]}).status_code == 400
    assigned = admin_client.patch(url, json={"action": "assign", "assigneeId": ids["admin"]}).get_json()["ticket"]
    assert assigned["assignedToName"] == "Admin"

    commented = admin_client.patch(url, json={"action": "comment", "comment": "Ordering a new lamp"}).get_json()
    assert commented["ticket"]["activities"][-1]["message"] == "Ordering a new lamp"
    assert commented["ticket"]["firstResponseAt"] is not None
    assert admin_client.patch(url, json={"action": "archive"}).status_code == 400
