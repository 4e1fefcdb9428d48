from models import db, Message, WhatsappMessageLog


def test_chat_roundtrip(app, member_client, coordinator_client, ids):
    resp = member_client.post("/api/member/messages",
                              json={"recipientId": ids["coordinator"], "content": "Need the lab key"})
    assert resp.status_code == 201
    sent = resp.get_json()["message"]
    assert sent["senderId"] == ids["member1"]
    assert sent["status"] == "sent"

    inbox = coordinator_client.get("/api/member/messages").get_json()["messages"]
    assert [m["content"] for m in inbox] == ["Need the lab key"]

    notes = coordinator_client.get("/api/member/notifications").get_json()
    assert notes["unreadCount"] == 1
    assert notes["notifications"][0]["title"] == "New message from Asha"

    read = coordinator_client.patch("/api/member/messages/read", json={"senderId": ids["member1"]})
    assert read.get_json()["updated"] == 1
    with app.app_context():
        assert db.session.get(Message, sent["id"]).status == "read"


def test_chat_validation(member_client, ids):
    assert member_client.post("/api/member/messages", json={"recipientId": ids["coordinator"]}).status_code == 400
    assert member_client.post("/api/member/messages", json={"recipientId": 999, "content": "hi"}).status_code == 404
    assert member_client.patch("/api/member/messages/read", json={}).status_code == 400
    assert member_client.patch("/api/member/messages/read", json={"ids": 5}).status_code == 400
    assert member_client.patch("/api/member/messages/read", json={"ids": []}).status_code == 400
    assert member_client.patch("/api/member/messages/read", json=[1, 2]).status_code == 400


def test_notification_read_flags(member_client, coordinator_client, ids):
    for text in ("one", "two"):
        member_client.post("/api/member/messages", json={"recipientId": ids["coordinator"], "content": text})

    notes = coordinator_client.get("/api/member/notifications").get_json()["notifications"]
    first = notes[0]["id"]
    resp = coordinator_client.patch("/api/member/notifications", json={"id": first})
    assert resp.get_json()["updated"] == 1
    unread = coordinator_client.get("/api/member/notifications?unread=true").get_json()
    assert [n["id"] for n in unread["notifications"]] == [notes[1]["id"]]

    coordinator_client.patch("/api/member/notifications", json={"all": True})
    assert coordinator_client.get("/api/member/notifications").get_json()["unreadCount"] == 0
    assert coordinator_client.patch("/api/member/notifications", json={"id": 999}).status_code == 404
    assert coordinator_client.patch("/api/member/notifications", json={}).status_code == 400


def test_direct_whatsapp_message(app, coordinator_client, ids, whatsapp_outbox):
    resp = coordinator_client.post("/api/managers/direct-message", json={
        "recipientId": ids["member1"], "subject": "Staff meeting", "message": "4 PM in the library",
        "note": "Bring the register",
    })
    assert resp.status_code == 201
    log = resp.get_json()["log"]
    assert log["status"] == "sent"
    assert log["sid"].startswith("LOG")

    variables = whatsapp_outbox[0]["variables"]
    assert variables["2"] == "Coordinator"
    assert variables["3"] == "Staff meeting"
    assert variables["5"] == "Bring the register"
    assert variables["6"] == "+91 90000 00010"

    skipped = coordinator_client.post("/api/managers/direct-message", json={
        "recipientId": ids["member2"], "subject": "Staff meeting", "message": "4 PM",
    }).get_json()["log"]
    assert skipped["status"] == "skipped"
    assert skipped["error"] == "No WhatsApp number"

    history = coordinator_client.get("/api/managers/direct-message").get_json()["logs"]
    assert len(history) == 2
    with app.app_context():
        assert Message.query.filter_by(sender_id=ids["coordinator"]).count() == 2
        assert WhatsappMessageLog.query.count() == 2


def test_direct_message_validation(coordinator_client, member_client, ids):
    assert coordinator_client.post("/api/managers/direct-message",
                                   json={"recipientId": ids["member1"], "subject": "x"}).status_code == 400
    assert coordinator_client.post("/api/managers/direct-message", json={
        "recipientId": 999, "subject": "x", "message": "y",
    }).status_code == 404
    assert member_client.post("/api/managers/direct-message", json={
        "recipientId": ids["coordinator"], "subject": "x", "message": "y",
    }).status_code == 401
