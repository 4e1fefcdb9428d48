from datetime import date

import pytest

from models import (
    db, DayOpenRecord, DayCloseRequest, GeneralLog, Notification,
    RoutineTask, RoutineTaskDailyStatus, RoutineTaskLog,
    AssignedTask, AssignedTaskStatus,
)

TODAY = "2026-10-19"


def enable(admin_client, **flags):
    resp = admin_client.patch("/api/admin/flags", json={"flags": flags})
    assert resp.status_code == 200


@pytest.fixture
def work(app, ids):
    """One routine task and one assigned task for member1."""
    with app.app_context():
        routine = RoutineTask(description="Register check", member_id=ids["member1"])
        task = AssignedTask(title="Lab report", created_by_id=ids["coordinator"])
        task.statuses.append(AssignedTaskStatus(member_id=ids["member1"], status="in_progress"))
        db.session.add_all([routine, task])
        db.session.commit()
        return {"routine": routine.id, "task": task.id}


# ---- Open/close times

def test_admin_manages_times(admin_client):
    times = admin_client.get("/api/admin/open-close-times").get_json()["times"]
    assert {t["userType"] for t in times} == {"residential", "non_residential"}

    resp = admin_client.patch("/api/admin/open-close-times", json={"times": [{
        "userType": "semi_residential", "dayOpenTime": "08:00:00", "dayCloseTime": "16:00:00",
        "closingWindowStart": "15:30:00", "closingWindowEnd": "17:00:00",
    }]})
    assert resp.status_code == 200
    assert len(resp.get_json()["times"]) == 3

    bad_time = admin_client.patch("/api/admin/open-close-times", json={"times": [{
        "userType": "residential", "dayOpenTime": "8am", "dayCloseTime": "16:00:00",
        "closingWindowStart": "15:30:00", "closingWindowEnd": "17:00:00",
    }]})
    assert bad_time.status_code == 400
    assert admin_client.patch("/api/admin/open-close-times",
                              json={"times": [{"userType": "boarding"}]}).status_code == 400
    assert admin_client.patch("/api/admin/open-close-times", json={"times": []}).status_code == 400


def test_member_reads_own_times(member_client):
    times = member_client.get("/api/member/open-close-times").get_json()["times"]
    assert times["dayOpenTime"] == "09:00:00"
    assert times["closingWindowEnd"] == "18:00:00"


# ---- Day open

def test_day_open_inside_grace_window(app, clock, member_client, ids):
    clock(9, 5)
    resp = member_client.post("/api/member/day-open", json={"date": TODAY})
    assert resp.status_code == 201
    assert resp.get_json()["dayOpenedAt"]

    again = member_client.post("/api/member/day-open", json={"date": TODAY})
    assert again.status_code == 400
    assert again.get_json()["error"] == "Day already started"

    record = member_client.get("/api/member/day-open").get_json()["record"]
    assert record["date"] == TODAY
    with app.app_context():
        assert DayOpenRecord.query.filter_by(user_id=ids["member1"]).count() == 1


def test_day_open_rejections(clock, member_client, admin_client, member2_client, ids):
    clock(9, 30)
    late = member_client.post("/api/member/day-open", json={"date": TODAY})
    assert late.status_code == 403
    assert late.get_json()["error"] == "Outside day open window"

    clock(9, 0)
    assert member_client.post("/api/member/day-open", json={}).status_code == 400
    assert member_client.post("/api/member/day-open", json={"date": "2026-10-18"}).status_code == 400

    admin_client.patch(f"/api/admin/users/{ids['member2']}", json={"type": "semi_residential"})
    assert member2_client.post("/api/member/day-open", json={"date": TODAY}).status_code == 404



def test_day_open_grace_edge(clock, member_client):
    clock(9, 11)
    assert member_client.post("/api/member/day-open", json={"date": TODAY}).status_code == 403
    clock(9, 10)
    assert member_client.post("/api/member/day-open", json={"date": TODAY}).status_code == 201


# ---- Day close

def test_day_close_submission(clock, member_client, work):
    clock(17, 0)
    resp = member_client.post("/api/member/day-close", json={
        "date": TODAY,
        "assignedTasksUpdates": [{"id": work["task"], "statusUpdate": "pending_verification", "comment": "Sent"}],
        "routineTasksUpdates": [{"id": work["routine"], "done": True}],
        "generalLog": "Quiet day",
    })
    assert resp.status_code == 201
    req = resp.get_json()["request"]
    assert req["status"] == "pending"
    assert req["bypassed"] is False
    assert req["routineTasksUpdates"] == [{"id": work["routine"], "done": True}]

    dup = member_client.post("/api/member/day-close", json={"date": TODAY})
    assert dup.status_code == 400

    status = member_client.get(f"/api/member/day-close/status?date={TODAY}").get_json()["request"]
    assert status["id"] == req["id"]
    assert len(member_client.get("/api/member/day-close/history").get_json()["requests"]) == 1


def test_day_close_validation(clock, member_client):
    clock(17, 0)
    assert member_client.post("/api/member/day-close", json={}).status_code == 400
    assert member_client.post("/api/member/day-close", json={
        "date": TODAY, "assignedTasksUpdates": [{"id": 1, "statusUpdate": "verified"}],
    }).status_code == 400
    assert member_client.post("/api/member/day-close", json={
        "date": TODAY, "routineTasksUpdates": [{"id": 1, "done": "yes"}],
    }).status_code == 400


def test_day_close_rejects_non_object_body(clock, member_client):
    clock(17, 0)
    resp = member_client.post("/api/member/day-close", json=[{"date": TODAY}])
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Date is required"
    assert member_client.post("/api/member/day-close", json="2026-10-19").status_code == 400


def test_day_close_outside_window(clock, member_client):
    clock(12, 0)
    resp = member_client.post("/api/member/day-close", json={"date": TODAY})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Not within closing window"


def test_bypass_needs_flag(clock, admin_client, member_client):
    clock(12, 0)
    assert member_client.post("/api/member/day-close", json={"date": TODAY, "bypass": True}).status_code == 403

    enable(admin_client, show_day_close_bypass=True)
    resp = member_client.post("/api/member/day-close", json={"date": TODAY, "bypass": True})
    assert resp.status_code == 201
    assert resp.get_json()["request"]["bypassed"] is True


def test_mobile_block(clock, admin_client, member_client):
    clock(17, 0)
    enable(admin_client, block_mobile_day_close=True)
    phone = {"User-Agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148"}
    assert member_client.post("/api/member/day-close", json={"date": TODAY}, headers=phone).status_code == 403
    desktop = {"User-Agent": "Mozilla/5.0 (X11; Linux x86_64) Firefox/128.0"}
    assert member_client.post("/api/member/day-close", json={"date": TODAY}, headers=desktop).status_code == 201


def test_routine_log_required_for_teachers(clock, admin_client, member_client, member2_client):
    clock(17, 0)
    enable(admin_client, routine_log_required_teachers=True)
    resp = member_client.post("/api/member/day-close", json={"date": TODAY})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Routine log is required"
    assert member_client.post("/api/member/day-close",
                              json={"date": TODAY, "routineLog": "All rounds done"}).status_code == 201
    assert member2_client.post("/api/member/day-close", json={"date": TODAY}).status_code == 201


def test_approval_applies_updates(app, clock, member_client, coordinator_client, work, ids):
    clock(9, 0)
    member_client.post("/api/member/day-open", json={"date": TODAY})
    clock(17, 0)
    req = member_client.post("/api/member/day-close", json={
        "date": TODAY,
        "assignedTasksUpdates": [{"id": work["task"], "statusUpdate": "pending_verification",
                                  "comment": "Submitted", "newDeadline": "2026-10-25T12:00:00Z"}],
        "routineTasksUpdates": [{"id": work["routine"], "done": True}],
        "routineLog": "Checked registers",
        "generalLog": "Parent meeting went well",
    }).get_json()["request"]

    pending = coordinator_client.get("/api/managers/day-close-requests").get_json()["requests"]
    assert [r["id"] for r in pending] == [req["id"]]

    resp = coordinator_client.patch(f"/api/managers/day-close-requests/{req['id']}",
                                    json={"status": "approved", "ISGeneralLog": "Good work"})
    assert resp.status_code == 200
    body = resp.get_json()["request"]
    assert body["status"] == "approved"
    assert body["ISGeneralLog"] == "Good work"
    assert body["approvedBy"] == ids["coordinator"]

    with app.app_context():
        st = AssignedTaskStatus.query.filter_by(task_id=work["task"], member_id=ids["member1"]).one()
        assert st.status == "pending_verification"
        assert st.comment == "Submitted"
        assert st.task.deadline.isoformat() == "2026-10-25T12:00:00"
        row = RoutineTaskDailyStatus.query.filter_by(routine_task_id=work["routine"], date=date(2026, 10, 19)).one()
        assert row.status == "done"
        assert row.is_locked is True
        assert RoutineTaskLog.query.filter_by(action="close_day_comment").count() == 1
        assert GeneralLog.query.filter_by(user_id=ids["member1"]).one().content == "Parent meeting went well"
        assert DayOpenRecord.query.filter_by(user_id=ids["member1"]).one().closed_at is not None
        note = Notification.query.filter_by(user_id=ids["member1"], type="day_close").one()
        assert note.body.startswith("Your day close request for 2026-10-19 has been approved.")
        assert "Good work" in note.body

    assert coordinator_client.patch(f"/api/managers/day-close-requests/{req['id']}",
                                    json={"status": "rejected"}).status_code == 400
    closed = member_client.post("/api/member/day-close", json={"date": TODAY})
    assert closed.status_code == 400


def test_locked_routine_row_after_approval(clock, member_client, coordinator_client, work):
    clock(17, 0)
    req = member_client.post("/api/member/day-close", json={
        "date": TODAY, "routineTasksUpdates": [{"id": work["routine"], "done": False}],
    }).get_json()["request"]
    coordinator_client.patch(f"/api/managers/day-close-requests/{req['id']}", json={"status": "approved"})
    resp = member_client.patch("/api/member/routine-tasks/status",
                               json={"taskId": work["routine"], "status": "in_progress"})
    assert resp.status_code == 400


def test_rejection_allows_resubmission(clock, member_client, coordinator_client):
    clock(17, 0)
    req = member_client.post("/api/member/day-close", json={"date": TODAY}).get_json()["request"]
    resp = coordinator_client.patch(f"/api/managers/day-close-requests/{req['id']}", json={"status": "rejected"})
    assert resp.get_json()["request"]["status"] == "rejected"
    assert member_client.post("/api/member/day-close", json={"date": TODAY}).status_code == 201


def test_only_immediate_supervisor_decides(clock, member3_client, coordinator_client, admin_client):
    clock(17, 0)
    req = member3_client.post("/api/member/day-close", json={"date": TODAY}).get_json()["request"]

    assert coordinator_client.get("/api/managers/day-close-requests").get_json()["requests"] == []
    assert coordinator_client.patch(f"/api/managers/day-close-requests/{req['id']}",
                                    json={"status": "approved"}).status_code == 403
    assert coordinator_client.patch("/api/managers/day-close-requests/999",
                                    json={"status": "approved"}).status_code == 404
    assert admin_client.patch(f"/api/managers/day-close-requests/{req['id']}",
                              json={"status": "maybe"}).status_code == 400
    assert admin_client.patch(f"/api/managers/day-close-requests/{req['id']}",
                              json={"status": "approved"}).status_code == 200


def test_summary(app, clock, member_client, coordinator_client, ids):
    clock(17, 0)
    req = member_client.post("/api/member/day-close", json={"date": TODAY}).get_json()["request"]
    coordinator_client.patch(f"/api/managers/day-close-requests/{req['id']}", json={"status": "approved"})

    resp = coordinator_client.get("/api/managers/day-close/summary?start=2026-10-01&end=2026-10-31")
    assert resp.get_json()["summary"] == [{"userId": ids["member1"], "name": "Asha", "approvedDays": 1}]
    assert coordinator_client.get("/api/managers/day-close/summary?start=2026-10-31&end=2026-10-01").status_code == 400
    with app.app_context():
        assert DayCloseRequest.query.count() == 1


def test_flags(admin_client, member_client):
    flags = admin_client.get("/api/admin/flags").get_json()["flags"]
    assert {f["key"]: f["value"] for f in flags}["leave_proof_required"] is False
    assert admin_client.patch("/api/admin/flags", json={"flags": {"nope": True}}).status_code == 400
    updated = admin_client.patch("/api/admin/flags", json={"flags": {"leave_proof_required": True}}).get_json()
    assert {f["key"]: f["value"] for f in updated["flags"]}["leave_proof_required"] is True
    assert member_client.get("/api/admin/flags").status_code == 401
