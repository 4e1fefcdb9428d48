import pytest

from models import RoutineTask, RoutineTaskDailyStatus, RoutineTaskLog


@pytest.fixture
def routine_task(clock, coordinator_client, ids):
    clock(8, 0)
    resp = coordinator_client.post("/api/managers/routine-tasks",
                                   json={"memberId": ids["member1"], "description": "Morning assembly"})
    assert resp.status_code == 201
    return resp.get_json()["task"]


def test_manager_creates_task_with_todays_row(app, routine_task, coordinator_client, ids):
    assert routine_task["status"] == "not_started"
    day = coordinator_client.get(f"/api/managers/routine-tasks?memberId={ids['member1']}&date=2026-10-19")
    rows = day.get_json()["tasks"]
    assert [r["description"] for r in rows] == ["Morning assembly"]
    with app.app_context():
        row = RoutineTaskDailyStatus.query.one()
        assert row.date.isoformat() == "2026-10-19"
        assert RoutineTaskLog.query.filter_by(action="created").count() == 1


def test_manager_validation(coordinator_client, ids):
    assert coordinator_client.get("/api/managers/routine-tasks").status_code == 400
    assert coordinator_client.post("/api/managers/routine-tasks",
                                   json={"memberId": ids["member1"], "description": ""}).status_code == 400
    assert coordinator_client.post("/api/managers/routine-tasks",
                                   json={"memberId": 999, "description": "x"}).status_code == 400
    assert coordinator_client.post("/api/managers/routine-tasks", json={
        "memberId": ids["member1"], "description": "x", "status": "bogus",
    }).status_code == 400


def test_member_updates_and_locking(member_client, routine_task):
    url = "/api/member/routine-tasks/status"
    resp = member_client.patch(url, json={"taskId": routine_task["id"], "status": "in_progress"})
    assert resp.status_code == 200
    assert resp.get_json()["date"] == "2026-10-19"

    assert member_client.patch(url, json={"taskId": routine_task["id"], "status": "done"}).status_code == 200
    locked = member_client.patch(url, json={"taskId": routine_task["id"], "status": "in_progress"})
    assert locked.status_code == 400

    listed = member_client.get("/api/member/routine-tasks?date=2026-10-19").get_json()["tasks"]
    assert listed[0]["status"] == "done"


def test_member_update_creates_missing_row(app, member_client, routine_task):
    resp = member_client.patch("/api/member/routine-tasks/status",
                               json={"taskId": routine_task["id"], "status": "not_done", "date": "2026-10-18"})
    assert resp.status_code == 200
    with app.app_context():
        assert RoutineTaskDailyStatus.query.count() == 2


def test_member_update_errors(member_client, member2_client, routine_task):
    url = "/api/member/routine-tasks/status"
    assert member_client.patch(url, json={"taskId": routine_task["id"], "status": "verified"}).status_code == 400
    assert member_client.patch(url, json={"taskId": 999, "status": "done"}).status_code == 404
    assert member2_client.patch(url, json={"taskId": routine_task["id"], "status": "done"}).status_code == 403
    assert member_client.get("/api/member/routine-tasks?date=yesterday").status_code == 400


def test_missing_status_reads_as_not_started(member_client, routine_task):
    rows = member_client.get("/api/member/routine-tasks?date=2026-10-01").get_json()["tasks"]
    assert rows[0]["status"] == "not_started"
    assert rows[0]["isLocked"] is False


def test_monthly_grid(member_client, routine_task):
    url = "/api/member/routine-tasks/status"
    member_client.patch(url, json={"taskId": routine_task["id"], "status": "done"})
    member_client.patch(url, json={"taskId": routine_task["id"], "status": "not_done", "date": "2026-10-02"})

    grid = member_client.get("/api/member/routine-tasks/monthly?month=2026-10").get_json()
    assert grid["month"] == "2026-10"
    assert grid["tasks"][0]["days"] == {"2026-10-19": "done", "2026-10-02": "not_done"}

    default = member_client.get("/api/member/routine-tasks/monthly").get_json()
    assert default["month"] == "2026-10"
    assert member_client.get("/api/member/routine-tasks/monthly?month=October").status_code == 400


def test_delete_routine_task(app, coordinator_client, routine_task):
    assert coordinator_client.delete(f"/api/managers/routine-tasks/{routine_task['id']}").status_code == 200
    assert coordinator_client.delete(f"/api/managers/routine-tasks/{routine_task['id']}").status_code == 404
    with app.app_context():
        assert RoutineTask.query.count() == 0
        assert RoutineTaskDailyStatus.query.count() == 0
