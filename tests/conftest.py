from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

import day_api
import timeutil
from app import create_app
from config import TestConfig
from models import db, User, OpenCloseTime

TODAY = date(2026, 10, 19)

PASSWORDS = {
    "admin@example.com": "adminpass",
    "coordinator@example.com": "coordpass",
    "member1@example.com": "member1pass",
    "member2@example.com": "member2pass",
    "member3@example.com": "member3pass",
}


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()

        admin = User(name="Admin", email="admin@example.com", role="admin", type="residential")
        admin.set_password(PASSWORDS[admin.email])
        db.session.add(admin)
        db.session.flush()
        coordinator = User(name="Coordinator", email="coordinator@example.com", role="team_manager",
                           team_manager_type="coordinator", type="residential",
                           immediate_supervisor_id=admin.id, whatsapp_number="+91 90000 00010")
        coordinator.set_password(PASSWORDS[coordinator.email])
        db.session.add(coordinator)
        db.session.flush()
        member1 = User(name="Asha", email="member1@example.com", role="member", type="residential",
                       is_teacher=True, immediate_supervisor_id=coordinator.id,
                       whatsapp_number="+91 90000 00001")
        member2 = User(name="Ravi", email="member2@example.com", role="member", type="non_residential",
                       immediate_supervisor_id=coordinator.id)
        member3 = User(name="Meera", email="member3@example.com", role="member", type="residential",
                       immediate_supervisor_id=admin.id)
        db.session.add_all([member1, member2, member3])
        for user in (member1, member2, member3):
            user.set_password(PASSWORDS[user.email])

        for user_type in ("residential", "non_residential"):
            db.session.add(OpenCloseTime(
                user_type=user_type,
                day_open_time=time(9, 0),
                day_close_time=time(17, 0),
                closing_window_start=time(16, 30),
                closing_window_end=time(18, 0),
            ))
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ids(app):
    with app.app_context():
        return {u.email.split("@")[0]: u.id for u in User.query.all()}


def login(app, email):
    client = app.test_client()
    resp = client.post("/api/auth/login", json={"email": email, "password": PASSWORDS[email]})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def admin_client(app):
    return login(app, "admin@example.com")


@pytest.fixture
def coordinator_client(app):
    return login(app, "coordinator@example.com")


@pytest.fixture
def member_client(app):
    return login(app, "member1@example.com")


@pytest.fixture
def member2_client(app):
    return login(app, "member2@example.com")


@pytest.fixture
def member3_client(app):
    return login(app, "member3@example.com")


@pytest.fixture
def whatsapp_outbox(app):
    return app.extensions["whatsapp"].sent


@pytest.fixture
def clock(monkeypatch):
    """Pin the institution clock to TODAY at the given local time."""
    def set_now(hour, minute=0, day=TODAY):
        stamp = datetime.combine(day, time(hour, minute), tzinfo=ZoneInfo("Asia/Kolkata"))
        monkeypatch.setattr(timeutil, "now_local", lambda: stamp)
        monkeypatch.setattr(day_api, "now_local", lambda: stamp)
        return stamp
    return set_now
