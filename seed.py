# seed.py
from datetime import time

from models import db, User, OpenCloseTime, RoutineTask, ResourceCategory, SystemFlag
from flags import KNOWN_FLAGS


def seed_data():
    """Drop and recreate every table, then load demo data. Needs an app context."""
    db.drop_all()
    db.create_all()

    admin = User(name="Admin", email="admin@example.com", role="admin", type="residential")
    admin.set_password("admin123!")
    db.session.add(admin)
    db.session.flush()

    coordinator = User(name="Academic Coordinator", email="coordinator@example.com", role="team_manager",
                       team_manager_type="coordinator", type="residential", immediate_supervisor_id=admin.id)
    coordinator.set_password("coord123!")
    db.session.add(coordinator)
    db.session.flush()

    members = []
    for i, user_type in enumerate(("residential", "non_residential", "semi_residential"), start=1):
        m = User(name=f"Staff Member {i}", email=f"member{i}@example.com", role="member", type=user_type,
                 is_teacher=(i != 3), immediate_supervisor_id=coordinator.id,
                 whatsapp_number=f"+9190000000{i:02d}")
        m.set_password(f"member{i}pass")
        members.append(m)
    db.session.add_all(members)
    db.session.flush()

    # Same schedule for every user type to start with
    for user_type in ("residential", "non_residential", "semi_residential"):
        db.session.add(OpenCloseTime(
            user_type=user_type,
            day_open_time=time(7, 0),
            day_close_time=time(19, 0),
            closing_window_start=time(18, 30),
            closing_window_end=time(20, 0),
        ))

    for m in members:
        db.session.add_all([
            RoutineTask(description="Morning assembly duty", member_id=m.id),
            RoutineTask(description="Update attendance register", member_id=m.id),
        ])

    for name in ("Electronics", "Furniture", "Sports equipment"):
        db.session.add(ResourceCategory(name=name))

    for key, (_label, default) in KNOWN_FLAGS.items():
        db.session.add(SystemFlag(key=key, value=default))

    db.session.commit()


def seed():
    from app import create_app
    app = create_app()
    with app.app_context():
        seed_data()
        print("Seeded: 1 admin (admin@example.com/'admin123!'), 1 coordinator, 3 members, open/close times.")


if __name__ == "__main__":
    seed()
