from datetime import date, datetime, timedelta

from app.config import settings
from app.database import Base, SessionLocal, engine
from app.models.goals import UserGoals
from app.models.health_data import HealthEntry

DEMO_USER_ID = "user_demo"

DEMO_WEEK = [
    {"steps": 8200, "water_intake": 2.1, "sleep_hours": 7.5, "mood": "good"},
    {"steps": 10450, "water_intake": 2.4, "sleep_hours": 8.0, "mood": "excellent"},
    {"steps": 6100, "water_intake": 1.6, "sleep_hours": 6.5, "mood": "neutral"},
    {"steps": 11200, "water_intake": 2.0, "sleep_hours": 7.0, "mood": "good"},
    {"steps": 4300, "water_intake": 1.2, "sleep_hours": 5.5, "mood": "bad"},
    {"steps": 9800, "water_intake": 2.2, "sleep_hours": 8.5, "mood": "good"},
    {"steps": 12050, "water_intake": 2.6, "sleep_hours": 7.8, "mood": "excellent"},
]


def seed_demo_entries(db, user_id: str = DEMO_USER_ID, today: date | None = None) -> int:
    today = today or date.today()
    created = 0
    for offset, metrics in enumerate(reversed(DEMO_WEEK)):
        day = today - timedelta(days=offset)
        exists = (
            db.query(HealthEntry)
            .filter(HealthEntry.user_id == user_id, HealthEntry.entry_date == day)
            .first()
        )
        if exists:
            continue
        db.add(
            HealthEntry(
                user_id=user_id,
                entry_date=day,
                weight=72.0 + offset * 0.1,
                systolic=118,
                diastolic=78,
                pulse=64,
                created_at=datetime.combine(day, datetime.min.time()).replace(hour=20),
                **metrics,
            )
        )
        created += 1
    db.commit()
    print(f"✔ Seeded {created} demo health entries for '{user_id}'")
    return created


def seed_demo_goals(db, user_id: str = DEMO_USER_ID):
    if db.query(UserGoals).filter(UserGoals.user_id == user_id).first():
        print(f"✔ Goals already present for '{user_id}', skipping.")
        return
    db.add(UserGoals(user_id=user_id, steps_goal=10000, water_goal=2.0, sleep_goal=8.0, weight_goal=70.0))
    db.commit()
    print(f"✔ Seeded demo goals for '{user_id}'")


def run_seed(force: bool = False):
    if not (force or settings.SEED_DEMO_DATA):
        return
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_demo_entries(db)
        seed_demo_goals(db)
    except Exception as e:
        db.rollback()
        print("❌ Seeding error:", e)
    finally:
        db.close()


if __name__ == "__main__":
    run_seed(force=True)
