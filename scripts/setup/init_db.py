"""
Initialize database — creates all tables and seeds the default slot layout.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py [--no-demo-users]
"""

import sys
import os
import argparse
from decimal import Decimal

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text
from app.config import settings
from app.database import build_engine, build_session_factory, create_tables
from app.models.slot import Slot
from app.models.user import User
from app.utils.clock import utcnow

# (slot_number, slot_name, slot_type, hourly_rate, daily_rate)
DEFAULT_SLOTS = (
    [(f"A{i:02d}", f"Slot A{i:02d}", "standard", "5.00", "50.00") for i in range(1, 21)]
    + [(f"B{i:02d}", f"Slot B{i:02d}", "standard", "5.00", "50.00") for i in range(1, 16)]
    + [
        ("D01", "Disabled Slot 1", "disabled", "3.00", "30.00"),
        ("V01", "VIP Slot 1", "vip", "8.00", "80.00"),
        ("V02", "VIP Slot 2", "vip", "8.00", "80.00"),
    ]
)

DEMO_USERS = [
    ("admin", "System Administrator", "admin"),
    ("cashier1", "Cashier One", "cashier"),
]


def seed(session, with_users: bool = True):
    now = utcnow()
    if session.query(Slot).count() == 0:
        for number, name, slot_type, hourly, daily in DEFAULT_SLOTS:
            session.add(Slot(slot_number=number, slot_name=name, status="vacant", slot_type=slot_type,
                             hourly_rate=Decimal(hourly), daily_rate=Decimal(daily),
                             created_at=now, updated_at=now))
        print(f"✅ Seeded {len(DEFAULT_SLOTS)} parking slots")
    else:
        print("ℹ️  Slots already present — skipped")

    if with_users and session.query(User).count() == 0:
        for username, full_name, role in DEMO_USERS:
            session.add(User(username=username, full_name=full_name, role=role,
                             is_active=True, created_at=now))
        print(f"✅ Seeded demo users: {', '.join(u[0] for u in DEMO_USERS)}")
    session.commit()


def main():
    parser = argparse.ArgumentParser(description="Create tables and seed default data")
    parser.add_argument("--no-demo-users", action="store_true", help="Do not create demo operator accounts")
    args = parser.parse_args()

    print("🗄️  Parking DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    engine = build_engine(settings.DATABASE_URL)

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables(engine)

    session = build_session_factory(engine)()
    try:
        seed(session, with_users=not args.no_demo_users)
    finally:
        session.close()

    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    print("\n🎉 Database ready! You can now start the backend:")
    print(f"   uvicorn app.main:app --host {settings.BACKEND_HOST} --port {settings.BACKEND_PORT} --reload")


if __name__ == "__main__":
    main()
