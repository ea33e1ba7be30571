"""Seed demo data for local QueueSkip development.

Creates a handful of businesses, an admin, one staff member per business and
a few customers, then queues two of the customers at the first business so
the staff dashboard has something to show.

Usage:
    cd backend
    python seed_data.py
"""

import sys
import os

# Ensure the backend package is importable
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from queskip.core.rbac import UserRole
from queskip.core.security import get_password_hash
from queskip.db.base import Base
from queskip.db.session import SessionLocal, engine
from queskip.models import Business, BusinessCategory, User
from queskip.services.queue_ledger import QueueLedger

DEMO_BUSINESSES = [
    {
        "name": "Corner Bistro",
        "description": "Neighbourhood bistro with walk-in seating",
        "address": "12 Market Street",
        "phone_number": "+1 555 010 0001",
        "category": BusinessCategory.RESTAURANT,
        "average_wait_time": 12,
        "max_queue_capacity": 30,
    },
    {
        "name": "Harbour Hotel Front Desk",
        "description": "Check-in and concierge",
        "address": "1 Harbour Road",
        "phone_number": "+1 555 010 0002",
        "category": BusinessCategory.HOTEL,
        "average_wait_time": 8,
        "max_queue_capacity": 20,
    },
    {
        "name": "Daily Grind",
        "description": "Coffee and pastries",
        "address": "48 Elm Avenue",
        "phone_number": "+1 555 010 0003",
        "category": BusinessCategory.CAFE,
        "average_wait_time": 4,
        "max_queue_capacity": 50,
    },
    {
        "name": "City Licensing Office",
        "description": "Permits and renewals",
        "address": "200 Civic Plaza",
        "phone_number": "+1 555 010 0004",
        "category": BusinessCategory.GOVERNMENT,
        "average_wait_time": 20,
        "max_queue_capacity": 40,
    },
]

DEMO_PASSWORD = "password123"


def seed():
    """Insert demo data, skipping anything that already exists."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        queued_user_ids, first_business_id = _seed_all(db)
        db.commit()
        print("Seed data committed successfully.")
    except Exception as e:
        db.rollback()
        print(f"Error seeding data: {e}")
        raise

    try:
        _seed_queue(db, first_business_id, queued_user_ids)
    finally:
        db.close()


def _get_or_create_user(db, email, full_name, role, business_id=None):
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(
        email=email,
        password_hash=get_password_hash(DEMO_PASSWORD),
        full_name=full_name,
        role=role,
        business_id=business_id,
        is_active=True,
    )
    db.add(user)
    db.flush()
    print(f"  + User {email} ({role.value})")
    return user


def _seed_all(db):
    businesses = []
    for data in DEMO_BUSINESSES:
        business = db.query(Business).filter(Business.name == data["name"]).first()
        if not business:
            business = Business(**{**data, "category": data["category"].value})
            db.add(business)
            db.flush()
            print(f"  + Business {business.name}")
        businesses.append(business)

    _get_or_create_user(db, "admin@queskip.local", "Admin User", UserRole.ADMIN)
    for index, business in enumerate(businesses, start=1):
        _get_or_create_user(
            db, f"staff{index}@queskip.local", f"{business.name} Staff",
            UserRole.STAFF, business_id=business.id,
        )

    customers = [
        _get_or_create_user(db, f"customer{i}@queskip.local", f"Customer {i}", UserRole.CUSTOMER)
        for i in range(1, 4)
    ]
    return [c.id for c in customers[:2]], businesses[0].id


def _seed_queue(db, business_id, user_ids):
    ledger = QueueLedger(db)
    for user_id in user_ids:
        if ledger.current_for_user(user_id) is not None:
            continue
        entry = ledger.join(business_id, user_id)
        print(f"  + Queued {user_id} at position {entry.position}")


if __name__ == "__main__":
    print("=" * 60)
    print("QueueSkip - Seed Demo Data")
    print("=" * 60)
    seed()
