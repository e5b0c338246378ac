"""
Seed a small demo org chart (CEO, MD, ADMIN, HR, one department with head
and staff) and print a bearer token for each user. Existing users (matched
by email) are left unchanged. Run from the project root with .env loaded.

Usage:
  python scripts/seed_org.py
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from orgflow.core.config import settings
from orgflow.core.security import create_token_for_user
from orgflow.db.session import SessionLocal, init_sqlite_schema
from orgflow.models.department import Department
from orgflow.models.user import User, Role

DEMO_USERS = [
    ("Chief Executive", "ceo@example.com", Role.CEO, None),
    ("Managing Director", "md@example.com", Role.MD, None),
    ("System Admin", "admin@example.com", Role.ADMIN, None),
    ("People Ops", "hr@example.com", Role.HR, None),
    ("Engineering Head", "eng.head@example.com", Role.GENERAL_STAFF, "Engineering"),
    ("Engineer", "engineer@example.com", Role.GENERAL_STAFF, "Engineering"),
]


def _get_or_create_department(db, name):
    department = db.query(Department).filter(Department.name == name).first()
    if not department:
        department = Department(name=name, active=True)
        db.add(department)
        db.flush()
    return department


def main():
    init_sqlite_schema()
    db = SessionLocal()
    try:
        users = {}
        for name, email, role, department_name in DEMO_USERS:
            user = db.query(User).filter(User.email == email).first()
            if not user:
                department = _get_or_create_department(db, department_name) if department_name else None
                user = User(
                    name=name,
                    email=email,
                    role=role.value,
                    department_id=department.id if department else None,
                    permissions=[],
                    leave_balance=settings.DEFAULT_LEAVE_BALANCE,
                    conduct_score=settings.DEFAULT_CONDUCT_SCORE,
                )
                db.add(user)
                db.flush()
            users[email] = user

        engineering = _get_or_create_department(db, "Engineering")
        head = users["eng.head@example.com"]
        if engineering.head_id is None:
            engineering.head_id = head.id
            head.role = Role.DEPARTMENT_HEAD.value
        engineer = users["engineer@example.com"]
        if engineer.reports_to_id is None:
            engineer.reports_to_id = head.id
        db.commit()

        for email, user in users.items():
            print(f"{user.role:<16} {email:<24} {create_token_for_user(user.id)}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
