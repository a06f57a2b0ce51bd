"""
Create or update the admin account.

Reads ADMIN_EMAIL and ADMIN_PASSWORD from the environment (or .env). Run
once after migrations:

    python scripts/seed_admin.py
"""
import sys
import os

# Add the parent directory to sys.path to allow imports from src
sys.path.append(os.path.join(os.path.dirname(__file__), '../src'))

from core.config import ADMIN_EMAIL, ADMIN_PASSWORD
from core.constants import ROLE_ADMIN
from core.database import SessionLocal
from models import User
from services.jwt_service import jwt_service
from services.user_service import validate_password


def seed_admin(db, email: str, password: str) -> User:
    """Create the admin user, or reset the password and role of an existing one."""
    validate_password(password)
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(
            email=email,
            hashed_password=jwt_service.hash_password(password),
            first_name="System",
            last_name="Admin",
            role=ROLE_ADMIN,
            is_active=True,
        )
        db.add(user)
    else:
        user.hashed_password = jwt_service.hash_password(password)
        user.role = ROLE_ADMIN
        user.is_active = True
    db.commit()
    db.refresh(user)
    return user


def main():
    if not ADMIN_EMAIL or not ADMIN_PASSWORD:
        print("ADMIN_EMAIL and ADMIN_PASSWORD must be set")
        sys.exit(1)

    db = SessionLocal()
    try:
        user = seed_admin(db, ADMIN_EMAIL, ADMIN_PASSWORD)
        print(f"Admin user ready: {user.email} (id {user.id})")
    except ValueError as e:
        print(f"Invalid admin password: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
