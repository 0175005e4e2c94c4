import logging
import os

from sqlalchemy import select
from sqlalchemy.orm import Session

from pledgebook.db.session import SessionLocal
from pledgebook.models.role import Role
from pledgebook.models.user import User
from pledgebook.core.security import hash_password

logger = logging.getLogger(__name__)

ROLES = {
    "admin": "Administrator with full access",
    "viewer": "Read-only access to records and dashboard",
}


def seed(s: Session, email: str, password: str, name: str = "Admin") -> User:
    roles: dict[str, Role] = {}
    for role_name, description in ROLES.items():
        role = s.execute(select(Role).where(Role.name == role_name)).scalar_one_or_none()
        if role is None:
            role = Role(name=role_name, description=description)
            s.add(role)
            s.flush()
        roles[role_name] = role

    email = email.strip().lower()
    existing = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing:
        s.commit()
        return existing

    user = User(email=email, name=name, password_hash=hash_password(password), role_id=roles["admin"].id)
    s.add(user)
    s.commit()
    logger.info("seeded admin user %s", email)
    return user


def main():
    logging.basicConfig(level=logging.INFO)
    email = os.environ.get("SEED_ADMIN_EMAIL", "admin@example.com")
    password = os.environ.get("SEED_ADMIN_PASS", "admin123")
    name = os.environ.get("SEED_ADMIN_NAME", "Admin")

    with SessionLocal() as s:
        seed(s, email, password, name)

if __name__ == "__main__":
    main()
