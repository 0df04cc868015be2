"""
Creates the first admin account. Safe to re-run: an existing account keeps
its password and only has the admin flag switched on.

Env: ADMIN_LOGIN_NAME, ADMIN_EMAIL, ADMIN_PASSWORD, DATABASE_URL.
"""
import os
import sys
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.bootcamp.models import User


def ensure_admin(s: Session, login_name: str, email: str, password: str) -> tuple[User, bool]:
    user = s.query(User).filter(User.login_name == login_name).one_or_none()
    created = user is None
    if created:
        user = User(
            login_name=login_name,
            email=email,
            name=login_name,
            password_hash=generate_password_hash(password),
            is_active=True,
        )
        s.add(user)
    user.admin = True
    return user, created


def seed_only(*, database_url: str | None = None) -> None:
    login_name = (os.environ.get("ADMIN_LOGIN_NAME") or "admin").strip().lower()
    email = (os.environ.get("ADMIN_EMAIL") or f"{login_name}@example.com").strip().lower()
    password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///bootcamp.db").strip()

    engine = create_engine(db_url, future=True)
    with Session(engine, expire_on_commit=False) as s, s.begin():
        _, created = ensure_admin(s, login_name, email, password)
    engine.dispose()
    print(f"admin {login_name}: {'created' if created else 'already present, flag ensured'}")


if __name__ == "__main__":
    seed_only()
